"""Exceptions raised by the SENCE sync components."""


class ValidationError(ValueError):
    """Raised when a session-prepare request is missing required fields."""


class InvalidCredentialsError(RuntimeError):
    """Raised when no browser cookies were supplied for a remote fetch."""


class MalformedPayloadError(ValueError):
    """Raised when a remote result cannot be read as a list of result blocks."""


class DuplicateRemoteRecordError(RuntimeError):
    """The remote system already holds this course. Reported as a warning."""
