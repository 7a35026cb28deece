"""
SessionStore: short-lived, single-use handoff sessions.

Flow:
  1. The UI calls prepare() before opening SENCE in a new browser window.
     The returned session_id travels in the handoff URL.
  2. The browser extension posts the captured cookies back together with the
     session_id; consume() returns the stored request exactly once.
  3. Sessions never consumed are purged by sweep() once older than the TTL.
     sweep() is scheduled by sencesync.scheduler.jobs.

All mutations go through one lock. FastAPI runs sync endpoints in a thread
pool, so consume() must be an atomic check-then-delete.
"""
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional

from sencesync.models.sync import SyncSession
from sencesync.sence.errors import ValidationError

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────────────

SESSION_TTL_SECONDS = 600
SWEEP_INTERVAL_SECONDS = 120
SESSION_ID_PREFIX = "sync_"


@dataclass
class PreparedSession:
    session_id: str
    expires_in_seconds: int


def generate_session_id() -> str:
    """Timestamp plus random suffix: unique enough for single-use tokens."""
    return f"{SESSION_ID_PREFIX}{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def _clean_input_data(value: Any) -> list:
    if not value or isinstance(value, (str, bytes)):
        return []
    return [str(item) for item in value if item not in (None, "")]


class SessionStore:
    """In-memory map of session_id → SyncSession with TTL-based expiry."""

    def __init__(
        self,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Args:
            ttl_seconds: Age after which sweep() purges an unconsumed session.
            clock: Returns "now". Tests pass a fake clock to move time forward.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, SyncSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def prepare(self, request: Mapping[str, Any]) -> PreparedSession:
        """
        Validate a sync request and store it under a fresh session id.

        Args:
            request: Mapping with otec, declaration_type and input_data
                (required) plus optional course_ref, contact_email,
                requester_ref and origin_hint.

        Returns:
            PreparedSession with the id and the TTL in seconds.

        Raises:
            ValidationError: if a required field is missing or empty. Nothing
                is stored in that case.
        """
        otec = str(request.get("otec") or "").strip()
        declaration_type = str(request.get("declaration_type") or "").strip()
        input_data = _clean_input_data(request.get("input_data"))

        missing = [
            name
            for name, value in (
                ("otec", otec),
                ("declaration_type", declaration_type),
                ("input_data", input_data),
            )
            if not value
        ]
        if missing:
            raise ValidationError(
                "Missing required fields: " + ", ".join(missing)
            )

        course_ref = request.get("course_ref")
        session = SyncSession(
            session_id=generate_session_id(),
            otec=otec,
            declaration_type=declaration_type,
            input_data=input_data,
            course_ref=str(course_ref) if course_ref is not None else None,
            contact_email=request.get("contact_email"),
            requester_ref=request.get("requester_ref"),
            origin_hint=request.get("origin_hint"),
            created_at=self._clock(),
        )

        with self._lock:
            while session.session_id in self._sessions:
                session.session_id = generate_session_id()
            self._sessions[session.session_id] = session

        logger.info(
            "Prepared sync session %s (course=%s, targets=%d)",
            session.session_id,
            session.course_ref,
            len(input_data),
        )
        return PreparedSession(
            session_id=session.session_id, expires_in_seconds=self.ttl_seconds
        )

    def consume(self, session_id: Optional[str]) -> Optional[SyncSession]:
        """
        Remove and return the session, or None if absent or already consumed.

        A session is returned at most once, however many callers race for it.
        """
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            logger.info("Sync session %s not found (expired or consumed)", session_id)
        return session

    def sweep(self) -> int:
        """Delete every session older than the TTL. Returns how many went."""
        cutoff = self._clock() - timedelta(seconds=self.ttl_seconds)
        with self._lock:
            expired = [
                sid for sid, s in self._sessions.items() if s.created_at <= cutoff
            ]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Swept %d expired sync session(s)", len(expired))
        return len(expired)
