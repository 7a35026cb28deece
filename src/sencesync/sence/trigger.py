"""Remote registration trigger for course create/update.

The local course write is committed before trigger() runs. Whatever the
remote side answers, the caller's mutation stands; the outcome only rides
along in the response as a "senceSync" object.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sencesync.sence.errors import DuplicateRemoteRecordError

logger = logging.getLogger(__name__)

DUPLICATE_KEY_MARKER = "duplicate key value violates unique constraint"

OUTCOME_SUCCESS = "success"
OUTCOME_WARNING = "warning"
OUTCOME_ERROR = "error"


@dataclass
class SenceSyncResult:
    status: str  # "success", "warning", "error"
    message: str
    detail: Any = None

    @property
    def success(self) -> bool:
        return self.status == OUTCOME_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["success"] = self.success
        return data


def should_sync(previous: Optional[str], new: Optional[str]) -> bool:
    """True when new is a non-empty id different from previous."""
    if new is None or not str(new).strip():
        return False
    return previous is None or str(new).strip() != str(previous).strip()


def classify_remote_error(raw: Any) -> Optional[DuplicateRemoteRecordError]:
    """Return DuplicateRemoteRecordError if raw is a duplicate-key error text."""
    if isinstance(raw, str) and DUPLICATE_KEY_MARKER in raw:
        return DuplicateRemoteRecordError("Course already exists in SENCE (duplicate)")
    if isinstance(raw, dict):
        for key in ("message", "error", "detail"):
            value = raw.get(key)
            if isinstance(value, str) and DUPLICATE_KEY_MARKER in value:
                return DuplicateRemoteRecordError(
                    "Course already exists in SENCE (duplicate)"
                )
    return None


class SyncTrigger:
    """Issues one remote registration per external id change."""

    def __init__(self, client):
        """
        Args:
            client: SenceClient (or AsyncMock in tests).
        """
        self.client = client

    async def register(self, external_id: str) -> SenceSyncResult:
        """Register external_id remotely and classify the outcome. Never raises."""
        result = await self.client.register_course(external_id)
        if result.ok:
            return SenceSyncResult(
                status=OUTCOME_SUCCESS,
                message="SENCE sync succeeded",
                detail=result.raw,
            )

        duplicate = classify_remote_error(result.raw)
        if duplicate is not None:
            logger.warning("SENCE course %s: %s", external_id, duplicate)
            return SenceSyncResult(
                status=OUTCOME_WARNING, message=str(duplicate), detail=result.raw
            )

        logger.error("SENCE sync for course %s failed: %s", external_id, result.error)
        return SenceSyncResult(
            status=OUTCOME_ERROR,
            message=f"SENCE sync failed: {result.error}",
            detail=result.raw,
        )

    async def trigger(
        self, previous: Optional[str], new: Optional[str]
    ) -> Optional[SenceSyncResult]:
        """Register new if it differs from previous; None when nothing was sent."""
        if not should_sync(previous, new):
            return None
        return await self.register(str(new).strip())
