"""Per-course sync status, kept in memory for polling.

idle → in_progress → completed | error. A new mark_started() overwrites any
previous record for the course and bumps its attempt counter; completion or
error writes that carry an older attempt number are dropped.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Optional

from sencesync.models.sync import SyncStatus, SyncStatusRecord

logger = logging.getLogger(__name__)


class SyncStatusTracker:
    def __init__(self, clock: Callable[[], datetime] = datetime.utcnow):
        self._clock = clock
        self._records: Dict[str, SyncStatusRecord] = {}
        self._attempts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def mark_started(self, course_ref: str, session_tag: Optional[str] = None) -> int:
        """Start a new attempt for course_ref. Returns its attempt number."""
        course_ref = str(course_ref)
        with self._lock:
            attempt = self._attempts.get(course_ref, 0) + 1
            self._attempts[course_ref] = attempt
            self._records[course_ref] = SyncStatusRecord(
                course_ref=course_ref,
                status=SyncStatus.IN_PROGRESS,
                started_at=self._clock(),
                session_tag=session_tag,
                attempt=attempt,
            )
        return attempt

    def mark_completed(
        self, course_ref: str, record_count: int, attempt: Optional[int] = None
    ) -> bool:
        return self._finish(
            str(course_ref), SyncStatus.COMPLETED, attempt, record_count=record_count
        )

    def mark_error(
        self,
        course_ref: str,
        detail: str,
        attempt: Optional[int] = None,
        record_count: Optional[int] = None,
    ) -> bool:
        # record_count keeps whatever was persisted before the failure
        return self._finish(
            str(course_ref),
            SyncStatus.ERROR,
            attempt,
            record_count=record_count,
            error_detail=detail,
        )

    def get(self, course_ref: str) -> SyncStatusRecord:
        """Current record, or a fresh idle record. Never raises."""
        course_ref = str(course_ref)
        with self._lock:
            record = self._records.get(course_ref)
            if record is None:
                return SyncStatusRecord(course_ref=course_ref)
            return SyncStatusRecord(**vars(record))

    def _finish(
        self,
        course_ref: str,
        status: SyncStatus,
        attempt: Optional[int],
        *,
        record_count: Optional[int] = None,
        error_detail: Optional[str] = None,
    ) -> bool:
        """Apply a terminal transition. Returns False when the write was stale."""
        with self._lock:
            current = self._records.get(course_ref)
            if current is None or current.status != SyncStatus.IN_PROGRESS:
                logger.warning(
                    "Ignoring %s for course %s: no sync in progress",
                    status.value,
                    course_ref,
                )
                return False
            if attempt is not None and attempt != current.attempt:
                logger.warning(
                    "Ignoring stale %s for course %s (attempt %d, current %d)",
                    status.value,
                    course_ref,
                    attempt,
                    current.attempt,
                )
                return False
            current.status = status
            current.finished_at = self._clock()
            current.record_count = record_count
            current.error_detail = error_detail
        return True
