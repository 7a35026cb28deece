"""In-memory sync models: pending handoff sessions and per-course status.

Neither is persisted. Both live only as long as the process does; a restart
leaves every course back at "idle".
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SyncStatus(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class SyncSession:
    """A prepared sync request waiting for the browser extension's cookies."""

    session_id: str
    otec: str
    declaration_type: str
    input_data: List[str]
    course_ref: Optional[str] = None
    contact_email: Optional[str] = None
    requester_ref: Optional[str] = None
    origin_hint: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class SyncStatusRecord:
    course_ref: str
    status: SyncStatus = SyncStatus.IDLE
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    session_tag: Optional[str] = None
    record_count: Optional[int] = None
    error_detail: Optional[str] = None
    attempt: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
