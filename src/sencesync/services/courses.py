"""
CourseService: local course writes plus the SENCE registration trigger.

Two phases, never one transaction:
  1. The course row is written and committed.
  2. If the SENCE id was set or changed, SyncTrigger registers it remotely.
     Its outcome is returned next to the course and never undoes phase 1.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlmodel import Session, select

from sencesync.models.course import Course
from sencesync.models.declaration import DeclarationRecord
from sencesync.sence.trigger import SenceSyncResult

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "sence_code", "external_id", "modality")


class CourseNotFoundError(LookupError):
    """Raised when a course id does not exist."""


class CourseConflictError(ValueError):
    """Raised when a SENCE code or id already belongs to another course."""


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class CourseService:
    def __init__(self, engine, trigger):
        """
        Args:
            engine: SQLAlchemy engine.
            trigger: SyncTrigger used after a committed write.
        """
        self.engine = engine
        self.trigger = trigger

    async def create_course(
        self, data: Mapping[str, Any]
    ) -> Tuple[Course, Optional[SenceSyncResult]]:
        name = _clean(data.get("name"))
        if not name:
            raise ValueError("Course name is required")

        fields = {
            "name": name,
            "sence_code": _clean(data.get("sence_code")),
            "external_id": _clean(data.get("external_id")),
            "modality": _clean(data.get("modality")) or "presencial",
        }
        with Session(self.engine) as s:
            self._check_conflicts(s, fields, course_id=None)
            course = Course(**fields)
            s.add(course)
            s.commit()
            s.refresh(course)
        logger.info("Created course %s (SENCE id %s)", course.id, course.external_id)

        sence_sync = await self.trigger.trigger(None, course.external_id)
        return course, sence_sync

    async def update_course(
        self, course_id: int, data: Mapping[str, Any]
    ) -> Tuple[Course, Optional[SenceSyncResult]]:
        with Session(self.engine) as s:
            course = s.get(Course, course_id)
            if course is None:
                raise CourseNotFoundError(f"Course {course_id} not found")

            previous_external_id = course.external_id
            # Blank values keep the stored value, as the ERP forms send every field
            changes = {
                k: _clean(data.get(k)) for k in _EDITABLE_FIELDS if _clean(data.get(k))
            }
            self._check_conflicts(s, changes, course_id=course_id)
            for key, value in changes.items():
                setattr(course, key, value)
            course.updated_at = datetime.utcnow()
            s.add(course)
            s.commit()
            s.refresh(course)

        sence_sync = await self.trigger.trigger(previous_external_id, course.external_id)
        return course, sence_sync

    def get_course(self, course_id: int) -> Course:
        with Session(self.engine) as s:
            course = s.get(Course, course_id)
        if course is None:
            raise CourseNotFoundError(f"Course {course_id} not found")
        return course

    def course_with_declarations(self, course_id: int) -> Dict[str, Any]:
        course = self.get_course(course_id)
        data = course.model_dump()
        data["declarations"] = (
            [d.model_dump() for d in list_declarations(self.engine, course.external_id)]
            if course.external_id
            else []
        )
        return data

    async def manual_sync(self, course_id: int) -> SenceSyncResult:
        """Re-register the course's SENCE id regardless of changes."""
        course = self.get_course(course_id)
        if not course.external_id:
            raise ValueError("Course has no SENCE id assigned")
        return await self.trigger.register(course.external_id)

    @staticmethod
    def _check_conflicts(s: Session, fields: Mapping[str, Any], course_id: Optional[int]) -> None:
        for column in ("sence_code", "external_id"):
            value = fields.get(column)
            if not value:
                continue
            query = select(Course).where(getattr(Course, column) == value)
            if course_id is not None:
                query = query.where(Course.id != course_id)
            if s.exec(query).first():
                raise CourseConflictError(
                    f"Another course already uses {column} {value!r}"
                )


def list_declarations(
    engine,
    external_course_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[DeclarationRecord]:
    """Stored declarations, newest first, optionally filtered."""
    with Session(engine) as s:
        query = select(DeclarationRecord)
        if external_course_id:
            query = query.where(
                DeclarationRecord.external_course_id == external_course_id
            )
        if status:
            query = query.where(DeclarationRecord.status == status)
        query = (
            query.order_by(DeclarationRecord.created_at.desc(), DeclarationRecord.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(s.exec(query).all())
