"""Declaration (declaración jurada) model: one row per course and participant."""
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

# Internal status vocabulary
STATUS_APPROVED = "Aprobado"
STATUS_SENT = "Enviada"
STATUS_PENDING = "Pendiente"
STATUS_REJECTED = "Rechazado"
STATUS_IN_REVIEW = "En Revisión"

DECLARATION_STATUSES = (
    STATUS_APPROVED,
    STATUS_SENT,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_IN_REVIEW,
)


class DeclarationRecord(SQLModel, table=True):
    """
    Attendance declaration pulled from SENCE.

    Keyed by (external_course_id, participant_rut); reconciliation upserts on
    that pair and never deletes.
    """

    __tablename__ = "declaration"
    __table_args__ = (
        UniqueConstraint(
            "external_course_id",
            "participant_rut",
            name="uq_declaration_course_rut",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    external_course_id: str = Field(index=True, nullable=False)
    participant_rut: str = Field(nullable=False)
    participant_name: Optional[str] = None
    sessions_attended: Optional[int] = None
    status: str = STATUS_PENDING

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
