"""Course model (only the columns the SENCE sync reads)."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Course(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    sence_code: Optional[str] = Field(default=None, index=True)

    # SENCE action id; setting or changing it triggers a remote registration
    external_id: Optional[str] = Field(default=None, unique=True, index=True)

    modality: str = "presencial"  # "presencial", "elearning", ...

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
