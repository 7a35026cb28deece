"""Request/response bodies shared with the ERP frontend and browser extension.

Both speak camelCase JSON; Python code uses the snake_case field names.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Sync sessions / handoff ──────────────────────────────────────────────────

class PrepareSessionRequest(ApiModel):
    course_ref: Optional[str] = None
    otec: Optional[str] = None
    declaration_type: Optional[str] = None
    input_data: List[str] = []
    contact_email: Optional[str] = None
    requester_ref: Optional[str] = None
    origin_hint: Optional[str] = None


class PrepareSessionResponse(ApiModel):
    session_id: str
    expires_in_seconds: int
    external_handoff_url: str


class HandoffRequest(ApiModel):
    cookies: Optional[List[Dict[str, Any]]] = None
    scraper_data: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None
    timestamp: Optional[Any] = None


class SyncStatusResponse(ApiModel):
    course_ref: str
    status: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    session_tag: Optional[str] = None
    record_count: Optional[int] = None
    error_detail: Optional[str] = None
    attempt: int = 0


# ─── Courses ──────────────────────────────────────────────────────────────────

class CourseIn(ApiModel):
    name: Optional[str] = None
    sence_code: Optional[str] = None
    external_id: Optional[str] = None
    modality: Optional[str] = None
