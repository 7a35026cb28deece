"""Declaration query routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends

from sencesync.api.deps import get_db_engine
from sencesync.models.declaration import DeclarationRecord
from sencesync.services.courses import list_declarations

router = APIRouter()


@router.get("/", response_model=List[DeclarationRecord])
def get_declarations(
    external_course_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    engine=Depends(get_db_engine),
):
    """List stored declarations, newest first."""
    return list_declarations(
        engine,
        external_course_id=external_course_id,
        status=status,
        limit=limit,
        offset=offset,
    )
