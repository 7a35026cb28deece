"""Sync session, cookie handoff and status routes."""
from fastapi import APIRouter, Depends, HTTPException

from sencesync.api.deps import get_coordinator, get_tracker
from sencesync.api.schemas import (
    HandoffRequest,
    PrepareSessionRequest,
    PrepareSessionResponse,
    SyncStatusResponse,
)
from sencesync.sence.coordinator import CookieCheck
from sencesync.sence.errors import InvalidCredentialsError, ValidationError

router = APIRouter()


@router.post("/sessions", response_model=PrepareSessionResponse)
def prepare_session(request: PrepareSessionRequest, coordinator=Depends(get_coordinator)):
    """
    Prepare a sync session before the UI opens SENCE in a new window.
    The handoff URL carries the session id for the extension to echo back.
    """
    try:
        prepared = coordinator.prepare_session(request.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return PrepareSessionResponse(**prepared)


@router.post("/handoff")
async def cookie_handoff(request: HandoffRequest, coordinator=Depends(get_coordinator)):
    """
    Receive the cookies captured by the browser extension and run the sync.
    Without a resolvable session or complete scraper data only the SENCE
    session cookie is checked (test mode).
    """
    try:
        result = await coordinator.handle_handoff(
            request.cookies or [],
            scraper_data=request.scraper_data,
            session_id=request.session_id,
        )
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if isinstance(result, CookieCheck):
        return {
            "success": True,
            "mode": "test",
            "message": "Cookies validated (test mode)",
            "cookiesCount": result.cookies_count,
            "sessionCookie": result.session_cookie,
            "note": "Open SENCE from the ERP sync button to run a real sync",
        }

    if not result.ok:
        raise HTTPException(
            status_code=502,
            detail={
                "success": False,
                "sessionId": result.session_tag,
                "error": result.error,
            },
        )

    summary = result.summary
    return {
        "success": True,
        "sessionId": result.session_tag,
        "status": "completed",
        "recordCount": summary.record_count,
        "processed": summary.processed,
        "failed": summary.failed,
        "message": "Sync completed",
        "data": result.blocks,
    }


@router.get("/status/{course_ref}", response_model=SyncStatusResponse)
def sync_status(course_ref: str, tracker=Depends(get_tracker)):
    """Current sync status for a course; idle if nothing was ever tracked."""
    return SyncStatusResponse(**tracker.get(course_ref).to_dict())
