"""Course routes that touch SENCE: create/update with trigger, manual resync."""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from sencesync.api.deps import get_coordinator, get_course_service
from sencesync.api.schemas import CourseIn
from sencesync.services.courses import CourseConflictError, CourseNotFoundError

router = APIRouter()


def _course_response(course, sence_sync) -> dict:
    return {
        "success": True,
        "course": course.model_dump(),
        "senceSync": sence_sync.to_dict() if sence_sync else None,
    }


@router.post("/", status_code=201)
async def create_course(body: CourseIn, service=Depends(get_course_service)):
    """Create a course. A SENCE id triggers one remote registration."""
    try:
        course, sence_sync = await service.create_course(body.model_dump())
    except CourseConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _course_response(course, sence_sync)


@router.put("/{course_id}")
async def update_course(course_id: int, body: CourseIn, service=Depends(get_course_service)):
    """Update a course. Only a changed SENCE id triggers a remote registration."""
    try:
        course, sence_sync = await service.update_course(course_id, body.model_dump())
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except CourseConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _course_response(course, sence_sync)


@router.get("/{course_id}")
def get_course(course_id: int, service=Depends(get_course_service)):
    """Fetch a course together with the declarations stored for its SENCE id."""
    try:
        return service.course_with_declarations(course_id)
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{course_id}/sence-sync")
async def manual_sence_sync(course_id: int, service=Depends(get_course_service)):
    try:
        result = await service.manual_sync(course_id)
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return result.to_dict()


@router.post("/{course_id}/declarations/sync", status_code=202)
def sync_course_declarations(
    course_id: int,
    background_tasks: BackgroundTasks,
    service=Depends(get_course_service),
    coordinator=Depends(get_coordinator),
):
    """
    Start a declaration sync for one course using the configured SENCE login.
    Returns immediately; poll /sync/status/{course_id} for progress.
    """
    try:
        course = service.get_course(course_id)
    except CourseNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    background_tasks.add_task(coordinator.sync_course_declarations, course)
    return {"success": True, "message": "Sync started", "courseRef": str(course.id)}
