"""FastAPI dependencies: the process-scoped objects built by create_app()."""
from fastapi import Request


def get_coordinator(request: Request):
    return request.app.state.coordinator


def get_tracker(request: Request):
    return request.app.state.tracker


def get_course_service(request: Request):
    return request.app.state.course_service


def get_db_engine(request: Request):
    return request.app.state.engine
