"""
APScheduler jobs for background housekeeping.

The session sweep purges handoff sessions nobody consumed. With a 600 s TTL
and a 120 s interval a session may linger up to 720 s after creation.

The scheduler is started and shut down by the FastAPI lifespan (api/main.py).
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from sencesync.config import get_settings

logger = logging.getLogger(__name__)

SESSION_SWEEP_JOB_ID = "session_sweep"


def build_scheduler(store) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        store: SessionStore whose sweep() runs on the interval.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _sweep_sessions,
        trigger="interval",
        seconds=settings.session_sweep_interval_seconds,
        id=SESSION_SWEEP_JOB_ID,
        replace_existing=True,
        kwargs={"store": store},
    )

    return scheduler


def _sweep_sessions(store) -> None:
    """Interval job: drop expired sessions. Never raises into the scheduler."""
    try:
        removed = store.sweep()
        logger.debug("Session sweep removed %d session(s)", removed)
    except Exception as exc:
        logger.error("Session sweep failed: %s", exc)
