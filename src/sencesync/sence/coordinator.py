"""
SyncCoordinator: drives a SENCE declaration sync end to end.

Flow for a cookie handoff:
  1. prepare_session() stores the request and returns the handoff URL
  2. The browser extension posts cookies (+ session id) → handle_handoff()
  3. The session is consumed; its fields merge with any scraper data sent
  4. Incomplete request → cookie validation only (test mode), no remote call
  5. Complete request → tracker in_progress → remote fetch → reconcile
     → tracker completed, or tracker error on any failure

The remote call is bounded by sync_timeout_seconds so a hung automation
ends in "error" rather than leaving the course in_progress.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

from sencesync.config import Settings, get_settings
from sencesync.models.course import Course
from sencesync.models.sync import SyncSession
from sencesync.sence.client import RemoteResult
from sencesync.sence.errors import InvalidCredentialsError, MalformedPayloadError
from sencesync.sence.reconciler import ReconciliationSummary
from sencesync.sence.session_store import generate_session_id

logger = logging.getLogger(__name__)

HANDOFF_QUERY_PARAM = "erp_session"

# SENCE declaration types by course modality
DJTYPE_ELEARNING = "2"
DJTYPE_DEFAULT = "3"

# scraperData keys sent by the browser extension → internal names
_SCRAPER_KEYS = {
    "otec": "otec",
    "djtype": "declaration_type",
    "declaration_type": "declaration_type",
    "input_data": "input_data",
    "email": "contact_email",
    "contact_email": "contact_email",
    "user_id": "requester_ref",
    "requester_ref": "requester_ref",
    "cursoId": "course_ref",
    "course_ref": "course_ref",
}
_REQUIRED = ("otec", "declaration_type", "input_data")


@dataclass
class CookieCheck:
    """Result of a handoff that carried cookies but no usable sync request."""

    cookies_count: int
    session_cookie: Dict[str, str]


@dataclass
class SyncOutcome:
    ok: bool
    session_tag: str
    course_ref: Optional[str] = None
    summary: Optional[ReconciliationSummary] = None
    blocks: Any = None
    error: Optional[str] = None
    raw: Any = None


def mask_cookie_value(value: str) -> str:
    return (value or "")[:10] + "..."


def declaration_type_for(course: Course) -> str:
    modality = (course.modality or "").lower().replace("-", "").replace(" ", "")
    if "elearning" in modality:
        return DJTYPE_ELEARNING
    return DJTYPE_DEFAULT


def otec_without_check_digit(rut: str) -> str:
    """'76123456-7' → '76123456'."""
    return (rut or "").split("-")[0]


class SyncCoordinator:
    """Wires the session store, remote client, reconciler and tracker."""

    def __init__(
        self,
        store,
        tracker,
        client,
        reconciler,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            store: SessionStore.
            tracker: SyncStatusTracker.
            client: SenceClient (or AsyncMock in tests).
            reconciler: DeclarationReconciler.
            settings: Defaults to get_settings().
        """
        self.store = store
        self.tracker = tracker
        self.client = client
        self.reconciler = reconciler
        self.settings = settings or get_settings()

    # ── Session preparation ───────────────────────────────────────────────────

    def prepare_session(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """Store request; return the id, TTL and handoff URL. Raises ValidationError."""
        prepared = self.store.prepare(request)
        return {
            "session_id": prepared.session_id,
            "expires_in_seconds": prepared.expires_in_seconds,
            "external_handoff_url": self.handoff_url(prepared.session_id),
        }

    def handoff_url(self, session_id: str) -> str:
        base = self.settings.handoff_base_url
        sep = "&" if "?" in base else "?"
        return f"{base}{sep}{urlencode({HANDOFF_QUERY_PARAM: session_id})}"

    # ── Cookie handoff ────────────────────────────────────────────────────────

    async def handle_handoff(
        self,
        cookies: List[Dict[str, Any]],
        scraper_data: Optional[Mapping[str, Any]] = None,
        session_id: Optional[str] = None,
    ):
        """
        Handle the browser extension's cookie post.

        Returns:
            SyncOutcome when a complete request could be assembled,
            CookieCheck otherwise.

        Raises:
            InvalidCredentialsError: if cookies are missing, or (test mode)
                the SENCE session cookie is not among them.
        """
        if not cookies or not isinstance(cookies, list):
            raise InvalidCredentialsError("No valid cookies were provided")

        session = self.store.consume(session_id)
        request = self._merge_request(session, scraper_data)

        if any(not request.get(key) for key in _REQUIRED):
            logger.info(
                "Handoff without a complete sync request; validating %d cookie(s) only",
                len(cookies),
            )
            return self.check_cookies(cookies)

        tag = session.session_id if session else generate_session_id()
        return await self.run_cookie_sync(cookies, request, session_tag=tag)

    def check_cookies(self, cookies: List[Dict[str, Any]]) -> CookieCheck:
        """Find the SENCE session cookie (name + domain match)."""
        name = self.settings.sence_session_cookie_name
        domain = self.settings.sence_cookie_domain
        for cookie in cookies:
            if not isinstance(cookie, Mapping):
                continue
            if cookie.get("name") == name and domain in str(cookie.get("domain") or ""):
                return CookieCheck(
                    cookies_count=len(cookies),
                    session_cookie={
                        "name": cookie["name"],
                        "domain": str(cookie.get("domain")),
                        "value": mask_cookie_value(str(cookie.get("value") or "")),
                    },
                )
        raise InvalidCredentialsError(f"Cookie {name} for {domain} was not found")

    async def run_cookie_sync(
        self,
        cookies: List[Dict[str, Any]],
        request: Mapping[str, Any],
        session_tag: str,
    ) -> SyncOutcome:
        course_ref = request.get("course_ref")
        return await self._run(
            course_ref,
            session_tag,
            self.client.fetch_declarations(
                cookies=cookies,
                otec=request.get("otec"),
                declaration_type=request.get("declaration_type"),
                input_data=request.get("input_data") or [],
                contact_email=request.get("contact_email"),
                requester_ref=request.get("requester_ref"),
            ),
        )

    # ── Credential-based sync for one course ──────────────────────────────────

    async def sync_course_declarations(self, course: Course) -> SyncOutcome:
        """Fetch and reconcile declarations for course with the configured login."""
        course_ref = str(course.id)
        tag = generate_session_id()
        if not course.external_id:
            return self._fail(
                course_ref, tag, None, "Course has no SENCE id assigned"
            )

        settings = self.settings
        return await self._run(
            course_ref,
            tag,
            self.client.fetch_declarations_with_login(
                username=settings.sence_username,
                password=settings.sence_password,
                otec=otec_without_check_digit(settings.sence_default_otec),
                declaration_type=declaration_type_for(course),
                input_data=[str(course.external_id)],
                contact_email=settings.sence_default_email or None,
            ),
        )

    # ── Internal helpers ──────────────────────────────────────────────────────

    async def _run(self, course_ref, session_tag: str, remote_call) -> SyncOutcome:
        """Track, await the remote call (bounded), then reconcile."""
        course_ref = str(course_ref) if course_ref not in (None, "") else None
        attempt = self.tracker.mark_started(course_ref, session_tag) if course_ref else None

        try:
            result: RemoteResult = await asyncio.wait_for(
                remote_call, timeout=self.settings.sync_timeout_seconds
            )
        except asyncio.TimeoutError:
            return self._fail(
                course_ref,
                session_tag,
                attempt,
                f"Sync timed out after {self.settings.sync_timeout_seconds}s",
            )
        except InvalidCredentialsError as exc:
            return self._fail(course_ref, session_tag, attempt, str(exc))
        except Exception as exc:
            logger.exception("Remote call for sync %s raised", session_tag)
            return self._fail(
                course_ref, session_tag, attempt, f"Remote sync failed: {exc}"
            )

        if not result.ok:
            return self._fail(
                course_ref, session_tag, attempt, result.error or "Remote sync failed",
                raw=result.raw,
            )

        summary = ReconciliationSummary()
        try:
            self.reconciler.reconcile(result.blocks, summary)
        except MalformedPayloadError as exc:
            return self._fail(course_ref, session_tag, attempt, str(exc), raw=result.raw)
        except Exception as exc:
            logger.exception("Reconciliation for sync %s raised", session_tag)
            return self._fail(
                course_ref,
                session_tag,
                attempt,
                f"Reconciliation failed: {exc}",
                raw=result.raw,
                record_count=summary.processed,
            )

        if course_ref:
            self.tracker.mark_completed(course_ref, summary.record_count, attempt)
        logger.info(
            "Sync %s finished: %d record(s), %d failed",
            session_tag,
            summary.record_count,
            summary.failed,
        )
        return SyncOutcome(
            ok=True,
            session_tag=session_tag,
            course_ref=course_ref,
            summary=summary,
            blocks=result.blocks,
            raw=result.raw,
        )

    def _fail(
        self,
        course_ref,
        session_tag,
        attempt,
        detail: str,
        raw=None,
        record_count: Optional[int] = None,
    ) -> SyncOutcome:
        """Mark the course as errored, keeping any records already persisted."""
        logger.error("Sync %s failed: %s", session_tag, detail)
        if course_ref:
            if attempt is None:
                attempt = self.tracker.mark_started(course_ref, session_tag)
            self.tracker.mark_error(course_ref, detail, attempt, record_count)
        return SyncOutcome(
            ok=False,
            session_tag=session_tag,
            course_ref=course_ref,
            error=detail,
            raw=raw,
        )

    @staticmethod
    def _merge_request(
        session: Optional[SyncSession], scraper_data: Optional[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """Stored session fields win; scraper data fills whatever is missing."""
        request: Dict[str, Any] = {}
        if scraper_data:
            for key, value in scraper_data.items():
                target = _SCRAPER_KEYS.get(key)
                if target and value not in (None, "", []):
                    request[target] = value
        if session is not None:
            for key in (
                "otec",
                "declaration_type",
                "input_data",
                "contact_email",
                "requester_ref",
                "course_ref",
            ):
                value = getattr(session, key)
                if value not in (None, "", []):
                    request[key] = value
        return request
