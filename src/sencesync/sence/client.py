"""
Async HTTP adapter for the SENCE automation endpoints.

Two remote functions are used:

  declarations endpoint: drives a live SENCE browser session (or logs in
    with credentials) and returns declaration data:
    {"status": "success", "data": [block, ...]}
    where each block holds {"data": [entry, ...]}.
  course sync endpoint: registers a SENCE action id for extraction:
    POST {"acc_cap": "<id>"}

Every failure past the input checks comes back as RemoteResult(ok=False)
with the raw remote payload attached; nothing is retried here.
Cookie values are never logged.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from sencesync.config import get_settings
from sencesync.sence.errors import InvalidCredentialsError

logger = logging.getLogger(__name__)

DEFAULT_DECLARATION_TYPE = "Emitir Declaración Jurada – E-learning"


@dataclass
class RemoteResult:
    ok: bool
    blocks: Any = None
    raw: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def failure(cls, error: str, raw: Any = None, status_code: Optional[int] = None):
        return cls(ok=False, raw=raw, error=error, status_code=status_code)


def as_blocks(data: Any) -> Any:
    """
    Return data as a list of result blocks.

    The cookie-based function answers with blocks ({"data": [entry, ...]}),
    the login-based one with the declaration entries themselves. A flat
    entry list is wrapped into a single block; anything else is returned
    unchanged for the reconciler to judge.
    """
    if not isinstance(data, list) or not data:
        return data
    mappings = [item for item in data if isinstance(item, dict)]
    if any("data" in item for item in mappings):
        return data
    if any("codigo_curso" in item or "RUT" in item for item in mappings):
        return [{"data": data}]
    return data


class SenceClient:
    """
    Thin async client over the SENCE automation functions.

    Each call opens its own httpx.AsyncClient; calls are rare and long
    (a remote browser automation can take minutes).
    """

    def __init__(
        self,
        declarations_url: Optional[str] = None,
        course_sync_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            declarations_url: Declarations endpoint. Defaults to settings.
            course_sync_url: Course extraction endpoint. Defaults to settings.
            timeout: Per-request timeout in seconds. Defaults to settings.
            transport: Optional httpx transport (httpx.MockTransport in tests).
        """
        settings = get_settings()
        self.declarations_url = declarations_url or settings.declarations_sync_url
        self.course_sync_url = course_sync_url or settings.course_sync_url
        self.timeout = timeout if timeout is not None else settings.remote_timeout_seconds
        self.default_otec = settings.sence_default_otec
        self.default_email = settings.sence_default_email
        self._transport = transport

    # ── Public API ────────────────────────────────────────────────────────────

    async def fetch_declarations(
        self,
        cookies: List[Dict[str, Any]],
        otec: Optional[str],
        declaration_type: Optional[str],
        input_data: List[str],
        contact_email: Optional[str] = None,
        requester_ref: Optional[str] = None,
    ) -> RemoteResult:
        """
        Fetch declarations using browser cookies captured by the extension.

        Raises:
            InvalidCredentialsError: if cookies is empty. No request is sent.
        """
        if not cookies or not isinstance(cookies, list):
            raise InvalidCredentialsError("No browser cookies were provided")

        payload = {
            "cookies": cookies,
            "otec": otec or self.default_otec,
            "djtype": declaration_type or DEFAULT_DECLARATION_TYPE,
            "input_data": list(input_data or []),
            "email": contact_email or self.default_email,
            "user_id": requester_ref,
        }
        logger.info(
            "Fetching declarations with %d cookie(s): otec=%s djtype=%s targets=%d",
            len(cookies),
            payload["otec"],
            payload["djtype"],
            len(payload["input_data"]),
        )
        return self._declarations_result(
            await self._post(self.declarations_url, payload)
        )

    async def fetch_declarations_with_login(
        self,
        username: str,
        password: str,
        otec: Optional[str],
        declaration_type: Optional[str],
        input_data: List[str],
        contact_email: Optional[str] = None,
    ) -> RemoteResult:
        """Fetch declarations letting the remote side log in with credentials."""
        if not username or not password:
            raise InvalidCredentialsError("SENCE username and password are required")

        payload = {
            "login_data": {"username": username, "password": password},
            "otec": otec or self.default_otec,
            "djtype": declaration_type or DEFAULT_DECLARATION_TYPE,
            "input_data": list(input_data or []),
            "email": contact_email or self.default_email,
        }
        logger.info(
            "Fetching declarations with login: otec=%s djtype=%s targets=%d",
            payload["otec"],
            payload["djtype"],
            len(payload["input_data"]),
        )
        return self._declarations_result(
            await self._post(self.declarations_url, payload)
        )

    async def register_course(self, external_id: str) -> RemoteResult:
        """Ask the course sync function to extract a SENCE action id."""
        logger.info("Registering SENCE course %s", external_id)
        return await self._post(self.course_sync_url, {"acc_cap": external_id})

    # ── Internal helpers ──────────────────────────────────────────────────────

    async def _post(self, url: str, payload: Dict[str, Any]) -> RemoteResult:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("SENCE request to %s timed out after %ss", url, self.timeout)
            return RemoteResult.failure(f"Timeout after {self.timeout}s", raw=str(exc))
        except httpx.HTTPError as exc:
            logger.warning("SENCE request to %s failed: %s", url, exc)
            return RemoteResult.failure(f"Connection error: {exc}", raw=str(exc))

        try:
            body = resp.json()
        except ValueError:
            body = resp.text

        if resp.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning("SENCE endpoint %s answered %d", url, resp.status_code)
            return RemoteResult.failure(
                f"Remote error ({resp.status_code}): {message or 'request failed'}",
                raw=body,
                status_code=resp.status_code,
            )

        return RemoteResult(ok=True, blocks=body, raw=body, status_code=resp.status_code)

    @staticmethod
    def _declarations_result(result: RemoteResult) -> RemoteResult:
        """Unwrap {"status": "success", "data": [...]} into result.blocks."""
        if not result.ok:
            return result

        body = result.raw
        if isinstance(body, list):
            return RemoteResult(
                ok=True, blocks=as_blocks(body), raw=body, status_code=result.status_code
            )
        if isinstance(body, dict):
            if body.get("status") == "success":
                return RemoteResult(
                    ok=True,
                    blocks=as_blocks(body.get("data")),
                    raw=body,
                    status_code=result.status_code,
                )
            return RemoteResult.failure(
                body.get("message") or "Unknown scraping error",
                raw=body,
                status_code=result.status_code,
            )
        return RemoteResult.failure(
            "Unexpected response from SENCE", raw=body, status_code=result.status_code
        )
