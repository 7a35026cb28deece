"""Tests for SenceClient. All HTTP goes through httpx.MockTransport."""
import json

import httpx
import pytest

from sencesync.sence.client import DEFAULT_DECLARATION_TYPE, SenceClient, as_blocks
from sencesync.sence.errors import InvalidCredentialsError

DECL_URL = "https://remote.test/declaraciones"
COURSE_URL = "https://remote.test/extraccion"

COOKIES = [
    {"name": "ASP.NET_SessionId", "domain": "lce.sence.cl", "value": "abcdef1234567890"},
    {"name": "other", "domain": "sence.cl", "value": "x"},
]

BLOCKS = [
    {
        "data": [
            {
                "codigo_curso": "SENCE-001",
                "RUT": "11111111-1",
                "Nombre": "Ana",
                "Sesiones": 5,
                "Estado_Declaracion_Jurada": "Aprobado",
            }
        ]
    }
]

ENTRIES = BLOCKS[0]["data"]


def make_client(handler, calls=None):
    def recording_handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return handler(request)

    return SenceClient(
        declarations_url=DECL_URL,
        course_sync_url=COURSE_URL,
        timeout=5,
        transport=httpx.MockTransport(recording_handler),
    )


class TestFetchDeclarations:
    @pytest.mark.asyncio
    async def test_success_unwraps_blocks(self):
        client = make_client(
            lambda req: httpx.Response(200, json={"status": "success", "data": BLOCKS})
        )
        result = await client.fetch_declarations(
            COOKIES, "76123456", "3", ["SENCE-001"], "ops@example.cl", "42"
        )
        assert result.ok is True
        assert result.blocks == BLOCKS

    @pytest.mark.asyncio
    async def test_payload_shape(self):
        calls = []
        client = make_client(
            lambda req: httpx.Response(200, json={"status": "success", "data": []}), calls
        )
        await client.fetch_declarations(COOKIES, "76123456", "3", ["SENCE-001"], "a@b.cl", "42")
        assert len(calls) == 1
        assert str(calls[0].url) == DECL_URL
        body = json.loads(calls[0].content)
        assert body["cookies"] == COOKIES
        assert body["otec"] == "76123456"
        assert body["djtype"] == "3"
        assert body["input_data"] == ["SENCE-001"]
        assert body["email"] == "a@b.cl"
        assert body["user_id"] == "42"
        assert "login_data" not in body

    @pytest.mark.asyncio
    async def test_default_declaration_type(self):
        calls = []
        client = make_client(
            lambda req: httpx.Response(200, json={"status": "success", "data": []}), calls
        )
        await client.fetch_declarations(COOKIES, "76123456", None, ["1"])
        assert json.loads(calls[0].content)["djtype"] == DEFAULT_DECLARATION_TYPE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cookies", [[], None])
    async def test_missing_cookies_raises_before_request(self, cookies):
        calls = []
        client = make_client(lambda req: httpx.Response(200, json={}), calls)
        with pytest.raises(InvalidCredentialsError):
            await client.fetch_declarations(cookies, "76123456", "3", ["1"])
        assert calls == []

    @pytest.mark.asyncio
    async def test_remote_status_error_is_failure(self):
        client = make_client(
            lambda req: httpx.Response(200, json={"status": "error", "message": "login expired"})
        )
        result = await client.fetch_declarations(COOKIES, "76123456", "3", ["1"])
        assert result.ok is False
        assert result.error == "login expired"
        assert result.raw == {"status": "error", "message": "login expired"}

    @pytest.mark.asyncio
    async def test_http_error_keeps_raw_payload(self):
        client = make_client(
            lambda req: httpx.Response(500, json={"message": "function crashed"})
        )
        result = await client.fetch_declarations(COOKIES, "76123456", "3", ["1"])
        assert result.ok is False
        assert result.status_code == 500
        assert "function crashed" in result.error
        assert result.raw == {"message": "function crashed"}

    @pytest.mark.asyncio
    async def test_transport_error_is_failure_not_exception(self):
        def boom(req):
            raise httpx.ConnectError("connection refused", request=req)

        client = make_client(boom)
        result = await client.fetch_declarations(COOKIES, "76123456", "3", ["1"])
        assert result.ok is False
        assert "Connection error" in result.error

    @pytest.mark.asyncio
    async def test_timeout_is_failure(self):
        def slow(req):
            raise httpx.ReadTimeout("timed out", request=req)

        client = make_client(slow)
        result = await client.fetch_declarations(COOKIES, "76123456", "3", ["1"])
        assert result.ok is False
        assert result.error.startswith("Timeout")

    @pytest.mark.asyncio
    async def test_plain_list_response_is_success(self):
        client = make_client(lambda req: httpx.Response(200, json=BLOCKS))
        result = await client.fetch_declarations(COOKIES, "76123456", "3", ["1"])
        assert result.ok is True
        assert result.blocks == BLOCKS


class TestFetchWithLogin:
    @pytest.mark.asyncio
    async def test_sends_login_data(self):
        calls = []
        client = make_client(
            lambda req: httpx.Response(200, json={"status": "success", "data": BLOCKS}), calls
        )
        result = await client.fetch_declarations_with_login(
            "12345678-9", "secret", "76123456", "2", ["SENCE-001"]
        )
        assert result.ok is True
        body = json.loads(calls[0].content)
        assert body["login_data"] == {"username": "12345678-9", "password": "secret"}
        assert "cookies" not in body

    @pytest.mark.asyncio
    async def test_flat_entry_list_becomes_one_block(self):
        client = make_client(
            lambda req: httpx.Response(200, json={"status": "success", "data": ENTRIES})
        )
        result = await client.fetch_declarations_with_login(
            "12345678-9", "secret", "76123456", "2", ["SENCE-001"]
        )
        assert result.ok is True
        assert result.blocks == [{"data": ENTRIES}]

    @pytest.mark.asyncio
    async def test_missing_credentials_raise(self):
        client = make_client(lambda req: httpx.Response(200, json={}))
        with pytest.raises(InvalidCredentialsError):
            await client.fetch_declarations_with_login("", "", "76123456", "2", ["1"])


class TestRegisterCourse:
    @pytest.mark.asyncio
    async def test_posts_acc_cap(self):
        calls = []
        client = make_client(lambda req: httpx.Response(200, json={"ok": True}), calls)
        result = await client.register_course("6731234")
        assert result.ok is True
        assert str(calls[0].url) == COURSE_URL
        assert json.loads(calls[0].content) == {"acc_cap": "6731234"}

    @pytest.mark.asyncio
    async def test_text_error_body_is_kept(self):
        text = 'duplicate key value violates unique constraint "cursos_pkey"'
        client = make_client(lambda req: httpx.Response(500, text=text))
        result = await client.register_course("6731234")
        assert result.ok is False
        assert result.raw == text


class TestAsBlocks:
    def test_blocks_unchanged(self):
        assert as_blocks(BLOCKS) is BLOCKS

    def test_flat_entries_wrapped(self):
        assert as_blocks(ENTRIES) == [{"data": ENTRIES}]

    @pytest.mark.parametrize("data", [None, [], {"oops": 1}, [{"status": "success"}]])
    def test_other_shapes_unchanged(self, data):
        assert as_blocks(data) == data
