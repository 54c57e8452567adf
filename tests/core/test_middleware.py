"""Tests for the request ID and security header middleware."""

import uuid

from httpx import AsyncClient

from oversight.core.middleware import resolve_request_id


class TestRequestIdMiddleware:
    async def test_response_includes_request_id_header(self, client: AsyncClient) -> None:
        res = await client.get("/health")
        assert "x-request-id" in res.headers

    async def test_generated_request_id_is_valid_uuid(self, client: AsyncClient) -> None:
        res = await client.get("/health")
        uuid.UUID(res.headers["x-request-id"])

    async def test_client_supplied_request_id_is_echoed_back(self, client: AsyncClient) -> None:
        my_id = str(uuid.uuid4())
        res = await client.get("/health", headers={"X-Request-ID": my_id})
        assert res.headers["x-request-id"] == my_id

    async def test_request_id_present_on_404(self, client: AsyncClient) -> None:
        res = await client.get("/does-not-exist")
        assert "x-request-id" in res.headers

    async def test_malformed_request_id_is_replaced(self, client: AsyncClient) -> None:
        res = await client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        uuid.UUID(res.headers["x-request-id"])


class TestResolveRequestId:
    def test_keeps_safe_value(self) -> None:
        assert resolve_request_id("trace-01.abc_DEF") == "trace-01.abc_DEF"

    def test_rejects_overlong_value(self) -> None:
        assert resolve_request_id("a" * 129) != "a" * 129

    def test_missing_value_mints_uuid(self) -> None:
        uuid.UUID(resolve_request_id(None))


class TestSecurityHeadersMiddleware:
    async def test_x_content_type_options_nosniff(self, client: AsyncClient) -> None:
        res = await client.get("/health")
        assert res.headers.get("x-content-type-options") == "nosniff"

    async def test_x_frame_options_deny(self, client: AsyncClient) -> None:
        res = await client.get("/health")
        assert res.headers.get("x-frame-options") == "DENY"

    async def test_referrer_policy(self, client: AsyncClient) -> None:
        res = await client.get("/health")
        assert res.headers.get("referrer-policy") == "strict-origin-when-cross-origin"

    async def test_scan_records_not_cached(self, client: AsyncClient) -> None:
        res = await client.get("/security/scans/unknown")
        assert res.headers.get("cache-control") == "no-store"


class TestCors:
    async def test_preflight_allowed(self, client: AsyncClient) -> None:
        res = await client.options(
            "/security/scans",
            headers={
                "Origin": "https://dashboard.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert res.status_code == 200
        assert "access-control-allow-origin" in res.headers
