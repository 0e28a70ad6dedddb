"""Tests for API middleware (auth, request ID)."""

import httpx

from marketplace.api.middleware import bearer_token, is_public_path


class TestApiKeyMiddleware:
    """Tests for API key authentication middleware."""

    async def test_missing_auth_header(self, anon_client: httpx.AsyncClient) -> None:
        """Protected endpoints return 401 without an auth header."""
        response = await anon_client.get("/carts/1")

        assert response.status_code == 401
        body = response.json()
        assert body["error_code"] == "UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_invalid_auth_format(self, anon_client: httpx.AsyncClient) -> None:
        """Non-bearer credentials are rejected."""
        response = await anon_client.get("/carts/1", headers={"Authorization": "Basic abc"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    async def test_invalid_api_key(self, anon_client: httpx.AsyncClient) -> None:
        response = await anon_client.get("/carts/1", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_API_KEY"

    async def test_docs_are_public(self, anon_client: httpx.AsyncClient) -> None:
        response = await anon_client.get("/openapi.json")

        assert response.status_code == 200


class TestRequestContextMiddleware:
    """Tests for request ID correlation."""

    async def test_generated_when_absent(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health")

        assert response.headers["X-Request-ID"]

    async def test_echoed_when_given(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    async def test_error_body_carries_request_id(self, client: httpx.AsyncClient) -> None:
        """Error responses repeat the request ID for correlation."""
        response = await client.get("/orders/999", headers={"X-Request-ID": "req-404"})

        assert response.status_code == 404
        assert response.json()["request_id"] == "req-404"
        assert response.headers["X-Request-ID"] == "req-404"

    async def test_unauthorized_carries_request_id(self, anon_client: httpx.AsyncClient) -> None:
        response = await anon_client.get("/orders/1", headers={"X-Request-ID": "req-401"})

        assert response.status_code == 401
        assert response.json()["request_id"] == "req-401"
        assert response.headers["X-Request-ID"] == "req-401"


class TestAuthHelpers:
    """Tests for header parsing and public path matching."""

    def test_bearer_token(self) -> None:
        assert bearer_token("Bearer abc") == "abc"
        assert bearer_token("bearer abc") == "abc"
        assert bearer_token("Basic abc") is None
        assert bearer_token("Bearer") is None
        assert bearer_token(None) is None

    def test_public_paths(self) -> None:
        assert is_public_path("/health")
        assert is_public_path("/ready/")
        assert is_public_path("/docs/oauth2-redirect")
        assert not is_public_path("/orders/1")
        assert not is_public_path("/")
