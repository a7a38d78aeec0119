"""Tests for app-wide behavior: health, middleware and error rendering"""
from httpx import ASGITransport, AsyncClient

from core.config import Settings
from main import create_app


class TestHealth:
    async def test_health_checks_database(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "checks": {"api": True, "database": True}}

    async def test_root(self, client):
        assert (await client.get("/")).json()["status"] == "running"


class TestMiddleware:
    async def test_security_headers(self, client):
        response = await client.get("/")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "Strict-Transport-Security" not in response.headers

    async def test_correlation_id_is_echoed_or_generated(self, client):
        echoed = await client.get("/", headers={"X-Correlation-ID": "req-123"})
        generated = await client.get("/")

        assert echoed.headers["X-Correlation-ID"] == "req-123"
        assert generated.headers["X-Correlation-ID"]

    async def test_oversized_request_is_rejected_before_routing(self):
        app = create_app(Settings(max_request_size=16))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post("/api/auth/login", content=b"x" * 64, headers={"Content-Type": "application/json"})

        assert response.status_code == 413
        body = response.json()
        assert body["code"] == "PAYLOAD_TOO_LARGE"
        assert body["details"]["max_size_bytes"] == 16


class TestErrorRendering:
    async def test_unknown_route_uses_error_shape(self, client):
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found", "code": "NOT_FOUND", "details": {}}

    async def test_stack_is_included_only_in_debug(self, client):
        debug_app = create_app(Settings(debug=True, environment="development"))
        quiet = await client.get("/api/auth/me")

        async with AsyncClient(transport=ASGITransport(app=debug_app), base_url="http://test") as ac:
            verbose = await ac.get("/api/auth/me")

        assert "stack" not in quiet.json()
        assert verbose.status_code == 401
        assert "UnauthorizedError" in verbose.json()["stack"]
