"""
Spoken Admin API — Security Header Tests
==========================================
"""

import pytest
from starlette.responses import JSONResponse

from spoken_admin.middleware.security_headers import SECURITY_HEADERS, apply_security_headers


class TestApplySecurityHeaders:
    def test_sets_full_header_set(self):
        response = apply_security_headers(JSONResponse({"ok": True}))

        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value

    def test_idempotent(self):
        response = apply_security_headers(apply_security_headers(JSONResponse({})))

        for name in SECURITY_HEADERS:
            assert len(response.headers.getlist(name)) == 1

    def test_overwrites_existing_value(self):
        response = JSONResponse({}, headers={"X-Frame-Options": "SAMEORIGIN"})

        apply_security_headers(response)

        assert response.headers.getlist("X-Frame-Options") == ["DENY"]


class TestSecurityHeadersMiddleware:
    @pytest.mark.asyncio
    async def test_plain_routes_carry_headers(self, test_client):
        """Routes outside the pipeline (the OpenAPI document) get the same set."""
        response = await test_client.get("/openapi.json")

        assert response.status_code == 200
        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value
