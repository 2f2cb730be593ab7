"""
test_middleware.py — Tests for request-id, security headers, /api/v1 rewrite
and the structured error body

Validates that request_id_middleware in main.py decorates every response
and that every error (HTTPException, validation, illegal transition, store
error) comes back as ErrorResponse {error, status_code, request_id, detail}.

Called by: pytest
Depends on: autoquote.main
"""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def anon_client():
    """TestClient without auth overrides."""
    from autoquote.main import app

    app.dependency_overrides.clear()
    return TestClient(app)


# ── Headers ─────────────────────────────────────────────────────────


class TestHeaders:
    def test_request_id(self, client):
        resp = client.get("/health")
        assert len(resp.headers["X-Request-ID"]) == 8

    def test_request_ids_differ(self, client):
        a = client.get("/health").headers["X-Request-ID"]
        b = client.get("/health").headers["X-Request-ID"]
        assert a != b

    @pytest.mark.parametrize(
        "name,value",
        [
            ("X-Content-Type-Options", "nosniff"),
            ("X-Frame-Options", "DENY"),
            ("X-XSS-Protection", "1; mode=block"),
            ("Referrer-Policy", "strict-origin-when-cross-origin"),
            ("X-API-Version", "v1"),
        ],
    )
    def test_security_headers(self, client, name, value):
        assert client.get("/health").headers.get(name) == value

    def test_headers_on_errors(self, client):
        resp = client.get("/api/quotations/999999")
        assert resp.status_code == 404
        assert resp.headers.get("X-Frame-Options") == "DENY"


# ── Versioning ──────────────────────────────────────────────────────


class TestApiVersioning:
    def test_v1_prefix_reaches_same_route(self, client, test_quotation):
        plain = client.get(f"/api/quotations/{test_quotation.id}")
        versioned = client.get(f"/api/v1/quotations/{test_quotation.id}")
        assert plain.status_code == versioned.status_code == 200
        assert plain.json()["id"] == versioned.json()["id"]

    def test_v1_unknown_route_404(self, client):
        assert client.get("/api/v1/does-not-exist").status_code == 404

    def test_health_not_rewritten(self, client):
        assert client.get("/health").json()["status"] == "ok"


# ── Error bodies ────────────────────────────────────────────────────


class TestErrorResponses:
    def test_not_found_body(self, client):
        resp = client.get("/api/quotations/999999")
        body = resp.json()
        assert body["error"] == "Quotation not found"
        assert body["status_code"] == 404
        assert body["request_id"] == resp.headers["X-Request-ID"]
        assert body["detail"] is None

    def test_validation_body(self, client):
        resp = client.post("/api/vehicles", json={"brand": "Honda"})
        body = resp.json()
        assert resp.status_code == 422
        assert body["error"] == "Validation failed"
        assert any(d["loc"][-1] == "model" for d in body["detail"])

    def test_transition_conflict_is_409(self, client, test_quotation, make_supplier, make_request):
        req = make_request(test_quotation, make_supplier("Fornecedor A"), prices=[(True, 10), (True, 10)])
        resp = client.post(f"/api/quotations/{test_quotation.id}/requests/{req.id}/resend")
        assert resp.status_code == 409
        assert resp.json()["status_code"] == 409

    def test_unauthenticated_is_401(self, anon_client):
        resp = anon_client.get("/api/quotations")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Not authenticated"
