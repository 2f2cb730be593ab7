"""
test_routers_companies.py — Tests for routers/companies.py (admin only)

Called by: pytest
Depends on: autoquote/routers/companies.py, conftest.py
"""

import pytest
from fastapi.testclient import TestClient

from autoquote.services.auth_service import company_id_for


@pytest.fixture()
def admin_client(client: TestClient, admin_user):
    """The shared client, authenticated as the admin instead of test_user."""
    from autoquote.dependencies import require_user
    from autoquote.main import app

    app.dependency_overrides[require_user] = lambda: admin_user
    return client


class TestCompanies:
    def test_non_admin_forbidden(self, client):
        resp = client.post("/api/companies", json={"name": "Rede Sul"})
        assert resp.status_code == 403
        assert resp.json()["error"] == "Admin access required"

    def test_create_and_list(self, admin_client):
        created = admin_client.post("/api/companies", json={"name": "Rede Sul", "state": "rs"})
        assert created.status_code == 201
        assert created.json()["state"] == "RS"
        names = [c["name"] for c in admin_client.get("/api/companies").json()["companies"]]
        assert names == ["Rede Sul"]

    def test_add_member_then_change_role(self, admin_client, test_user):
        cid = admin_client.post("/api/companies", json={"name": "Rede Sul"}).json()["id"]

        added = admin_client.post(f"/api/companies/{cid}/members", json={"email": "Oficina@autoquote.test"})
        assert added.json()["members"] == [
            {"user_id": test_user.id, "email": "oficina@autoquote.test", "role": "member"}
        ]

        again = admin_client.post(
            f"/api/companies/{cid}/members", json={"email": "oficina@autoquote.test", "role": "admin"}
        ).json()
        assert len(again["members"]) == 1
        assert again["members"][0]["role"] == "admin"

    def test_membership_resolves_company(self, admin_client, db_session, test_user):
        cid = admin_client.post("/api/companies", json={"name": "Rede Sul"}).json()["id"]
        admin_client.post(f"/api/companies/{cid}/members", json={"email": test_user.email})
        assert company_id_for(db_session, test_user.id) == cid

    def test_unknown_user(self, admin_client):
        cid = admin_client.post("/api/companies", json={"name": "Rede Sul"}).json()["id"]
        resp = admin_client.post(f"/api/companies/{cid}/members", json={"email": "x@y.test"})
        assert resp.status_code == 404

    def test_remove_member(self, admin_client, test_user):
        cid = admin_client.post("/api/companies", json={"name": "Rede Sul"}).json()["id"]
        admin_client.post(f"/api/companies/{cid}/members", json={"email": test_user.email})
        assert admin_client.delete(f"/api/companies/{cid}/members/{test_user.id}").json() == {"ok": True}
        assert admin_client.delete(f"/api/companies/{cid}/members/{test_user.id}").status_code == 404
