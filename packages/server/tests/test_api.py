"""
Integration tests for the HTTP API.

The app runs in-process through httpx's ASGI transport with the document
store swapped for one bound to the per-test SQLite database.
"""

from __future__ import annotations

import uuid

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from foundly.core.config import get_settings
from foundly.core.errors import StoreUnavailableError
from foundly.core.store import get_store
from foundly.main import app


def _token(user_id) -> str:
    settings = get_settings()
    return jwt.encode({"sub": str(user_id)}, settings.secret_key, algorithm=settings.jwt_algorithm)


def _auth(user_id) -> dict:
    return {"Authorization": f"Bearer {_token(user_id)}"}


@pytest.fixture
async def client(store):
    app.dependency_overrides[get_store] = lambda: store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/orgs")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client: AsyncClient):
        response = await client.get("/api/v1/orgs", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_legacy_user_id_claim(self, client: AsyncClient, make_user):
        user = await make_user()
        settings = get_settings()
        token = jwt.encode({"userId": str(user.id)}, settings.secret_key, algorithm=settings.jwt_algorithm)
        response = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["id"] == str(user.id)


class TestOrgEndpoints:
    @pytest.mark.asyncio
    async def test_create_org(self, client: AsyncClient, make_user):
        user = await make_user()
        response = await client.post(
            "/api/v1/orgs",
            json={"name": "Food Bank", "customJoinCode": "food01"},
            headers=_auth(user.id),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["join_code"] == "FOOD01"
        assert data["member_count"] == 1
        assert data["members"][0]["user"] == str(user.id)
        assert data["members"][0]["role"] == "admin"

    @pytest.mark.asyncio
    async def test_create_org_duplicate_code(self, client: AsyncClient, make_user, make_org):
        user = await make_user()
        await make_org(join_code="FOOD01")
        response = await client.post(
            "/api/v1/orgs",
            json={"name": "Food Bank", "customJoinCode": "FOOD01"},
            headers=_auth(user.id),
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "conflict"

    @pytest.mark.asyncio
    async def test_join_then_join_again(self, client: AsyncClient, make_user, make_org):
        user = await make_user()
        org = await make_org(join_code="ABC123")

        first = await client.post("/api/v1/orgs/join", json={"joinCode": " abc123"}, headers=_auth(user.id))
        second = await client.post("/api/v1/orgs/join", json={"joinCode": "ABC123"}, headers=_auth(user.id))

        assert first.status_code == 200
        assert first.json()["kind"] == "joined"
        assert first.json()["organization"]["id"] == str(org.id)
        assert second.status_code == 200
        assert second.json()["kind"] == "already_member"
        assert second.json()["organization"]["member_count"] == 1

    @pytest.mark.asyncio
    async def test_join_invalid_code(self, client: AsyncClient, make_user):
        user = await make_user()
        response = await client.post("/api/v1/orgs/join", json={"joinCode": "NOPE99"}, headers=_auth(user.id))
        assert response.status_code == 404
        body = response.json()
        assert body["error"]["code"] == "not_found"
        assert "Invalid join code" in body["error"]["message"]

    @pytest.mark.asyncio
    async def test_join_empty_code(self, client: AsyncClient, make_user):
        user = await make_user()
        response = await client.post("/api/v1/orgs/join", json={"joinCode": "   "}, headers=_auth(user.id))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_list_orgs(self, client: AsyncClient, make_user, make_org):
        user = await make_user()
        await make_org(join_code="ABC123", name="Garden Club")
        await client.post("/api/v1/orgs/join", json={"joinCode": "ABC123"}, headers=_auth(user.id))

        response = await client.get("/api/v1/orgs", headers=_auth(user.id))

        assert response.status_code == 200
        data = response.json()
        assert [o["name"] for o in data["data"]] == ["Garden Club"]
        assert data["data"][0]["is_current"] is True

    @pytest.mark.asyncio
    async def test_get_org_requires_membership(self, client: AsyncClient, make_user, make_org, link):
        member = await make_user()
        outsider = await make_user()
        org = await make_org()
        await link(member, org)

        ok = await client.get(f"/api/v1/orgs/{org.id}", headers=_auth(member.id))
        denied = await client.get(f"/api/v1/orgs/{org.id}", headers=_auth(outsider.id))
        missing = await client.get(f"/api/v1/orgs/{uuid.uuid4()}", headers=_auth(member.id))

        assert ok.status_code == 200
        assert ok.json()["member_count"] == 1
        assert denied.status_code == 403
        assert missing.status_code == 404


class TestUserEndpoints:
    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, make_user):
        user = await make_user(email="ana@example.org")
        response = await client.get("/api/v1/users/me", headers=_auth(user.id))
        assert response.status_code == 200
        assert response.json()["email"] == "ana@example.org"

    @pytest.mark.asyncio
    async def test_me_unknown_user(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me", headers=_auth(uuid.uuid4()))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_switch_current_organization(self, client: AsyncClient, make_user, make_org, link):
        user = await make_user()
        org = await make_org()
        other = await make_org()
        await link(user, org)

        ok = await client.put(
            "/api/v1/users/me/current-organization",
            json={"organizationId": str(org.id)},
            headers=_auth(user.id),
        )
        denied = await client.put(
            "/api/v1/users/me/current-organization",
            json={"organizationId": str(other.id)},
            headers=_auth(user.id),
        )

        assert ok.status_code == 200
        assert ok.json()["current_organization"] == str(org.id)
        assert denied.status_code == 403


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_store_outage_is_retryable(self, client: AsyncClient, store, make_user, monkeypatch):
        user = await make_user()

        async def down(code):
            raise StoreUnavailableError("find_org_by_join_code failed: document store unavailable")

        monkeypatch.setattr(store, "find_org_by_join_code", down)
        response = await client.post("/api/v1/orgs/join", json={"joinCode": "ABC123"}, headers=_auth(user.id))

        assert response.status_code == 503
        body = response.json()
        assert body["error"]["code"] == "store_unavailable"
        assert body["error"]["message"].endswith("Please retry.")
