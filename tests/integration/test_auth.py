"""
Tests for the built-in token issuer and user registration.
"""
import pytest
from httpx import AsyncClient

from backend.app.models.audit_orm import AuditLogORM
from backend.app.models.user_orm import UserORM


@pytest.mark.asyncio
async def test_signup_issues_token_and_audits_user_creation(client: AsyncClient, count_rows):
    response = await client.post(
        "/api/v1/auth/signup",
        json={"username": "jane", "password": "correct-horse", "display_name": "Jane Doe"},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["role"] == "editor"

    assert await count_rows(UserORM.__table__, username="jane") == 1
    assert await count_rows(AuditLogORM.__table__, action="CREATE", table_name="users") == 1

    # The issued token is accepted for writes
    create = await client.post(
        "/api/v1/records/product_lines",
        json={"name": "Sensors"},
        headers={"Authorization": f"Bearer {body['access_token']}"},
    )
    assert create.status_code == 201, create.text
    assert create.json()["created_by"] != "jane"


@pytest.mark.asyncio
async def test_duplicate_signup_conflicts(client: AsyncClient, count_rows):
    payload = {"username": "jane", "password": "correct-horse"}
    await client.post("/api/v1/auth/signup", json=payload)
    response = await client.post("/api/v1/auth/signup", json=payload)

    assert response.status_code == 409
    assert await count_rows(UserORM.__table__) == 1
    assert await count_rows(AuditLogORM.__table__, table_name="users") == 1


@pytest.mark.asyncio
async def test_login_with_password(client: AsyncClient):
    await client.post("/api/v1/auth/signup", json={"username": "jane", "password": "correct-horse"})

    ok = await client.post("/api/v1/auth/token", data={"username": "jane", "password": "correct-horse"})
    assert ok.status_code == 200
    assert ok.json()["access_token"]

    bad = await client.post("/api/v1/auth/token", data={"username": "jane", "password": "wrong-password"})
    assert bad.status_code == 401
