import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from liveclass.auth.models import AdminUser

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "StrongPass123"


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, admin: AdminUser) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": ADMIN_EMAIL.upper(), "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    data = response.json()

    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert data["expires_in"] > 0
    assert data["admin"]["email"] == ADMIN_EMAIL
    assert data["admin"]["id"] == str(admin.id)


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, admin: AdminUser) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": ADMIN_EMAIL, "password": "not-the-password"},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient, admin: AdminUser) -> None:
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "nobody@example.com", "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_admin_cannot_login(
    client: AsyncClient, admin: AdminUser, db_session: AsyncSession
) -> None:
    admin.status = "INACTIVE"
    await db_session.commit()

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_me_returns_current_admin(client: AsyncClient, auth_headers) -> None:
    response = await client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == ADMIN_EMAIL


@pytest.mark.asyncio
async def test_admin_routes_require_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/admin/classes")
    assert response.status_code == 401

    response = await client.get(
        "/api/v1/admin/classes", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401
