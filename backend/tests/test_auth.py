"""Tests for authentication endpoints."""
import pytest
from sqlalchemy import select

from conftest import TEST_PASSWORD, auth_headers, make_user
from tipoko.models.channel import Channel
from tipoko.models.user import User
from tipoko.auth.security import create_refresh_token, decode_token, hash_password, verify_password
from tipoko.services.platform_settings import set_setting


def test_password_hashing():
    hashed = hash_password("Secret123")
    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)
    assert not verify_password("Secret123", "not-a-bcrypt-hash")


def test_token_types_are_checked():
    refresh = create_refresh_token({"sub": "abc"})
    assert decode_token(refresh) is None
    assert decode_token(refresh, expected_type="refresh")["sub"] == "abc"
    assert decode_token("garbage") is None


@pytest.mark.asyncio
async def test_register_success(client, test_db):
    """Test successful user registration creates the default channel."""
    response = await client.post(
        "/api/auth/register",
        json={
            "username": "Moussa_K",
            "email": "moussa@example.com",
            "password": "Test1234a",
            "display_name": "Moussa"
        }
    )

    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["token_type"] == "bearer"

    result = await test_db.execute(select(User).where(User.email == "moussa@example.com"))
    user = result.scalar_one()
    assert user.role == "user"
    assert user.is_verified is False

    result = await test_db.execute(select(Channel).where(Channel.user_id == user.uuid))
    channel = result.scalar_one()
    assert channel.handle == "moussa_k"
    assert channel.name == "Moussa"


@pytest.mark.asyncio
async def test_register_handle_collision_gets_suffix(client, test_db):
    owner = await make_user(test_db, "fatou")
    result = await test_db.execute(select(Channel).where(Channel.user_id == owner.uuid))
    result.scalar_one().handle = "issa"
    await test_db.commit()

    response = await client.post(
        "/api/auth/register",
        json={"username": "Issa", "email": "issa@example.com", "password": "Test1234a"}
    )
    assert response.status_code == 200

    result = await test_db.execute(
        select(Channel).join(User, User.uuid == Channel.user_id).where(User.username == "Issa")
    )
    assert result.scalar_one().handle.startswith("issa-")


@pytest.mark.asyncio
async def test_register_duplicate_email(client, regular_user):
    response = await client.post(
        "/api/auth/register",
        json={"username": "other", "email": regular_user.email, "password": "Test1234a"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_register_duplicate_username(client, regular_user):
    response = await client.post(
        "/api/auth/register",
        json={"username": regular_user.username, "email": "new@example.com", "password": "Test1234a"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_register_weak_password(client):
    response = await client.post(
        "/api/auth/register",
        json={"username": "weakling", "email": "weak@example.com", "password": "alllowercase"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_disabled(client, test_db):
    await set_setting(test_db, "registration_enabled", False)
    await test_db.commit()

    response = await client.post(
        "/api/auth/register",
        json={"username": "late", "email": "late@example.com", "password": "Test1234a"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_login_success(client, test_db, regular_user):
    response = await client.post(
        "/api/auth/login", json={"email": regular_user.email, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    token = response.json()["access_token"]
    assert decode_token(token)["sub"] == regular_user.uuid

    await test_db.refresh(regular_user)
    assert regular_user.last_login is not None


@pytest.mark.asyncio
async def test_login_wrong_password(client, regular_user):
    response = await client.post(
        "/api/auth/login", json={"email": regular_user.email, "password": "WrongPass1"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_inactive_account(client, test_db):
    user = await make_user(test_db, "dormant", is_active=False)
    response = await client.post("/api/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_refresh_token(client, regular_user):
    login = await client.post(
        "/api/auth/login", json={"email": regular_user.email, "password": TEST_PASSWORD}
    )
    refresh_token = login.json()["refresh_token"]

    response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 200
    assert "access_token" in response.json()

    # An access token is not accepted as a refresh token
    response = await client.post("/api/auth/refresh", json={"refresh_token": login.json()["access_token"]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me(client, regular_user):
    response = await client.get("/api/auth/me", headers=auth_headers(regular_user))
    assert response.status_code == 200
    assert response.json()["username"] == "awa"

    response = await client.get("/api/auth/me")
    assert response.status_code == 401
