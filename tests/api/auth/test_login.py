from jose import jwt
from core.config import settings
from tests.helpers import make_user


async def test_login_success(client, verified_user):
    """Test successful user login."""

    response = await client.post("/auth/token", data={
        "username": verified_user.email,
        "password": "TestPassword123!"
    })

    assert response.status_code == 200

    data = response.json()
    access_token = data["access_token"]
    refresh_token = data["refresh_token"]

    assert isinstance(access_token, str) and len(access_token) > 0
    assert isinstance(refresh_token, str) and len(refresh_token) > 0
    assert data["token_type"] == "bearer"

    # Verify token claims
    payload = jwt.decode(access_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

    assert payload["sub"] == verified_user.email
    assert payload["id"] == verified_user.id
    assert payload["role"] == "customer"
    assert payload["token_version"] == 1
    assert payload["type"] == "access"


async def test_login_returns_public_user(client, verified_user):
    response = await client.post("/auth/token", data={
        "username": verified_user.email,
        "password": "TestPassword123!"
    })

    user = response.json()["user"]
    assert user["id"] == verified_user.id
    assert user["email"] == "jane@example.com"
    assert user["name"] == "Jane Customer"

    for secret in ("hashed_password", "refresh_token_hash", "email_verification_token",
                   "password_reset_token", "token_version"):
        assert secret not in user


async def test_login_email_is_case_insensitive(client, verified_user):
    response = await client.post("/auth/token", data={
        "username": "JANE@Example.com",
        "password": "TestPassword123!"
    })

    assert response.status_code == 200


async def test_login_wrong_password(client, verified_user):
    """Test login with incorrect password."""

    response = await client.post("/auth/token", data={
        "username": verified_user.email,
        "password": "WrongPassword123!"
    })

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"
    assert response.headers["www-authenticate"] == "Bearer"


async def test_login_nonexistent_user(client):
    """Unknown email looks the same as a wrong password."""
    response = await client.post("/auth/token", data={
        "username": "nonexistent@example.com",
        "password": "Password123!"
    })

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


async def test_login_unverified_email_allowed(client, session):
    make_user(session, "unverified@example.com", is_email_verified=False)

    response = await client.post("/auth/token", data={
        "username": "unverified@example.com",
        "password": "TestPassword123!"
    })

    assert response.status_code == 200
    assert response.json()["user"]["is_email_verified"] is False


async def test_login_inactive_user(client, session):
    """Test login for an inactive user"""
    make_user(session, "inactive@example.com", is_active=False)

    response = await client.post("/auth/token", data={
        "username": "inactive@example.com",
        "password": "TestPassword123!"
    })

    assert response.status_code == 403
    assert "inactive" in response.json()["detail"].lower()
