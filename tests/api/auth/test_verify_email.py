from datetime import timedelta
from models.users import User
from utils.verification import utcnow


async def register(client, email="verify@example.com"):
    response = await client.post("/auth/register", json={
        "email": email,
        "name": "Verify Me",
        "password": "Password123!"
    })
    assert response.status_code == 201
    return response.json()


async def test_verify_email_success(client, session):
    """Test verifying with the token emailed on registration."""
    await register(client)
    user = session.query(User).filter(User.email == "verify@example.com").first()
    token = user.email_verification_token

    response = await client.get(f"/auth/verify-email/{token}")

    assert response.status_code == 200
    assert "verified" in response.json()["message"].lower()

    session.refresh(user)
    assert user.is_email_verified is True
    assert user.email_verification_token is None


async def test_verify_email_token_single_use(client, session):
    await register(client)
    token = session.query(User).filter(User.email == "verify@example.com").first().email_verification_token

    first = await client.get(f"/auth/verify-email/{token}")
    second = await client.get(f"/auth/verify-email/{token}")

    assert first.status_code == 200
    assert second.status_code == 400
    assert "invalid or expired" in second.json()["detail"].lower()


async def test_verify_email_invalid_token(client):
    response = await client.get("/auth/verify-email/not-a-real-token")

    assert response.status_code == 400
    assert "invalid or expired" in response.json()["detail"].lower()


async def test_verify_email_expired_token(client, session):
    await register(client)
    user = session.query(User).filter(User.email == "verify@example.com").first()
    token = user.email_verification_token

    user.email_verification_expires_at = utcnow() - timedelta(hours=1)
    session.commit()

    response = await client.get(f"/auth/verify-email/{token}")

    assert response.status_code == 400


async def test_resend_verification(client, session):
    await register(client)
    old_token = session.query(User).filter(User.email == "verify@example.com").first().email_verification_token

    response = await client.post("/auth/resend-verification", json={"email": "verify@example.com"})

    assert response.status_code == 200

    user = session.query(User).filter(User.email == "verify@example.com").first()
    session.refresh(user)
    assert user.email_verification_token != old_token

    # The replaced token no longer works
    response = await client.get(f"/auth/verify-email/{old_token}")
    assert response.status_code == 400


async def test_resend_verification_unknown_email(client):
    response = await client.post("/auth/resend-verification", json={"email": "ghost@example.com"})

    assert response.status_code == 404


async def test_resend_verification_already_verified(client, verified_user):
    response = await client.post("/auth/resend-verification", json={"email": verified_user.email})

    assert response.status_code == 409
    assert "already verified" in response.json()["detail"].lower()
