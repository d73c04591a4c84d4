from sqlalchemy.orm import Session
from core.permissions import Role
from models.users import User
from utils.hashing import get_password_hash

TEST_PASSWORD = "TestPassword123!"


def make_user(session: Session, email: str, role: Role = Role.CUSTOMER, is_active: bool = True,
    is_email_verified: bool = True, name: str = "Test User") -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=role,
        is_active=is_active,
        is_email_verified=is_email_verified,
        token_version=1
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def bearer(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}
