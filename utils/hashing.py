import hashlib
from passlib.context import CryptContext

bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto')

def get_password_hash(password: str):
    # Bcrypt has a 72-byte limit, truncate if necessary
    return bcrypt_context.hash(password[:72])


def verify_password(plain_password: str, hashed_password: str | None):
    # OAuth-only accounts have no password to compare against
    if not hashed_password:
        return False
    return bcrypt_context.verify(plain_password[:72], hashed_password)


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store refresh tokens without keeping them readable."""
    return hashlib.sha256(token.encode()).hexdigest()
