import secrets
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from sqlalchemy.orm import Session
from jose import jwt, JWTError, ExpiredSignatureError
from models.users import User
from core.config import settings
from core.permissions import Role
from core.exceptions import (InvalidTokenError, ExpiredTokenError, StaleTokenError,
    UnauthorizedError, AuthorizationError)
from utils.hashing import hash_token
from utils.logger import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access or refresh token."""
    user_id: int
    email: str
    role: Role
    token_version: int
    token_type: str
    expires_at: datetime


class TokenService:
    """
    Issues, decodes, rotates and invalidates session tokens.

    Every token carries the user's token_version at mint time. Bumping the
    stored version makes all earlier tokens stale without keeping a
    revocation list.
    """

    @staticmethod
    def _build_payload(user: User, token_type: str, expire: datetime) -> dict:
        return {
            "sub": user.email,
            "id": user.id,
            "role": Role(user.role).value,
            "token_version": user.token_version,
            "type": token_type,
            # Two tokens minted in the same second must still differ
            "jti": secrets.token_urlsafe(16),
            "iat": datetime.now(timezone.utc),
            "exp": expire
        }

    @staticmethod
    def create_access_token(user: User, expires_delta: timedelta = None) -> str:
        """
        Creates a JWT access token signed with SECRET_KEY.

        Args:
            user: Token owner
            expires_delta: Token lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        expire = datetime.now(timezone.utc) + expires_delta
        payload = TokenService._build_payload(user, ACCESS_TOKEN_TYPE, expire)

        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_refresh_token(user: User, expires_delta: timedelta = None) -> str:
        """
        Creates a JWT refresh token signed with REFRESH_SECRET_KEY.

        Args:
            user: Token owner
            expires_delta: Token lifetime (default: REFRESH_TOKEN_EXPIRE_DAYS)
        """
        if expires_delta is None:
            expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        expire = datetime.now(timezone.utc) + expires_delta
        payload = TokenService._build_payload(user, REFRESH_TOKEN_TYPE, expire)

        return jwt.encode(payload, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def issue_tokens(user: User, db: Session) -> dict:
        """
        Creates an access + refresh token pair and stores the refresh token
        hash on the user, replacing any previous one.

        Returns:
            Dictionary with access_token, refresh_token, and token_type
        """
        access_token = TokenService.create_access_token(user)
        refresh_token = TokenService.create_refresh_token(user)

        user.refresh_token_hash = hash_token(refresh_token)
        db.commit()

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer"
        }

    @staticmethod
    def _decode(token: str, secret: str, expected_type: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
        except ExpiredSignatureError:
            raise ExpiredTokenError()
        except JWTError:
            raise InvalidTokenError()

        if payload.get("type") != expected_type:
            raise InvalidTokenError(f"Invalid token type. {expected_type.capitalize()} token required.")

        try:
            return TokenClaims(
                user_id=int(payload["id"]),
                email=payload["sub"],
                role=Role(payload["role"]),
                token_version=int(payload["token_version"]),
                token_type=payload["type"],
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
            )
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError("Invalid token payload")

    @staticmethod
    def decode_access_token(token: str) -> TokenClaims:
        return TokenService._decode(token, settings.SECRET_KEY, ACCESS_TOKEN_TYPE)

    @staticmethod
    def decode_refresh_token(token: str) -> TokenClaims:
        return TokenService._decode(token, settings.REFRESH_SECRET_KEY, REFRESH_TOKEN_TYPE)

    @staticmethod
    def refresh_tokens(refresh_token: str, db: Session) -> dict:
        """
        Validates a refresh token and issues a new token pair (rotation).

        The presented token must be the one currently stored for the user and
        must carry the user's current token_version. The old refresh token
        stops working as soon as the new pair is stored.

        Raises:
            TokenError: If the token is invalid, expired, stale or revoked
            AuthorizationError: If the account is inactive
        """
        claims = TokenService.decode_refresh_token(refresh_token)

        user = db.query(User).filter(User.id == claims.user_id).one_or_none()
        if user is None:
            raise UnauthorizedError()

        if user.refresh_token_hash is None or user.refresh_token_hash != hash_token(refresh_token):
            raise InvalidTokenError("Token not found or revoked")

        if claims.token_version != user.token_version:
            raise StaleTokenError()

        if not user.is_active:
            raise AuthorizationError("Account is inactive")

        logger.debug("Rotating refresh token", extra={"user_id": user.id})

        return TokenService.issue_tokens(user, db)

    @staticmethod
    def revoke_refresh_token(user: User, db: Session):
        """Forget the stored refresh token (logout). Access tokens live until expiry."""
        user.refresh_token_hash = None
        db.commit()

    @staticmethod
    def invalidate_all_tokens(user_id: int, db: Session) -> int:
        """
        Ends every session of a user by bumping token_version and dropping
        the stored refresh token in one UPDATE.

        Returns:
            Number of rows updated (0 if the user does not exist)
        """
        updated = db.query(User).filter(User.id == user_id).update(
            {
                User.token_version: User.token_version + 1,
                User.refresh_token_hash: None
            },
            synchronize_session=False
        )
        db.commit()

        logger.info("All tokens invalidated", extra={"user_id": user_id})

        return updated
