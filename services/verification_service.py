import secrets
from datetime import timedelta
from fastapi import BackgroundTasks
from jose import jwt, JWTError
from sqlalchemy.orm import Session
from models.users import User
from core.config import settings
from core.exceptions import InvalidOrExpiredTokenError, NotFoundError, ConflictError
from services.email_service import send_verification_email, send_password_reset_email
from utils.hashing import get_password_hash
from utils.verification import get_expiry_time, utcnow
from utils.logger import get_logger

logger = get_logger(__name__)

EMAIL_VERIFICATION_TYPE = "email_verification"
PASSWORD_RESET_TYPE = "password_reset"


class VerificationService:
    """
    Single-use email verification and password reset tokens.

    Tokens are signed JWTs, and the same value is also stored on the user
    next to an explicit expiry column. Consuming a token requires both a valid
    signature and a matching, unexpired stored copy; the stored copy is
    cleared on success.
    """

    @staticmethod
    def _mint(user: User, token_type: str, lifetime: timedelta) -> str:
        payload = {
            "id": user.id,
            "email": user.email,
            "type": token_type,
            "jti": secrets.token_urlsafe(16),
            "exp": utcnow() + lifetime
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def _verify_signature(token: str, token_type: str) -> int:
        """Returns the user id embedded in a valid token of the given type."""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            raise InvalidOrExpiredTokenError()

        user_id = payload.get("id")
        if payload.get("type") != token_type or user_id is None:
            raise InvalidOrExpiredTokenError()

        return user_id

    @staticmethod
    def generate_verification_token(user: User, db: Session) -> str:
        """Mints a 24h email verification token and stores it on the user."""
        hours = settings.VERIFICATION_TOKEN_EXPIRE_HOURS
        token = VerificationService._mint(user, EMAIL_VERIFICATION_TYPE, timedelta(hours=hours))

        user.email_verification_token = token
        user.email_verification_expires_at = get_expiry_time(hours=hours)
        db.commit()

        return token

    @staticmethod
    def create_password_reset_token(user: User, db: Session) -> str:
        """Mints a 10 minute password reset token and stores it on the user."""
        minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
        token = VerificationService._mint(user, PASSWORD_RESET_TYPE, timedelta(minutes=minutes))

        user.password_reset_token = token
        user.password_reset_expires_at = get_expiry_time(minutes=minutes)
        db.commit()

        return token

    @staticmethod
    def consume_verification_token(token: str, db: Session) -> User:
        """
        Marks the email as verified.

        Raises:
            InvalidOrExpiredTokenError: bad signature, expired, or already used
        """
        user_id = VerificationService._verify_signature(token, EMAIL_VERIFICATION_TYPE)

        user = db.query(User).filter(
            User.id == user_id,
            User.email_verification_token == token,
            User.email_verification_expires_at > utcnow()
        ).first()

        if not user:
            logger.warning("Email verification failed - invalid or expired token")
            raise InvalidOrExpiredTokenError()

        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_expires_at = None
        db.commit()

        logger.info("Email verified successfully", extra={"user_id": user.id})

        return user

    @staticmethod
    def reset_password(token: str, new_password: str, db: Session) -> User:
        """
        Sets a new password from a reset token.

        The password change, clearing the reset token and the token_version
        bump (ending every session) are committed together.

        Raises:
            InvalidOrExpiredTokenError: bad signature, expired, or already used
        """
        user_id = VerificationService._verify_signature(token, PASSWORD_RESET_TYPE)

        user = db.query(User).filter(
            User.id == user_id,
            User.password_reset_token == token,
            User.password_reset_expires_at > utcnow()
        ).first()

        if not user:
            logger.warning("Password reset failed - invalid or expired token")
            raise InvalidOrExpiredTokenError()

        user.hashed_password = get_password_hash(new_password)
        user.password_reset_token = None
        user.password_reset_expires_at = None
        user.token_version = User.token_version + 1
        user.refresh_token_hash = None
        db.commit()

        logger.info("Password reset successfully", extra={"user_id": user.id})

        return user

    @staticmethod
    def send_verification(user: User, db: Session, bg: BackgroundTasks) -> str:
        token = VerificationService.generate_verification_token(user, db)
        bg.add_task(send_verification_email, to_email=user.email, name=user.name, token=token)
        return token

    @staticmethod
    def resend_verification(email: str, db: Session, bg: BackgroundTasks) -> str:
        user = db.query(User).filter(User.email == email.strip().lower()).first()

        if not user:
            raise NotFoundError("User not found")

        if user.is_email_verified:
            raise ConflictError("Email already verified")

        token = VerificationService.send_verification(user, db, bg)

        logger.info("Verification email re-sent", extra={"user_id": user.id})

        return token

    @staticmethod
    def request_password_reset(email: str, db: Session, bg: BackgroundTasks) -> str | None:
        """
        Emails a reset link if the address belongs to an account.

        Unknown addresses are only logged so the endpoint does not reveal
        which emails are registered.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()

        if not user:
            logger.info("Password reset requested for non-existent email",
                extra={"email": email})
            return None

        token = VerificationService.create_password_reset_token(user, db)
        bg.add_task(send_password_reset_email, to_email=user.email, token=token)

        logger.info(
            "Password reset email sent",
            extra={"user_id": user.id, "email": user.email}
        )

        return token
