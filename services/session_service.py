from dataclasses import dataclass
from sqlalchemy.orm import Session
from models.users import User
from core.permissions import Role
from core.exceptions import TokenError, UnauthorizedError, StaleTokenError
from services.token_service import TokenService
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """
    The authenticated caller for one request.

    Built by SessionService.authenticate and passed explicitly to handlers
    and services; nothing stores it globally.
    """
    user_id: int
    email: str
    role: Role
    token_version: int
    is_active: bool
    user: User


class SessionService:

    @staticmethod
    def authenticate(token: str, db: Session) -> SessionContext:
        """
        Turns a bearer access token into a SessionContext.

        Checks, in order:
        - signature, token type and expiry (InvalidTokenError / ExpiredTokenError)
        - the referenced user still exists (UnauthorizedError)
        - the embedded token_version equals the stored one (StaleTokenError)
        """
        try:
            claims = TokenService.decode_access_token(token)

            user = db.query(User).filter(User.id == claims.user_id).one_or_none()
            if user is None:
                raise UnauthorizedError()

            if claims.token_version != user.token_version:
                raise StaleTokenError()

        except TokenError as e:
            logger.warning(
                "Session rejected",
                extra={"reason": e.message, "error_type": type(e).__name__}
            )
            raise

        return SessionContext(
            user_id=user.id,
            email=user.email,
            role=Role(user.role),
            token_version=user.token_version,
            is_active=user.is_active,
            user=user
        )
