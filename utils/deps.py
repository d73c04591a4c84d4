from core.database import SessionLocal
from typing import Annotated
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from core.exceptions import AuthorizationError
from core.permissions import Role, Action, can_perform
from services.session_service import SessionService, SessionContext
from utils.logger import get_logger

logger = get_logger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/token")


def get_current_session(token: Annotated[str, Depends(oauth2_bearer)], db: db_dependency) -> SessionContext:
    return SessionService.authenticate(token, db)


session_dependency = Annotated[SessionContext, Depends(get_current_session)]


def require_permission(required_role: Role, action: Action):
    """
    Route guard: rejects the request before the handler runs unless the
    caller is active and the role table allows `action` for `required_role`.

    Usage:
        @router.get("/", dependencies=[Depends(require_permission(Role.ADMIN, Action.READ))])
    """
    def checker(session: session_dependency) -> SessionContext:
        if not can_perform(session, required_role, action):
            logger.warning(
                "Route access denied",
                extra={
                    "user_id": session.user_id,
                    "role": session.role.value,
                    "required_role": required_role.value,
                    "action": action.value,
                    "is_active": session.is_active
                }
            )
            raise AuthorizationError()
        return session

    return checker


def require_active(session: session_dependency) -> SessionContext:
    if not session.is_active:
        raise AuthorizationError("Account is inactive")
    return session


active_session_dependency = Annotated[SessionContext, Depends(require_active)]
