from typing import Annotated
from fastapi import APIRouter, Depends, Request, BackgroundTasks, Query
from starlette import status
from utils.deps import (db_dependency, session_dependency, active_session_dependency,
    require_permission)
from core.permissions import Role, Action
from schemas.user_schemas import (PublicUser, UserStatusInfo, UpdateUserRequest, UserFilters,
    UserListResponse)
from services.session_service import SessionContext
from services.user_service import UserService
from middleware.rate_limiter import limiter
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/users",
    tags=["users"]
)

admin_read = Annotated[SessionContext, Depends(require_permission(Role.ADMIN, Action.READ))]
admin_edit = Annotated[SessionContext, Depends(require_permission(Role.ADMIN, Action.EDIT))]
admin_delete = Annotated[SessionContext, Depends(require_permission(Role.ADMIN, Action.DELETE))]


@router.get("/me", status_code=status.HTTP_200_OK, response_model=PublicUser)
@limiter.limit("30/minute")
async def get_me(request: Request, session: session_dependency):
    return session.user


@router.get("", status_code=status.HTTP_200_OK, response_model=UserListResponse)
async def list_users(
    session: admin_read,
    db: db_dependency,
    role: Role | None = None,
    is_active: bool | None = None,
    is_email_verified: bool | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    filters = UserFilters(role=role, is_active=is_active,
        is_email_verified=is_email_verified, search=search)
    return UserService.list_users(filters, db, page=page, limit=limit)


@router.get("/{user_id}", status_code=status.HTTP_200_OK, response_model=PublicUser)
async def get_user(user_id: int, session: active_session_dependency, db: db_dependency):
    return UserService.get_user(session, user_id, db)


@router.put("/{user_id}", status_code=status.HTTP_200_OK, response_model=PublicUser)
@limiter.limit("10/minute")
async def update_user(request: Request, user_id: int, body: UpdateUserRequest,
    session: active_session_dependency, db: db_dependency):
    return UserService.update_user(session, user_id, body, db)


@router.delete("/{user_id}", status_code=status.HTTP_200_OK)
async def delete_user(user_id: int, session: admin_delete, db: db_dependency):
    UserService.delete_user(session, user_id, db)

    return {"message": "User deleted"}


@router.patch("/{user_id}/activate", status_code=status.HTTP_200_OK, response_model=PublicUser)
async def activate_user(user_id: int, session: admin_edit, db: db_dependency, bg: BackgroundTasks):
    return UserService.activate_user(session, user_id, db, bg)


@router.patch("/{user_id}/deactivate", status_code=status.HTTP_200_OK, response_model=PublicUser)
@limiter.limit("3/minute")
async def deactivate_user(request: Request, user_id: int, session: active_session_dependency,
    db: db_dependency, bg: BackgroundTasks):
    """
    Deactivate an account and end all of its sessions.
    Admins may deactivate anyone but themselves; other users only themselves.
    """
    return UserService.deactivate_user(session, user_id, db, bg)


@router.post("/{user_id}/invalidate-tokens", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
async def invalidate_tokens(request: Request, user_id: int, session: active_session_dependency,
    db: db_dependency):
    """
    Sign the account out everywhere. Tokens issued before this call stop working.
    """
    user = UserService.invalidate_user_tokens(session, user_id, db)

    return {"message": "All sessions invalidated", "token_version": user.token_version}


@router.get("/{user_id}/status", status_code=status.HTTP_200_OK, response_model=UserStatusInfo)
async def get_user_status(user_id: int, session: active_session_dependency, db: db_dependency):
    return UserService.get_status_info(session, user_id, db)
