import math
from fastapi import BackgroundTasks
from sqlalchemy import or_
from sqlalchemy.orm import Session
from models.users import User
from schemas.user_schemas import UpdateUserRequest, UserFilters, PublicUser
from core import permissions
from core.exceptions import NotFoundError, ConflictError, AuthorizationError
from services.session_service import SessionContext
from services.token_service import TokenService
from services.email_service import send_account_activation_email, send_account_deactivation_email
from utils.logger import get_logger

logger = get_logger(__name__)


class UserService:
    """
    Account management on behalf of an acting session.

    Every method that touches another account checks the ownership rules in
    core.permissions before reading or writing anything.
    """

    @staticmethod
    def get_user_by_id(user_id: int, db: Session) -> User:
        user = db.query(User).filter(User.id == user_id).one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _deny(session: SessionContext, operation: str, target_id: int):
        logger.warning(
            "Permission denied",
            extra={"user_id": session.user_id, "operation": operation, "target_id": target_id}
        )
        raise AuthorizationError()

    @staticmethod
    def list_users(filters: UserFilters, db: Session, page: int = 1, limit: int = 10) -> dict:
        """Admin listing, newest first, with pagination metadata."""
        query = db.query(User)

        if filters.role is not None:
            query = query.filter(User.role == filters.role)
        if filters.is_active is not None:
            query = query.filter(User.is_active == filters.is_active)
        if filters.is_email_verified is not None:
            query = query.filter(User.is_email_verified == filters.is_email_verified)
        if filters.search:
            term = filters.search.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            pattern = f"%{term}%"
            query = query.filter(or_(
                User.name.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\")
            ))

        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return {
            "users": [PublicUser.model_validate(u) for u in users],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if limit else 0
            }
        }

    @staticmethod
    def get_user(session: SessionContext, user_id: int, db: Session) -> User:
        if not permissions.can_access_user(session.user_id, session.role, user_id):
            UserService._deny(session, "get_user", user_id)
        return UserService.get_user_by_id(user_id, db)

    @staticmethod
    def update_user(session: SessionContext, user_id: int, body: UpdateUserRequest, db: Session) -> User:
        if not permissions.can_update_user(session.user_id, session.role, user_id):
            UserService._deny(session, "update_user", user_id)

        user = UserService.get_user_by_id(user_id, db)
        changes = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"address"})

        if "role" in changes:
            if not permissions.can_change_role(session.user_id, session.role, user_id):
                UserService._deny(session, "change_role", user_id)
            if changes["role"] != user.role:
                # Old tokens carry the old role claim
                user.token_version = User.token_version + 1
                user.refresh_token_hash = None

        for field, value in changes.items():
            setattr(user, field, value)

        if body.address is not None:
            # Explicitly sent blanks clear that part of the address
            user.set_address(body.address.model_dump(exclude_unset=True))
            changes["address"] = True

        user.profile_completion = user.compute_profile_completion()

        db.commit()
        db.refresh(user)

        logger.info(
            "User updated",
            extra={"user_id": session.user_id, "target_id": user_id, "fields": sorted(changes)}
        )

        return user

    @staticmethod
    def activate_user(session: SessionContext, user_id: int, db: Session, bg: BackgroundTasks) -> User:
        """Inactive -> Active. Admin only."""
        if not permissions.can_activate_user(session.user_id, session.role, user_id):
            UserService._deny(session, "activate_user", user_id)

        user = UserService.get_user_by_id(user_id, db)
        if user.is_active:
            raise ConflictError("Account already active")

        user.is_active = True
        db.commit()
        db.refresh(user)

        bg.add_task(send_account_activation_email, to_email=user.email, name=user.name)

        logger.info("User activated", extra={"user_id": session.user_id, "target_id": user_id})

        return user

    @staticmethod
    def deactivate_user(session: SessionContext, user_id: int, db: Session, bg: BackgroundTasks) -> User:
        """
        Active -> Inactive.

        is_active and token_version change in the same UPDATE, so a
        deactivated account never keeps a working access token.
        """
        if not permissions.can_deactivate_user(session.user_id, session.role, user_id):
            UserService._deny(session, "deactivate_user", user_id)

        user = UserService.get_user_by_id(user_id, db)
        if not user.is_active:
            raise ConflictError("Account already deactivated")

        db.query(User).filter(User.id == user_id).update(
            {
                User.is_active: False,
                User.is_online: False,
                User.token_version: User.token_version + 1,
                User.refresh_token_hash: None
            },
            synchronize_session=False
        )
        db.commit()
        db.refresh(user)

        bg.add_task(send_account_deactivation_email, to_email=user.email, name=user.name)

        logger.info("User deactivated", extra={"user_id": session.user_id, "target_id": user_id})

        return user

    @staticmethod
    def invalidate_user_tokens(session: SessionContext, user_id: int, db: Session) -> User:
        if not permissions.can_invalidate_tokens(session.user_id, session.role, user_id):
            UserService._deny(session, "invalidate_tokens", user_id)

        user = UserService.get_user_by_id(user_id, db)
        TokenService.invalidate_all_tokens(user.id, db)
        db.refresh(user)

        return user

    @staticmethod
    def delete_user(session: SessionContext, user_id: int, db: Session):
        if not permissions.can_delete_user(session.user_id, session.role, user_id):
            UserService._deny(session, "delete_user", user_id)

        user = UserService.get_user_by_id(user_id, db)
        db.delete(user)
        db.commit()

        logger.info("User deleted", extra={"user_id": session.user_id, "target_id": user_id})

    @staticmethod
    def get_status_info(session: SessionContext, user_id: int, db: Session) -> User:
        if not permissions.can_access_user(session.user_id, session.role, user_id):
            UserService._deny(session, "get_status_info", user_id)
        return UserService.get_user_by_id(user_id, db)
