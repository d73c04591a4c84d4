import enum
from fastapi import BackgroundTasks
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from models.users import User
from schemas.auth_schemas import CreateUserRequest
from schemas.user_schemas import PublicUser
from core.config import settings
from core.permissions import Role
from core.exceptions import (ConflictError, AuthenticationError, AuthorizationError,
    ValidationError)
from services.token_service import TokenService
from services.verification_service import VerificationService
from services.email_service import send_welcome_email
from services.session_service import SessionContext
from utils.hashing import verify_password, get_password_hash
from utils.verification import utcnow
from utils.logger import get_logger

logger = get_logger(__name__)


class OAuthProvider(str, enum.Enum):
    GOOGLE = "google"
    FACEBOOK = "facebook"


# User column holding each provider's account id
OAUTH_ID_COLUMNS = {
    OAuthProvider.GOOGLE: "google_id",
    OAuthProvider.FACEBOOK: "facebook_id",
}


class AuthService:

    @staticmethod
    def get_user_by_email(email: str, db: Session) -> User | None:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def register(request: CreateUserRequest, db: Session, bg: BackgroundTasks) -> User:
        """
        Creates a new account and sends the verification email.

        Customers start active unless ACTIVATE_CUSTOMERS_ON_REGISTRATION is
        off; vendors always start inactive until an admin activates them.
        """
        email = request.email.strip().lower()

        if AuthService.get_user_by_email(email, db):
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            raise ConflictError("Email already registered")

        is_active = request.role == Role.CUSTOMER and settings.ACTIVATE_CUSTOMERS_ON_REGISTRATION

        model = User(
            email=email,
            name=request.name,
            hashed_password=get_password_hash(request.password),
            phone=request.phone,
            role=request.role,
            is_active=is_active,
            is_email_verified=False,
            token_version=1
        )
        model.profile_completion = model.compute_profile_completion()

        db.add(model)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            db.rollback()
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            raise ConflictError("Email already registered")
        db.refresh(model)

        VerificationService.send_verification(model, db, bg)

        logger.info(
            "User registered",
            extra={"user_id": model.id, "role": model.role.value, "is_active": is_active}
        )

        return model

    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> User:
        """
        Checks credentials.

        Raises:
            AuthenticationError: unknown email, wrong password or OAuth-only account
            AuthorizationError: account is inactive
        """
        user = AuthService.get_user_by_email(email, db)

        if not user:
            logger.warning(
                "Login failed - user not found",
                extra={"email": email}
            )
            raise AuthenticationError("Invalid credentials")

        if not user.has_password:
            logger.warning(
                "Login failed - account has no password (OAuth only)",
                extra={"user_id": user.id, "email": email}
            )
            raise AuthenticationError("Invalid credentials")

        if not verify_password(password, user.hashed_password):
            logger.warning(
                "Login failed - invalid password",
                extra={"user_id": user.id, "email": email}
            )
            raise AuthenticationError("Invalid credentials")

        if not user.is_active:
            logger.warning(
                "Login failed - inactive account",
                extra={"user_id": user.id, "email": email}
            )
            raise AuthorizationError("Account is inactive")

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id, "email": email}
        )

        return user

    @staticmethod
    def _start_session(user: User, db: Session) -> dict:
        user.is_online = True
        user.last_seen = utcnow()
        tokens = TokenService.issue_tokens(user, db)
        db.refresh(user)
        return {**tokens, "user": PublicUser.model_validate(user)}

    @staticmethod
    def login(email: str, password: str, db: Session) -> dict:
        """
        Returns access token, refresh token and the public view of the user.
        """
        user = AuthService.authenticate_user(email, password, db)
        result = AuthService._start_session(user, db)

        logger.info(
            "User logged in successfully",
            extra={"user_id": user.id, "email": user.email}
        )

        return result

    @staticmethod
    def logout(session: SessionContext, db: Session):
        """
        Forgets the stored refresh token and marks the user offline.

        The access token used for this call stays valid until it expires;
        use token invalidation to end it immediately.
        """
        user = session.user
        user.is_online = False
        user.last_seen = utcnow()
        TokenService.revoke_refresh_token(user, db)

        logger.info("User logged out", extra={"user_id": session.user_id})

    @staticmethod
    def login_with_oauth(provider: OAuthProvider, provider_id: str, email: str | None, name: str,
        db: Session, bg: BackgroundTasks, avatar: str | None = None,
        email_verified: bool = False) -> dict:
        """
        Signs in a user the OAuth provider has already authenticated.

        Lookup order: provider account id, then email, then a new active
        account with no password. An existing account is only linked when the
        provider vouches for the email and the account has no other id for
        that provider. New accounts with a verified email get a welcome email;
        unverified ones get a verification email.

        Raises:
            ValidationError: missing provider id or email
            ConflictError: the email belongs to an account that cannot be linked
            AuthorizationError: account is inactive
        """
        if not provider_id:
            raise ValidationError("Missing OAuth account id")

        if not email or not email.strip():
            raise ValidationError("Missing email")

        provider = OAuthProvider(provider)
        column = getattr(User, OAUTH_ID_COLUMNS[provider])

        user = db.query(User).filter(column == provider_id).first()
        is_new = False

        if user is None:
            user = AuthService.get_user_by_email(email, db)
            if user is not None:
                AuthService._link_provider(user, provider, column.key, provider_id, email_verified)
            else:
                user = User(
                    email=email,
                    name=name,
                    avatar=avatar,
                    role=Role.CUSTOMER,
                    is_active=True,
                    is_email_verified=email_verified,
                    token_version=1
                )
                setattr(user, column.key, provider_id)
                user.profile_completion = user.compute_profile_completion()
                db.add(user)
                is_new = True

            if email_verified and not user.is_email_verified:
                user.is_email_verified = True

            db.commit()
            db.refresh(user)

        if not user.is_active:
            raise AuthorizationError("Account is inactive")

        if not user.is_email_verified and not user.email_verification_token:
            VerificationService.send_verification(user, db, bg)

        if is_new and user.is_email_verified:
            bg.add_task(send_welcome_email, to_email=user.email, name=user.name)

        result = AuthService._start_session(user, db)

        logger.info(
            "OAuth login",
            extra={
                "user_id": user.id,
                "provider": provider.value,
                "new_account": is_new
            }
        )

        return result

    @staticmethod
    def _link_provider(user: User, provider: OAuthProvider, attr: str, provider_id: str,
        email_verified: bool):
        if not email_verified:
            logger.warning(
                "OAuth link refused - provider did not verify email",
                extra={"user_id": user.id, "provider": provider.value}
            )
            raise ConflictError("An account with this email already exists")

        current = getattr(user, attr)
        if current is not None and current != provider_id:
            logger.warning(
                "OAuth link refused - account already linked to another provider id",
                extra={"user_id": user.id, "provider": provider.value}
            )
            raise ConflictError(f"Account is already linked to another {provider.value} account")

        setattr(user, attr, provider_id)

        logger.info(
            "Linked OAuth provider to existing account",
            extra={"user_id": user.id, "provider": provider.value}
        )
