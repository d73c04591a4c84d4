from typing import Annotated
from fastapi import APIRouter, Depends, Request, BackgroundTasks, Path
from fastapi.security import OAuth2PasswordRequestForm
from starlette import status
from utils.deps import db_dependency, session_dependency
from schemas.auth_schemas import (LoginResponse, Token, CreateUserRequest, RefreshTokenRequest,
    ForgotPasswordRequest, ResendVerificationRequest, ResetPasswordRequest)
from schemas.user_schemas import PublicUser
from services.auth_service import AuthService
from services.token_service import TokenService
from services.verification_service import VerificationService
from middleware.rate_limiter import limiter
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

token_path = Annotated[str, Path(min_length=1, description="Token from the emailed link")]


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=PublicUser)
@limiter.limit("3/minute")
async def register(request: Request, body: CreateUserRequest, db: db_dependency, bg: BackgroundTasks):
    """
    Create an account. A verification link is emailed to the new address.
    """
    return AuthService.register(body, db, bg)


@router.post("/token", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login_for_access_token(request: Request, db: db_dependency,
    form_data: OAuth2PasswordRequestForm = Depends()):
    return AuthService.login(form_data.username, form_data.password, db)


@router.post("/refresh", response_model=Token)
@limiter.limit("10/minute")
async def refresh_token(request: Request, body: RefreshTokenRequest, db: db_dependency):
    """
    Exchange a refresh token for a new token pair. The old refresh token
    stops working.
    """
    token = TokenService.refresh_tokens(body.refresh_token, db)

    logger.info("Access token refreshed")

    return token


@router.post("/logout", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def logout(request: Request, session: session_dependency, db: db_dependency):
    AuthService.logout(session, db)

    return {"message": "Logged out successfully"}


@router.get("/verify-email/{token}", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def verify_email(request: Request, db: db_dependency, token: token_path):
    VerificationService.consume_verification_token(token, db)

    return {"message": "Email verified successfully"}


@router.post("/resend-verification", status_code=status.HTTP_200_OK)
@limiter.limit("3/minute")
async def resend_verification(request: Request, body: ResendVerificationRequest,
    db: db_dependency, bg: BackgroundTasks):
    VerificationService.resend_verification(body.email, db, bg)

    return {"message": "Verification email sent"}


@router.post("/forgot-password", status_code=status.HTTP_200_OK)
@limiter.limit("3/minute")
async def forgot_password(request: Request, body: ForgotPasswordRequest,
    db: db_dependency, bg: BackgroundTasks):
    VerificationService.request_password_reset(body.email, db, bg)

    return {"message": "If that email exists, a reset link has been sent."}


@router.post("/reset-password/{token}", status_code=status.HTTP_200_OK)
@limiter.limit("5/minute")
async def reset_password(request: Request, body: ResetPasswordRequest, db: db_dependency,
    token: token_path):
    """
    Set a new password. Every existing session is ended.
    """
    VerificationService.reset_password(token, body.new_password, db)

    return {"message": "Password updated successfully. Please login again."}
