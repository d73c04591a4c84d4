from pydantic import BaseModel, EmailStr, field_validator
from core.permissions import Role
from schemas.user_schemas import PublicUser, validate_phone_number
import re


def validate_password_strength(value: str) -> str:
    """
    Password must be at least 8 characters and contain:
    - At least one letter
    - At least one digit
    """
    if len(value) < 8:
        raise ValueError('Password must be at least 8 characters')

    if not re.search(r'[A-Za-z]', value):
        raise ValueError('Password must contain at least one letter')

    if not re.search(r'\d', value):
        raise ValueError('Password must contain at least one digit')

    return value


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str


class LoginResponse(Token):
    user: PublicUser


class CreateUserRequest(BaseModel):
    email: EmailStr
    name: str
    password: str
    phone: str | None = None
    role: Role = Role.CUSTOMER

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()

    @field_validator('name')
    @classmethod
    def validate_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError('Name cannot be empty')
        return value

    @field_validator('password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_strength(value)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value):
        if value is None:
            return value
        return validate_phone_number(value)

    @field_validator('role')
    @classmethod
    def validate_role(cls, value):
        # Admin accounts are never self-registered
        if value == Role.ADMIN:
            raise ValueError('Cannot register as admin')
        return value


class RefreshTokenRequest(BaseModel):
    refresh_token: str

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if not value or not value.strip():
            raise ValueError('Refresh token cannot be empty')
        return value


class EmailRequest(BaseModel):
    email: EmailStr

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower()


class ForgotPasswordRequest(EmailRequest):
    pass


class ResendVerificationRequest(EmailRequest):
    pass


class ResetPasswordRequest(BaseModel):
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, value):
        return validate_password_strength(value)
