from datetime import datetime
from pydantic import BaseModel, ConfigDict, field_validator
from core.permissions import Role
import phonenumbers


def validate_phone_number(value: str) -> str:
    """
    Validates phone number format using Google's phonenumbers library.
    Accepts international format: +201234567890
    """
    try:
        parsed = phonenumbers.parse(value, None)
        if not phonenumbers.is_valid_number(parsed):
            raise ValueError('Invalid phone number')

        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

    except phonenumbers.NumberParseException:
        raise ValueError('Phone number must include country code (e.g.: +966xxxxxxxxx, +20xxxxxxxxxx)')


class Address(BaseModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None

    @field_validator('street', 'city', 'state', 'zip_code', 'country')
    @classmethod
    def strip_blank(cls, value):
        if value is None:
            return value
        return value.strip() or None


class PublicUser(BaseModel):
    """User as returned to clients. Never carries secrets or stored tokens."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: Role
    is_active: bool
    is_email_verified: bool
    phone: str | None = None
    avatar: str | None = None
    address: Address | None = None
    created_at: datetime | None = None


class UserStatusInfo(PublicUser):
    is_online: bool
    last_seen: datetime | None = None
    token_version: int
    profile_completion: int
    updated_at: datetime | None = None


class UpdateUserRequest(BaseModel):
    name: str | None = None
    phone: str | None = None
    avatar: str | None = None
    address: Address | None = None
    role: Role | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value):
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError('Name cannot be empty')
        return value

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value):
        if value is None:
            return value
        return validate_phone_number(value)


class UserFilters(BaseModel):
    role: Role | None = None
    is_active: bool | None = None
    is_email_verified: bool | None = None
    search: str | None = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class UserListResponse(BaseModel):
    users: list[PublicUser]
    pagination: Pagination
