import math
from core.database import Base
from core.permissions import Role
from sqlalchemy import (Column, Integer, String, Boolean, DateTime, Enum, CheckConstraint)
from sqlalchemy.orm import validates
from .mixins import CreatedAtMixin, UpdatedAtMixin


ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")

PROFILE_REQUIRED_FIELDS = ("name", "email", "phone", "address_street", "address_city")
PROFILE_OPTIONAL_FIELDS = ("avatar", "address_state", "address_zip_code", "address_country")


class User(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "users"
    __table_args__ = (
        # Password may only be missing for accounts created through OAuth
        CheckConstraint(
            "hashed_password IS NOT NULL OR google_id IS NOT NULL OR facebook_id IS NOT NULL",
            name="ck_users_password_or_oauth"
        ),
        CheckConstraint("token_version >= 1", name="ck_users_token_version_positive"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=True)
    role = Column(
        Enum(Role, name="user_role", values_callable=lambda roles: [r.value for r in roles]),
        default=Role.CUSTOMER,
        nullable=False
    )
    is_active = Column(Boolean, default=False, nullable=False, index=True)
    phone = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    # Address
    address_street = Column(String, nullable=True)
    address_city = Column(String, nullable=True)
    address_state = Column(String, nullable=True)
    address_zip_code = Column(String, nullable=True)
    address_country = Column(String, nullable=True)
    profile_completion = Column(Integer, default=0, nullable=False)
    # OAuth identifiers
    google_id = Column(String, unique=True, nullable=True)
    facebook_id = Column(String, unique=True, nullable=True)
    # Session fields
    token_version = Column(Integer, default=1, nullable=False)
    refresh_token_hash = Column(String(64), nullable=True)
    is_online = Column(Boolean, default=False, nullable=False, index=True)
    last_seen = Column(DateTime(timezone=True), nullable=True, index=True)
    # Email verification fields
    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String, nullable=True)
    email_verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    # Password reset fields
    password_reset_token = Column(String, nullable=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)

    @validates("email")
    def normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def has_password(self) -> bool:
        return self.hashed_password is not None

    @property
    def address(self) -> dict | None:
        values = {field: getattr(self, f"address_{field}") for field in ADDRESS_FIELDS}
        return values if any(values.values()) else None

    def set_address(self, values: dict):
        """Updates only the address parts present in `values`."""
        for field in ADDRESS_FIELDS:
            if field in values:
                setattr(self, f"address_{field}", values[field])

    def compute_profile_completion(self) -> int:
        """
        Percentage of profile fields filled in. Required fields count 1.5,
        optional ones 1.
        """
        def filled(attr):
            value = getattr(self, attr)
            return value is not None and str(value).strip() != ""

        completed = sum(1.5 for attr in PROFILE_REQUIRED_FIELDS if filled(attr))
        completed += sum(1 for attr in PROFILE_OPTIONAL_FIELDS if filled(attr))
        total = len(PROFILE_REQUIRED_FIELDS) * 1.5 + len(PROFILE_OPTIONAL_FIELDS)

        return math.floor(completed / total * 100 + 0.5)

    def __repr__(self):
        return f"<User id={self.id} email={self.email} role={self.role}>"
