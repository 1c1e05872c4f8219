from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
import phonenumbers
import re

from core.config import settings
from core.constants import Role, TOKEN_TYPE_BEARER

USERNAME_PATTERN = re.compile(r'^[A-Za-z0-9_]+$')

# Roles a user may pick for themselves at registration
REGISTRABLE_ROLES = (Role.ADMIN.value, Role.FARMER.value)


class CamelModel(BaseModel):
    """Wire models use camelCase; snake_case is accepted on input too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateUserRequest(CamelModel):
    username: str = Field(min_length=3, max_length=20)
    password: str = Field(min_length=6, max_length=20)
    email: EmailStr | None = None
    real_name: str = Field(min_length=1, max_length=50)
    phone_number: str
    role: str = Role.FARMER.value

    @field_validator('username')
    @classmethod
    def validate_username(cls, value):
        if not USERNAME_PATTERN.match(value):
            raise ValueError('Username may only contain letters, digits and underscores')
        return value

    @field_validator('email', mode='before')
    @classmethod
    def blank_email_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator('real_name')
    @classmethod
    def validate_real_name(cls, value):
        if not value.strip():
            raise ValueError('Real name cannot be empty')
        return value.strip()

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, value):
        """
        Validates phone number format using Google's phonenumbers library.
        Numbers without a country code are read in the configured default
        region; the stored form is E.164.
        """
        try:
            parsed = phonenumbers.parse(value, settings.PHONE_DEFAULT_REGION)
            if not phonenumbers.is_valid_number(parsed):
                raise ValueError('Invalid phone number')

            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)

        except phonenumbers.NumberParseException:
            raise ValueError('Invalid phone number format')

    @field_validator('role')
    @classmethod
    def validate_role(cls, value):
        value = value.upper()
        if value not in REGISTRABLE_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(REGISTRABLE_ROLES)}")
        return value


class LoginRequest(CamelModel):
    username: str = Field(min_length=3, max_length=20)
    password: str = Field(min_length=6)


class RefreshTokenRequest(CamelModel):
    refresh_token: str

    @field_validator('refresh_token')
    @classmethod
    def validate_token(cls, value):
        if not value or not value.strip():
            raise ValueError('Refresh token cannot be empty')
        return value.strip()


class PrincipalSummary(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    username: str
    real_name: str
    role: str
    status: str


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = TOKEN_TYPE_BEARER
    expires_in: int
    principal_summary: PrincipalSummary


class RevokeAllResponse(CamelModel):
    revoked_count: int
