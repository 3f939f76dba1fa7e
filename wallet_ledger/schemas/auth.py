import re
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

PHONE_PATTERN = re.compile(r"^\+?\d{7,20}$")


def _normalize_phone(v: str) -> str:
    v = re.sub(r"[\s\-()]", "", v)
    if not PHONE_PATTERN.match(v):
        raise ValueError("Phone number must contain 7 to 20 digits")
    return v


class UserRegister(BaseModel):
    email: str
    phone_number: str
    password: str
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)

    @field_validator("email")
    def validate_email(cls, v):
        # Basic regex validation
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v.strip()):
            raise ValueError("Invalid email format")
        return v.lower().strip()

    @field_validator("phone_number")
    def validate_phone_number(cls, v):
        return _normalize_phone(v)

    @field_validator("password")
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain lowercase letter")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain digit")
        if not re.search(r'[!@#$%^&*(),.?":{}|<>]', v):
            raise ValueError("Password must contain special character")
        return v

    @field_validator("first_name", "last_name")
    def strip_names(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class UserUpdate(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    phone_number: str | None = None

    @field_validator("phone_number")
    def validate_phone_number(cls, v):
        if v is None:
            return v
        return _normalize_phone(v)


class UserLogin(BaseModel):
    """Schema for JSON-based login endpoint."""

    email: str
    password: str


class UserResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    email: str
    phone_number: str
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime


class UserProfileResponse(UserResponse):
    balance: Decimal


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse
