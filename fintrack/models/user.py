"""
User Models

The user is the owner of every other record. Email and username are
globally unique; the password is only ever held as a bcrypt hash.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from fintrack.models.common import TimestampedModel, utcnow


USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"


class UserRegister(BaseModel):
    """Registration payload."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: str = Field(default="", max_length=50)
    last_name: str = Field(default="", max_length=50)

    @field_validator('email')
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserLogin(BaseModel):
    """Login payload."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator('email')
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    username: Optional[str] = Field(
        default=None, min_length=3, max_length=30, pattern=USERNAME_PATTERN
    )


class PasswordChange(BaseModel):
    """Change-password payload."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class User(TimestampedModel):
    """A stored user account."""

    id: Optional[str] = None
    username: str
    email: str
    password_hash: str = Field(..., repr=False)
    first_name: str = ""
    last_name: str = ""
    avatar: Optional[str] = None
    is_active: bool = True
    is_admin: bool = False
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_public(self) -> dict:
        """Profile as returned to clients. Never includes the password hash."""
        data = self.model_dump(mode="json", exclude={"password_hash"})
        data["full_name"] = self.full_name
        return data
