from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from .common import AccountStatus, CamelModel, UserRole


class RegisterRequest(CamelModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    mobile_number: Optional[str] = None
    password: str = Field(min_length=6)
    role: UserRole = UserRole.CLIENT

    @field_validator("role")
    @classmethod
    def _self_service_roles(cls, value: UserRole) -> UserRole:
        if value == UserRole.ADMIN:
            raise ValueError("role must be CLIENT or PROVIDER")
        return value


class LoginRequest(CamelModel):
    email: str
    password: str


class TokenResponse(CamelModel):
    token: str
    token_type: str = "bearer"


class UpdateUserRequest(CamelModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    mobile_number: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)


class UserStatusUpdate(CamelModel):
    status: AccountStatus


class UserResponse(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    mobile_number: Optional[str] = None
    role: UserRole
    account_status: AccountStatus
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
