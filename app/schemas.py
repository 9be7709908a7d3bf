"""
Pydantic schemas for request / response serialization.

Kept in a single file — the API surface is small.  Schemas are
decoupled from SQLAlchemy models so the wire format (camelCase, the
``{success, message, data}`` envelope) can evolve independently of the
DB layer.  Password hashes and session tokens never appear here.
"""

import uuid
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.security import MAX_PASSWORD_BYTES
from app.models.user import UserRole

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Envelope ─────────────────────────────────────────────────────────
class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None
    total: int | None = None


# ── Permissions ──────────────────────────────────────────────────────
class PagePermission(CamelModel):
    access: bool = False
    functions: list[str] = []

    @field_validator("functions")
    @classmethod
    def _dedupe(cls, v: list[str]) -> list[str]:
        # Behaves as a set on the wire while keeping a stable order
        return list(dict.fromkeys(f.strip() for f in v if f.strip()))


# ── Auth ─────────────────────────────────────────────────────────────
class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=64)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    phone: str | None = None

    @field_validator("username")
    @classmethod
    def _username_not_blank(cls, v: str) -> str:
        if len(v.strip()) < 3:
            raise ValueError("El nombre de usuario debe tener al menos 3 caracteres")
        return v

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"La contraseña no puede superar los {MAX_PASSWORD_BYTES} bytes")
        return v

    @field_validator("phone")
    @classmethod
    def _phone_length(cls, v: str | None) -> str | None:
        # Missing / blank phones are rejected by the service with its own message
        if v is not None and v.strip() and len(v.strip()) < 9:
            raise ValueError("El teléfono debe tener al menos 9 caracteres")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


# ── User ─────────────────────────────────────────────────────────────
class UserOut(CamelModel):
    id: uuid.UUID
    username: str
    email: str
    phone: str
    role: UserRole
    permissions: dict[str, PagePermission] = {}
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None


class AuthPayload(CamelModel):
    user: UserOut
    token: str


class ProfilePayload(CamelModel):
    user: UserOut


class PermissionCheckOut(CamelModel):
    page: str
    function: str | None = None
    allowed: bool


# ── Admin ────────────────────────────────────────────────────────────
class UpdatePermissionsRequest(CamelModel):
    permissions: dict[str, PagePermission] | None = None
    role: UserRole | None = None


class UpdateStatusRequest(CamelModel):
    is_active: bool


class UserStatusOut(CamelModel):
    id: uuid.UUID
    username: str
    is_active: bool


class SessionOut(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    device_id: str
    user_agent: str
    ip_address: str
    login_time: datetime
    last_activity: datetime
    logout_time: datetime | None = None
    is_active: bool
    forced_logout: bool


class LogoutAllOut(CamelModel):
    closed_sessions: int
