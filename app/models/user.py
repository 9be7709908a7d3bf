"""
User model.

Design decisions:
- username / email / phone are each globally unique and stored
  normalised (USERNAME upper-cased, email lower-cased, phone trimmed).
- Role is a plain ENUM (admin / premium / basic); fine-grained access is
  a JSON mapping ``page -> {"access": bool, "functions": [str]}``.
- Deleting a user deletes its sessions (ORM cascade + FK ON DELETE).
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from app.models.session import UserSession


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    PREMIUM = "premium"
    BASIC = "basic"


def starter_permissions() -> dict[str, dict[str, Any]]:
    """Grants every self-registered account starts with."""
    return {
        "dashboard": {"access": True, "functions": ["view"]},
        "exam-basic": {"access": True, "functions": ["view", "take_exam", "view_results"]},
    }


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(256), unique=True, index=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=UserRole.BASIC,
        nullable=False,
        index=True,
    )
    permissions: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=starter_permissions,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # ── Relationships ────────────────────────────────────────────────
    sessions: Mapped[list["UserSession"]] = relationship(  # noqa: F821
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<User {self.username} <{self.email}> role={self.role.value}>"
