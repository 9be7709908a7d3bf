"""
Models package — import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for `create_all` / Alembic).
"""

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from app.models.session import UserSession
from app.models.user import User, UserRole, starter_permissions

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "utcnow",
    "User",
    "UserRole",
    "starter_permissions",
    "UserSession",
]
