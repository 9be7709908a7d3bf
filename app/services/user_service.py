"""
User service — credential store & admin overrides.

Handles:
- Registration with normalisation and uniqueness checks
- Credential verification (one generic failure, no user enumeration)
- Admin mutations: role / permission edits, activation toggling,
  force logout and deletion, each with its session side effects
"""

import logging
import uuid
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import messages
from app.core.exceptions import (
    DuplicateIdentityError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from app.core.security import hash_password, verify_password
from app.models.user import User, UserRole, starter_permissions
from app.services import session_service

logger = logging.getLogger(__name__)


# ── Normalisation ────────────────────────────────────────────────────

def normalize_username(username: str) -> str:
    return username.strip().upper()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ── Lookups ──────────────────────────────────────────────────────────

async def get_user_by_id(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError()
    return user


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return list(result.scalars().all())


async def search_users(query: str | None, db: AsyncSession) -> list[User]:
    """Case-insensitive substring match over username, email and phone."""
    if not query or not query.strip():
        raise ValidationError(messages.SEARCH_QUERY_REQUIRED)
    term = query.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{term}%"
    stmt = (
        select(User)
        .where(
            or_(
                func.lower(User.username).like(pattern, escape="\\"),
                func.lower(User.email).like(pattern, escape="\\"),
                func.lower(User.phone).like(pattern, escape="\\"),
            )
        )
        .order_by(User.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ── Registration / credentials ───────────────────────────────────────

async def _find_collision(
    email: str,
    username: str,
    phone: str,
    db: AsyncSession,
) -> str | None:
    """Message naming the first taken identifier (email, username, phone), if any."""
    stmt = select(User).where(
        or_(User.email == email, User.username == username, User.phone == phone)
    )
    existing = list((await db.execute(stmt)).scalars().all())
    if any(u.email == email for u in existing):
        return messages.DUPLICATE_EMAIL
    if any(u.username == username for u in existing):
        return messages.DUPLICATE_USERNAME
    if existing:
        return messages.DUPLICATE_PHONE
    return None


async def register_user(
    username: str,
    email: str,
    password: str,
    phone: str | None,
    db: AsyncSession,
    bcrypt_rounds: int = 10,
) -> User:
    """
    Create a ``basic`` account with the starter permission set.

    Collisions are checked against every user, active or not, and the
    reported field follows the order email, username, phone.  When a
    concurrent registration wins the unique indexes, the transaction is
    rolled back (this is the request's first write) and the same
    duplicate error is raised.
    """
    formatted_username = normalize_username(username)
    formatted_email = normalize_email(email)

    if not phone or not phone.strip():
        raise ValidationError(messages.PHONE_REQUIRED)
    formatted_phone = phone.strip()

    message = await _find_collision(formatted_email, formatted_username, formatted_phone, db)
    if message:
        logger.info("Registration rejected: %s", message)
        raise DuplicateIdentityError(message)

    user = User(
        id=uuid.uuid4(),
        username=formatted_username,
        email=formatted_email,
        phone=formatted_phone,
        password_hash=hash_password(password, rounds=bcrypt_rounds),
        role=UserRole.BASIC,
        permissions=starter_permissions(),
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent registration took one of the identifiers first
        await db.rollback()
        message = await _find_collision(formatted_email, formatted_username, formatted_phone, db)
        logger.info("Registration lost a race: %s", message)
        raise DuplicateIdentityError(message or messages.DUPLICATE_EMAIL) from None
    logger.info("User registered: %s (%s)", user.id, user.username)
    return user


async def verify_credentials(
    email: str,
    password: str,
    db: AsyncSession,
) -> User:
    stmt = select(User).where(
        User.email == normalize_email(email),
        User.is_active == True,  # noqa: E712
    )
    user = (await db.execute(stmt)).scalar_one_or_none()

    if user is None or not verify_password(password, user.password_hash):
        # Same outcome for unknown email and wrong password
        logger.info("Failed login attempt for %s", normalize_email(email))
        raise InvalidCredentialsError()
    return user


# ── Admin overrides ──────────────────────────────────────────────────

async def update_permissions(
    user_id: uuid.UUID,
    db: AsyncSession,
    permissions: dict[str, dict[str, Any]] | None = None,
    role: UserRole | None = None,
) -> User:
    """Pure data edit: open sessions are left alone."""
    user = await get_user_by_id(user_id, db)
    if permissions is not None:
        user.permissions = permissions
    if role is not None:
        user.role = role
    await db.flush()
    logger.info("Permissions updated for user %s (role=%s)", user.id, user.role.value)
    return user


async def set_user_status(
    user_id: uuid.UUID,
    is_active: bool,
    db: AsyncSession,
) -> User:
    """Toggle the account; deactivation force-closes every open session."""
    user = await get_user_by_id(user_id, db)
    user.is_active = is_active
    if not is_active:
        closed = await session_service.force_close_user_sessions(user.id, db)
        logger.info("User %s deactivated, %d session(s) force-closed", user.id, closed)
    else:
        logger.info("User %s activated", user.id)
    await db.flush()
    return user


async def force_logout_all(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> int:
    """Kick a user off every device while keeping the account enabled."""
    user = await get_user_by_id(user_id, db)
    closed = await session_service.force_close_user_sessions(user.id, db)
    logger.info("Force logout for user %s: %d session(s) closed", user.id, closed)
    return closed


async def delete_user(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> None:
    """Delete the user's sessions first, then the user itself."""
    user = await get_user_by_id(user_id, db)
    removed = await session_service.delete_user_sessions(user.id, db)
    await db.delete(user)
    await db.flush()
    logger.info("User %s deleted along with %d session(s)", user_id, removed)
