"""
Session service — CRUD & lifecycle helpers for user sessions.

Handles:
- Looking up the active row for a device or a token
- Closing a single session (voluntary logout)
- Force-closing every active session of a user (new-device login,
  admin force logout, deactivation)
- Deleting a user's rows and reaping rows whose token has expired
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.session import UserSession


async def get_active_session_for_device(
    user_id: uuid.UUID,
    device_id: str,
    db: AsyncSession,
) -> UserSession | None:
    stmt = select(UserSession).where(
        UserSession.user_id == user_id,
        UserSession.device_id == device_id,
        UserSession.is_active == True,  # noqa: E712
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_active_session_by_token(
    user_id: uuid.UUID,
    token: str,
    db: AsyncSession,
) -> UserSession | None:
    """The row that keeps ``token`` usable, if it is still open."""
    stmt = select(UserSession).where(
        UserSession.user_id == user_id,
        UserSession.token == token,
        UserSession.is_active == True,  # noqa: E712
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_sessions(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> list[UserSession]:
    """Every session row of a user, most recent login first."""
    stmt = (
        select(UserSession)
        .where(UserSession.user_id == user_id)
        .order_by(UserSession.login_time.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def close_session_by_token(
    token: str,
    db: AsyncSession,
) -> bool:
    """
    Voluntary logout — close the open row bound to ``token``.

    Returns False when no open row carries that token (already closed,
    force-logged-out, or never issued).
    """
    stmt = (
        update(UserSession)
        .where(
            UserSession.token == token,
            UserSession.is_active == True,  # noqa: E712
        )
        .values(is_active=False, logout_time=utcnow())
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount > 0


async def force_close_user_sessions(
    user_id: uuid.UUID,
    db: AsyncSession,
    now: datetime | None = None,
) -> int:
    """
    Force-close every active session for a given user.

    Returns the number of sessions affected.  Rows are flagged
    ``forced_logout`` so audits can tell them apart from logouts.
    """
    stmt = (
        update(UserSession)
        .where(
            UserSession.user_id == user_id,
            UserSession.is_active == True,  # noqa: E712
        )
        .values(is_active=False, logout_time=now or utcnow(), forced_logout=True)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount


async def delete_user_sessions(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> int:
    result = await db.execute(delete(UserSession).where(UserSession.user_id == user_id))
    await db.flush()
    return result.rowcount


async def reap_expired_sessions(
    db: AsyncSession,
    now: datetime | None = None,
) -> int:
    """
    Close active rows whose bound token has already expired.

    Such rows can never pass the auth gate again; closing them keeps the
    registry honest.  ``logout_time`` is set to the token expiry, and the
    rows are not marked as forced.
    """
    stmt = (
        update(UserSession)
        .where(
            UserSession.is_active == True,  # noqa: E712
            UserSession.token_expires_at <= (now or utcnow()),
        )
        .values(is_active=False, logout_time=UserSession.token_expires_at)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount
