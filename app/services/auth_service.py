"""
Authentication service.

Handles:
- Login: credential check, token issue, session reconciliation
- Registration: account creation followed by the same reconciliation,
  so the returned token is immediately usable
- Logout of the session bound to a token

Concurrency rules (all roles):
- Same device, session still open → reuse the row, rotate its token.
- Any other device → force-close every open row of the user, then open
  a new one.  Exactly one active row per user survives a login.

All business logic lives here — controllers call service methods
and return the result.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SessionConflictError
from app.core.security import IssuedToken, TokenIssuer, fingerprint_device
from app.models.base import utcnow
from app.models.session import UserSession
from app.models.user import User
from app.services import session_service, user_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceInfo:
    """Request metadata a session row is keyed on."""

    user_agent: str
    ip_address: str
    device_id: str

    @classmethod
    def from_request_meta(
        cls,
        user_agent: str | None,
        ip_address: str | None,
        id_length: int = 32,
    ) -> "DeviceInfo":
        ua = user_agent or ""
        ip = ip_address or ""
        return cls(user_agent=ua, ip_address=ip, device_id=fingerprint_device(ua, ip, id_length))


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str
    session: UserSession
    reused: bool


# ── Session reconciliation ───────────────────────────────────────────

async def reconcile_session(
    user: User,
    issued: IssuedToken,
    device: DeviceInfo,
    db: AsyncSession,
) -> tuple[UserSession, bool]:
    """
    Decide which session row backs a freshly issued token.

    Order matters: the same-device lookup runs first so a re-login from
    a known device never kicks anyone out; only a new device triggers
    the force-close of the user's open rows before the insert.

    Returns ``(session, reused)``.
    """
    now = utcnow()

    existing = await session_service.get_active_session_for_device(user.id, device.device_id, db)
    if existing is not None:
        existing.token = issued.token
        existing.token_expires_at = issued.expires_at
        existing.last_activity = now
        user.last_login = now
        await db.flush()
        logger.info("Session %s reused for user %s on device %s", existing.id, user.id, device.device_id)
        return existing, True

    closed = await session_service.force_close_user_sessions(user.id, db, now=now)

    session = UserSession(
        id=uuid.uuid4(),
        user_id=user.id,
        device_id=device.device_id,
        token=issued.token,
        token_expires_at=issued.expires_at,
        user_agent=device.user_agent,
        ip_address=device.ip_address,
        login_time=now,
        last_activity=now,
        is_active=True,
        forced_logout=False,
    )
    db.add(session)
    user.last_login = now
    try:
        await db.flush()
    except IntegrityError:
        # Another login for this user committed an active row first
        logger.warning("Concurrent login detected for user %s; rejecting this one", user.id)
        raise SessionConflictError() from None

    logger.info(
        "Session %s opened for user %s on device %s (%d previous session(s) force-closed)",
        session.id,
        user.id,
        device.device_id,
        closed,
    )
    return session, False


# ── Login / registration ─────────────────────────────────────────────

async def login(
    email: str,
    password: str,
    device: DeviceInfo,
    issuer: TokenIssuer,
    db: AsyncSession,
) -> LoginResult:
    user = await user_service.verify_credentials(email, password, db)
    issued = issuer.issue(user.id)
    session, reused = await reconcile_session(user, issued, device, db)
    logger.info("Login successful for user %s", user.id)
    return LoginResult(user=user, token=issued.token, session=session, reused=reused)


async def register(
    username: str,
    email: str,
    password: str,
    phone: str | None,
    device: DeviceInfo,
    issuer: TokenIssuer,
    db: AsyncSession,
    bcrypt_rounds: int = 10,
) -> LoginResult:
    user = await user_service.register_user(
        username, email, password, phone, db, bcrypt_rounds=bcrypt_rounds,
    )
    issued = issuer.issue(user.id)
    session, reused = await reconcile_session(user, issued, device, db)
    return LoginResult(user=user, token=issued.token, session=session, reused=reused)


async def logout(token: str | None, db: AsyncSession) -> bool:
    """Close the session bound to ``token``; a missing token is a no-op."""
    if not token:
        return False
    closed = await session_service.close_session_by_token(token, db)
    if closed:
        logger.info("Session closed by logout")
    return closed
