"""
Auth gate — per-request admission control.

Two explicit steps, chained through FastAPI's dependency system:

1. ``authenticate``: bearer token → verified user id → active user →
   open session row bound to that exact token.  Refreshes the row's
   ``last_activity`` and returns an immutable ``AuthContext``.
2. ``authorize``: role check on an already authenticated context.

A force-closed session makes step 1 fail even though the token itself
still verifies.  The user row is re-read on every request, so
role/permission edits apply to the very next call.

Usage in a route:
    @router.get("/profile")
    async def profile(ctx: AuthContext = Depends(get_auth_context)): ...

    @router.get("/users")
    async def users(ctx: AuthContext = Depends(admin_required)): ...
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import messages
from app.core.config import Settings
from app.core.database import get_db
from app.core.exceptions import ForbiddenError, InvalidTokenError, SessionInvalidError
from app.core.security import TokenIssuer
from app.models.base import utcnow
from app.models.session import UserSession
from app.models.user import User, UserRole
from app.services import session_service

logger = logging.getLogger("rbac")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity handed to every protected handler."""

    user: User
    session: UserSession
    device_id: str
    token: str


# ── App-scoped collaborators ─────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    return credentials.credentials if credentials else None


# ── Authentication ───────────────────────────────────────────────────

async def authenticate(
    token: str | None,
    db: AsyncSession,
    issuer: TokenIssuer,
) -> AuthContext:
    if not token:
        raise InvalidTokenError(messages.NO_TOKEN)

    user_id = issuer.verify(token)

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        logger.warning("Rejected token for missing or inactive user %s", user_id)
        raise InvalidTokenError()

    session = await session_service.get_active_session_by_token(user.id, token, db)
    if session is None:
        logger.warning("Rejected token without an open session for user %s", user.id)
        raise SessionInvalidError()

    session.last_activity = utcnow()
    await db.flush()
    return AuthContext(user=user, session=session, device_id=session.device_id, token=token)


async def get_auth_context(
    token: str | None = Depends(bearer_token),
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthContext:
    """FastAPI dependency form of ``authenticate``."""
    return await authenticate(token, db, issuer)


# ── Authorization ────────────────────────────────────────────────────

def authorize(context: AuthContext, *roles: UserRole) -> None:
    if context.user.role not in roles:
        logger.warning(
            "Role check failed for user %s: required one of %s, has %s",
            context.user.id,
            [r.value for r in roles],
            context.user.role.value,
        )
        raise ForbiddenError(
            messages.ADMIN_REQUIRED if roles == (UserRole.ADMIN,) else messages.INSUFFICIENT_PERMISSIONS
        )


class require_role:
    """
    Dependency factory.

    Can be used as:
        Depends(require_role(UserRole.ADMIN))
        Depends(require_role(UserRole.ADMIN, UserRole.PREMIUM))
    """

    def __init__(self, *roles: UserRole):
        self.roles = roles

    async def __call__(self, context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        authorize(context, *self.roles)
        return context


admin_required = require_role(UserRole.ADMIN)


def check_permission(user: User, page: str, function: str | None = None) -> bool:
    """
    Page-level capability check.

    Admins can do everything.  Everyone else needs ``access`` on the
    page and, when a function is named, that function in its list.
    """
    if user.role == UserRole.ADMIN:
        return True
    grant = (user.permissions or {}).get(page)
    if not grant or not grant.get("access"):
        return False
    if function:
        return function in (grant.get("functions") or [])
    return True


class require_page_permission:
    """
    Dependency factory guarding a route with a page grant.

    Can be used as:
        Depends(require_page_permission("exam-premium"))
        Depends(require_page_permission("exam-basic", "take_exam"))
    """

    def __init__(self, page: str, function: str | None = None):
        self.page = page
        self.function = function

    async def __call__(self, context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not check_permission(context.user, self.page, self.function):
            logger.warning(
                "Page check failed for user %s on %s (function=%s)",
                context.user.id,
                self.page,
                self.function,
            )
            # Do not reveal which grant is missing
            raise ForbiddenError(messages.INSUFFICIENT_PERMISSIONS)
        return context
