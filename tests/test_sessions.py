"""
Session reconciliation & auth gate tests.

Covers:
1. Same-device re-login reuses the row and rotates its token.
2. A login from another device force-closes the previous session.
3. At most one active row per user, whatever the login sequence.
4. The store itself refuses a second active row (concurrent logins).
5. Housekeeping closes rows whose token has expired.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SessionConflictError
from app.core.security import TokenIssuer, fingerprint_device
from app.models.session import UserSession
from app.models.user import User
from app.models import session as session_model_module
from app.models import user as user_model_module
from app.services import auth_service, session_service
from app.services.auth_service import DeviceInfo

from helpers import BROWSER_A, BROWSER_B, auth_headers, login, register

TEST_CLIENT_IP = "127.0.0.1"


async def _sessions(db: AsyncSession) -> list[UserSession]:
    db.expire_all()
    result = await db.execute(select(UserSession).order_by(UserSession.login_time))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_same_device_relogin_reuses_row(async_client: AsyncClient, db_session: AsyncSession):
    await register(async_client)
    first = (await login(async_client)).json()["data"]["token"]
    second = (await login(async_client)).json()["data"]["token"]
    assert first != second

    sessions = await _sessions(db_session)
    assert len(sessions) == 1
    only = sessions[0]
    assert only.is_active is True
    assert only.forced_logout is False
    assert only.token == second
    assert only.device_id == fingerprint_device(BROWSER_A, TEST_CLIENT_IP)

    # The rotated-out token no longer matches the row
    stale = await async_client.get("/api/auth/profile", headers=auth_headers(first))
    assert stale.status_code == 401
    fresh = await async_client.get("/api/auth/profile", headers=auth_headers(second))
    assert fresh.status_code == 200


@pytest.mark.asyncio
async def test_second_device_takes_over(async_client: AsyncClient, db_session: AsyncSession):
    """Browser A then browser B: A's row is force-closed and its token is dead."""
    await register(async_client)
    token_a = (await login(async_client, user_agent=BROWSER_A)).json()["data"]["token"]
    token_b = (await login(async_client, user_agent=BROWSER_B)).json()["data"]["token"]

    sessions = await _sessions(db_session)
    by_device = {s.device_id: s for s in sessions}
    session_a = by_device[fingerprint_device(BROWSER_A, TEST_CLIENT_IP)]
    session_b = by_device[fingerprint_device(BROWSER_B, TEST_CLIENT_IP)]

    assert session_a.is_active is False
    assert session_a.forced_logout is True
    assert session_a.logout_time is not None
    assert session_b.is_active is True
    assert session_b.forced_logout is False
    assert session_b.user_agent == BROWSER_B
    assert session_b.ip_address == TEST_CLIENT_IP

    resp_a = await async_client.get("/api/auth/profile", headers=auth_headers(token_a, BROWSER_A))
    assert resp_a.status_code == 401
    assert resp_a.json()["message"] == "Sesión expirada o inválida"

    resp_b = await async_client.get("/api/auth/profile", headers=auth_headers(token_b, BROWSER_B))
    assert resp_b.status_code == 200


@pytest.mark.asyncio
async def test_single_active_session_across_login_sequence(async_client: AsyncClient, db_session: AsyncSession):
    await register(async_client)
    for agent in (BROWSER_A, BROWSER_B, BROWSER_A, BROWSER_A, BROWSER_B, "curl/8.0"):
        assert (await login(async_client, user_agent=agent)).status_code == 200
        active = [s for s in await _sessions(db_session) if s.is_active]
        assert len(active) == 1
        assert active[0].device_id == fingerprint_device(agent, TEST_CLIENT_IP)


@pytest.mark.asyncio
async def test_other_users_sessions_are_untouched(async_client: AsyncClient, db_session: AsyncSession):
    await register(async_client)
    await register(async_client, username="jane", email="jane@x.com", phone="911111111", user_agent=BROWSER_B)
    await login(async_client, user_agent=BROWSER_B)

    active = [s for s in await _sessions(db_session) if s.is_active]
    assert len(active) == 2
    assert len({s.user_id for s in active}) == 2


@pytest.mark.asyncio
async def test_gate_refreshes_last_activity(async_client: AsyncClient, db_session: AsyncSession):
    token = (await register(async_client)).json()["data"]["token"]
    before = (await _sessions(db_session))[0].last_activity

    assert (await async_client.get("/api/auth/profile", headers=auth_headers(token))).status_code == 200
    after = (await _sessions(db_session))[0].last_activity
    assert after >= before


@pytest.mark.asyncio
async def test_gate_rejects_token_of_deleted_user(async_client: AsyncClient, db_session: AsyncSession):
    token = (await register(async_client)).json()["data"]["token"]
    user = (await db_session.execute(select(User))).scalar_one()
    await session_service.delete_user_sessions(user.id, db_session)
    await db_session.delete(user)
    await db_session.commit()

    resp = await async_client.get("/api/auth/profile", headers=auth_headers(token))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token no válido"


@pytest.mark.asyncio
async def test_store_refuses_two_active_rows_for_one_user(async_client: AsyncClient, db_session: AsyncSession):
    await register(async_client)
    user = (await db_session.execute(select(User))).scalar_one()
    expires = datetime.now(timezone.utc) + timedelta(days=7)

    db_session.add(
        UserSession(
            user_id=user.id,
            device_id="rogue-device",
            token="rogue-token",
            token_expires_at=expires,
        )
    )
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_losing_concurrent_login_is_rejected(db_session: AsyncSession, monkeypatch):
    """Simulate the race: the other device's row is still open when we insert."""
    issuer = TokenIssuer("race-secret")
    user = User(
        id=uuid.uuid4(),
        username="RACER",
        email="racer@x.com",
        phone="944444444",
        password_hash="x",
    )
    db_session.add(user)
    await db_session.flush()

    device_a = DeviceInfo.from_request_meta(BROWSER_A, TEST_CLIENT_IP)
    device_b = DeviceInfo.from_request_meta(BROWSER_B, TEST_CLIENT_IP)
    await auth_service.reconcile_session(user, issuer.issue(user.id), device_a, db_session)

    async def _stale_view(*_args, **_kwargs) -> int:
        # Pretend the competing login has not committed yet
        return 0

    monkeypatch.setattr(session_service, "force_close_user_sessions", _stale_view)
    with pytest.raises(SessionConflictError):
        await auth_service.reconcile_session(user, issuer.issue(user.id), device_b, db_session)
    await db_session.rollback()


@pytest.mark.asyncio
async def test_reconcile_reports_reuse(db_session: AsyncSession):
    issuer = TokenIssuer("reuse-secret")
    user = User(
        id=uuid.uuid4(),
        username="REUSER",
        email="reuser@x.com",
        phone="955555555",
        password_hash="x",
    )
    db_session.add(user)
    await db_session.flush()
    device = DeviceInfo.from_request_meta(BROWSER_A, TEST_CLIENT_IP)

    first, reused_first = await auth_service.reconcile_session(user, issuer.issue(user.id), device, db_session)
    second, reused_second = await auth_service.reconcile_session(user, issuer.issue(user.id), device, db_session)
    assert reused_first is False
    assert reused_second is True
    assert first.id == second.id
    assert user.last_login is not None


@pytest.mark.asyncio
async def test_reaper_closes_sessions_with_expired_tokens(async_client: AsyncClient, db_session: AsyncSession):
    await register(async_client)
    await register(async_client, username="jane", email="jane@x.com", phone="911111111", user_agent=BROWSER_B)

    sessions = await _sessions(db_session)
    stale, fresh = sessions[0], sessions[1]
    stale.token_expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
    await db_session.commit()

    closed = await session_service.reap_expired_sessions(db_session)
    await db_session.commit()
    assert closed == 1

    sessions = {s.id: s for s in await _sessions(db_session)}
    assert sessions[stale.id].is_active is False
    assert sessions[stale.id].forced_logout is False
    assert sessions[stale.id].logout_time is not None
    assert sessions[fresh.id].is_active is True


@pytest.mark.asyncio
async def test_logout_only_closes_presented_session(async_client: AsyncClient, db_session: AsyncSession):
    token = (await register(async_client)).json()["data"]["token"]
    await register(async_client, username="jane", email="jane@x.com", phone="911111111", user_agent=BROWSER_B)

    await async_client.post("/api/auth/logout", headers=auth_headers(token))
    count = await db_session.scalar(
        select(func.count()).select_from(UserSession).where(UserSession.is_active == True)  # noqa: E712
    )
    assert count == 1


def test_relationships_never_lazy_load():
    """Both sides of user <-> sessions refuse implicit loads; queries go through the services."""
    assert inspect(User).relationships["sessions"].lazy == "raise"
    assert inspect(UserSession).relationships["user"].lazy == "raise"


def test_model_modules_keep_their_docstrings():
    assert user_model_module.__doc__.strip().startswith("User model.")
    assert session_model_module.__doc__.strip().startswith("User session model")
