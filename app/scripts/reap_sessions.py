"""
Housekeeping — close session rows whose token has already expired.

Usage (e.g. from cron, once a day):
    python -m app.scripts.reap_sessions

Expired rows are harmless (the auth gate rejects their tokens on the
``exp`` claim), this just keeps "active" meaning active in the registry.
"""

import asyncio
import logging

from app.core.config import get_settings
from app.core.database import async_session_factory, engine
from app.services.session_service import reap_expired_sessions

logger = logging.getLogger("app.scripts.reap_sessions")


async def reap() -> int:
    async with async_session_factory() as session:
        closed = await reap_expired_sessions(session)
        await session.commit()
    await engine.dispose()
    logger.info("Reaped %d expired session(s)", closed)
    return closed


if __name__ == "__main__":
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    asyncio.run(reap())
