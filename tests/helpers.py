"""Request helpers shared by the API tests."""

import uuid

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import hash_password
from app.models.user import User, UserRole, starter_permissions

BROWSER_A = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0"
BROWSER_B = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Safari/604.1"
ADMIN_CONSOLE = "AdminConsole/1.0"

ADMIN_PASSWORD = "admin-pass-123"


def auth_headers(token: str, user_agent: str = BROWSER_A) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", "User-Agent": user_agent}


async def register(
    client: AsyncClient,
    username: str = "John Doe",
    email: str = "j@x.com",
    password: str = "secret1",
    phone: str = "987654321",
    user_agent: str = BROWSER_A,
):
    return await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password, "phone": phone},
        headers={"User-Agent": user_agent},
    )


async def login(
    client: AsyncClient,
    email: str = "j@x.com",
    password: str = "secret1",
    user_agent: str = BROWSER_A,
):
    return await client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
        headers={"User-Agent": user_agent},
    )


async def create_admin(db: AsyncSession, email: str = "admin@x.com") -> User:
    admin = User(
        id=uuid.uuid4(),
        username="ADMIN",
        email=email,
        phone="900000000",
        password_hash=hash_password(ADMIN_PASSWORD, rounds=4),
        role=UserRole.ADMIN,
        permissions=starter_permissions(),
        is_active=True,
    )
    db.add(admin)
    await db.commit()
    return admin
