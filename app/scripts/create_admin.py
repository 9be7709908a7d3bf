"""
One-time bootstrap script — creates the first ADMIN user.

Usage:
    python -m app.scripts.create_admin

You only need this ONCE.  Everyone else self-registers as ``basic``
and gets promoted through PUT /api/admin/users/{id}/permissions.
"""

import asyncio
import getpass
import uuid

from sqlalchemy import or_, select

from app.core.config import get_settings
from app.core.database import async_session_factory, engine
from app.core.security import MAX_PASSWORD_BYTES, hash_password
from app.models.user import User, UserRole, starter_permissions
from app.services.user_service import normalize_email, normalize_username


async def create_admin() -> None:
    settings = get_settings()

    async with async_session_factory() as session:
        # ── Collect input ────────────────────────────────────────────
        print("\nExamPrep Backend — First Admin Setup\n")
        username = normalize_username(input("  Username: "))
        email = normalize_email(input("  Email:    "))
        phone = input("  Phone:    ").strip()
        password = getpass.getpass("  Password: ")
        confirm = getpass.getpass("  Confirm:  ")

        if password != confirm:
            print("\nPasswords do not match.")
            await engine.dispose()
            return

        if not username or not email or not phone or not password:
            print("\nAll fields are required.")
            await engine.dispose()
            return

        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            print(f"\nPassword must be at most {MAX_PASSWORD_BYTES} bytes.")
            await engine.dispose()
            return

        # ── Check for existing user ──────────────────────────────────
        existing = (
            await session.execute(
                select(User).where(
                    or_(User.email == email, User.username == username, User.phone == phone)
                )
            )
        ).scalars().first()

        if existing:
            print(f"\nA user with that email, username or phone already exists ({existing.email}).")
            await engine.dispose()
            return

        # ── Create the admin user ────────────────────────────────────
        admin_user = User(
            id=uuid.uuid4(),
            username=username,
            email=email,
            phone=phone,
            password_hash=hash_password(password, rounds=settings.BCRYPT_ROUNDS),
            role=UserRole.ADMIN,
            permissions=starter_permissions(),
            is_active=True,
        )
        session.add(admin_user)
        await session.commit()

        print("\nAdmin user created successfully!")
        print(f"    ID:    {admin_user.id}")
        print(f"    Email: {admin_user.email}")
        print(f"\n   You can now log in via POST {settings.API_PREFIX}/auth/login\n")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(create_admin())
