#!/usr/bin/env python3
"""
Create (or promote) an Admin user.

Email and password come from --email/--password or, when omitted, from
FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD in .env. An existing user with
that email is promoted to Admin and reactivated; the password is reset.
Run from backend/: python -m scripts.create_admin [--email a@b.c --password ...]
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


async def main(email: str | None, password: str | None):
    from adspace.config import get_settings
    from adspace.database import async_session, init_db
    from adspace.models import User, UserRole
    from adspace.services.auth_service import hash_password
    from sqlalchemy import select

    settings = get_settings()
    email = (email or settings.first_admin_email).lower()
    password = password or settings.first_admin_password
    if not email or not password:
        print("Error: pass --email/--password or set FIRST_ADMIN_EMAIL and FIRST_ADMIN_PASSWORD in .env")
        sys.exit(1)

    await init_db()
    async with async_session() as db:
        r = await db.execute(select(User).where(User.email == email))
        user = r.scalar_one_or_none()
        if user:
            user.role = UserRole.ADMIN.value
            user.is_active = True
            user.deleted_at = None
            user.password_hash = hash_password(password)
            action = "Promoted"
        else:
            user = User(
                email=email,
                password_hash=hash_password(password),
                name="Admin",
                role=UserRole.ADMIN.value,
                is_active=True,
            )
            db.add(user)
            action = "Created"
        await db.commit()
        print(f"{action} admin user: {user.email}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote an Admin user")
    parser.add_argument("--email")
    parser.add_argument("--password")
    args = parser.parse_args()
    asyncio.run(main(args.email, args.password))
