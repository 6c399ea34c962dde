"""
Auth Service — Password hashing, JWT creation/verification, credential checks.
"""

import secrets
import string
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from adspace.models import User
from adspace.config import get_settings
from adspace.errors import Unauthorized
from adspace.store import alive

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=get_settings().bcrypt_rounds,
)

ALGORITHM = "HS256"
GENERATED_PASSWORD_LENGTH = 10


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def generate_password(length: int = GENERATED_PASSWORD_LENGTH) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def create_access_token(user_id: int, email: str, role: str) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": now + timedelta(minutes=settings.access_token_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    """Check email/password and stamp last_login_at. Raises Unauthorized on any mismatch."""
    result = await db.execute(select(User).where(User.email == email.lower(), alive(User)))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthorized("Invalid email or password")
    if not user.is_active:
        raise Unauthorized("Account is disabled")

    user.last_login_at = datetime.now(timezone.utc).replace(tzinfo=None)
    await db.flush()
    logger.info(f"User {user.id} logged in")
    return user
