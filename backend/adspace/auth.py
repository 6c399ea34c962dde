"""
Authentication & Authorization — JWT bearer tokens and role gates.

- Clients, providers and admins log in at /auth/login and send
  Authorization: Bearer <jwt> on every /v1 call except the public catalog.
- `require_roles(...)` narrows an endpoint to the listed roles; ownership
  checks that depend on the row being touched live in the services.
"""

import logging
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from adspace.database import get_db
from adspace.errors import Forbidden, Unauthorized
from adspace.models import User, UserRole
from adspace.services.auth_service import decode_access_token
from adspace.store import alive

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Require a valid JWT and return the caller's User row."""
    if not credentials:
        raise Unauthorized("Missing authorization. Include header: Authorization: Bearer <token>")

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise Unauthorized("Invalid or expired token. Please log in again.")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise Unauthorized("Invalid or expired token. Please log in again.")

    result = await db.execute(select(User).where(User.id == user_id, alive(User)))
    user = result.scalar_one_or_none()
    if not user:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise Unauthorized("Account is disabled")

    return user


def require_roles(*roles: UserRole):
    """Dependency factory: allow only callers whose role is listed."""
    allowed = {r.value for r in roles}

    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.info(f"User {user.id} ({user.role}) denied; requires one of {sorted(allowed)}")
            raise Forbidden(f"This action requires role: {', '.join(sorted(allowed))}")
        return user

    return _check


require_admin = require_roles(UserRole.ADMIN)
