"""
Auth Router — Login and profile of the signed-in user.
"""

import logging
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.auth import get_current_user
from adspace.database import get_db
from adspace.models import User
from adspace.schemas import UserOut, dump
from adspace.services.auth_service import authenticate, create_access_token
from adspace.utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


# ── Schemas ────────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# ── Endpoints ───────────────────────────────────────────────────────────

@router.post("/login")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login with email and password. Returns JWT."""
    user = await authenticate(db, payload.email, payload.password)
    token = create_access_token(user.id, user.email, user.role)
    return envelope(
        {"access_token": token, "token_type": "bearer", "user": dump(UserOut, user)},
        "Login successful",
    )


@router.get("/profile")
async def profile(user: User = Depends(get_current_user)):
    """Current user from the JWT."""
    return envelope(dump(UserOut, user))
