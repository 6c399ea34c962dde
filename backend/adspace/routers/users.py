"""
Users Router — User management and provider profiles (admin only).
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from adspace.auth import require_admin
from adspace.crypto import decrypt_value, encrypt_value, mask_account
from adspace.database import get_db
from adspace.errors import Conflict, ValidationFailed
from adspace.models import Provider, User, UserRole
from adspace.schemas import ProviderOut, UserOut, dump, dump_page
from adspace.services.auth_service import generate_password, hash_password
from adspace.store import PER_PAGE_LIMIT, alive, get_live, paginate
from adspace.utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


# ── Schemas ────────────────────────────────────────────────────────────

class UserCreateRequest(BaseModel):
    email: EmailStr
    password: str | None = Field(None, min_length=8)  # generated when omitted
    name: str | None = Field(None, max_length=255)
    role: UserRole = UserRole.CLIENT


class UserUpdateRequest(BaseModel):
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8)
    name: str | None = Field(None, max_length=255)
    role: UserRole | None = None
    is_active: bool | None = None


class ProviderProfileRequest(BaseModel):
    business_name: str = Field(..., min_length=1, max_length=100)
    tax_id: str = Field(..., min_length=1, max_length=100)
    commission_pct: int = Field(..., ge=0, le=100)
    bank_account: str = Field(..., min_length=1, max_length=100)
    clabe: str = Field(..., min_length=18, max_length=18)


def _provider_body(provider: Provider) -> dict:
    body = dump(ProviderOut, provider)
    body["bank_account"] = mask_account(decrypt_value(provider.bank_account))
    return body


async def _check_email_free(db: AsyncSession, email: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise ValidationFailed.field("email", "Email already registered")


# ── Endpoints ───────────────────────────────────────────────────────────

@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    role: Optional[UserRole] = None,
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List users. Admin only."""
    stmt = select(User).where(alive(User))
    if role:
        stmt = stmt.where(User.role == role.value)
    result = await paginate(db, stmt.order_by(User.id.desc()), page, per_page)
    return envelope(dump_page(result, UserOut))


@router.post("", status_code=201)
async def create_user(
    payload: UserCreateRequest,
    current: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a user directly. A random password is generated and returned once when none is given."""
    email = payload.email.lower()
    await _check_email_free(db, email)

    password = payload.password or generate_password()
    user = User(
        email=email,
        password_hash=hash_password(password),
        name=payload.name or email.split("@")[0],
        role=payload.role.value,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    logger.info(f"Admin {current.id} created user {user.id} ({user.role})")

    data = dump(UserOut, user)
    if not payload.password:
        data["generated_password"] = password
    return envelope(data, "User created")


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await get_live(db, User, user_id, label="User")
    return envelope(dump(UserOut, user))


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    current: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update user. Admin only."""
    user = await get_live(db, User, user_id, label="User")

    if payload.email is not None and payload.email.lower() != user.email:
        await _check_email_free(db, payload.email.lower(), exclude_id=user.id)
        user.email = payload.email.lower()
    if payload.name is not None:
        user.name = payload.name
    if payload.role is not None:
        if user.id == current.id and payload.role != UserRole.ADMIN:
            raise Conflict("You cannot remove your own admin role")
        user.role = payload.role.value
    if payload.is_active is not None:
        if user.id == current.id and not payload.is_active:
            raise Conflict("You cannot deactivate your own account")
        user.is_active = payload.is_active
    if payload.password:
        user.password_hash = hash_password(payload.password)

    await db.flush()
    return envelope(dump(UserOut, user), "User updated")


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    current: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a user. Cannot delete yourself."""
    if user_id == current.id:
        raise Conflict("You cannot delete your own account")
    user = await get_live(db, User, user_id, label="User")
    user.soft_delete()
    await db.flush()
    logger.info(f"Admin {current.id} deleted user {user.id}")
    return envelope(None, "User deleted")


# ── Provider profile ────────────────────────────────────────────────────

async def _provider_user(db: AsyncSession, user_id: int) -> User:
    user = await get_live(db, User, user_id, label="User")
    if user.role != UserRole.PROVIDER.value:
        raise Conflict("Only users with the Provider role have a provider profile")
    return user


@router.get("/{user_id}/provider")
async def get_provider_profile(
    user_id: int,
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await _provider_user(db, user_id)
    result = await db.execute(select(Provider).where(Provider.user_id == user.id, alive(Provider)))
    provider = result.scalar_one_or_none()
    if not provider:
        return envelope(None, "This provider has no profile yet")
    return envelope(_provider_body(provider))


@router.put("/{user_id}/provider")
async def upsert_provider_profile(
    user_id: int,
    payload: ProviderProfileRequest,
    current: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the provider profile of a Provider user."""
    user = await _provider_user(db, user_id)

    clash = await db.execute(
        select(Provider.id).where(Provider.clabe == payload.clabe, Provider.user_id != user.id)
    )
    if clash.first():
        raise ValidationFailed.field("clabe", "This CLABE is already registered")

    # Includes a soft-deleted profile so the unique user_id is reused
    result = await db.execute(select(Provider).where(Provider.user_id == user.id))
    provider = result.scalar_one_or_none()
    created = provider is None
    if created:
        provider = Provider(user_id=user.id)
        db.add(provider)

    provider.business_name = payload.business_name
    provider.tax_id = payload.tax_id
    provider.commission_pct = payload.commission_pct
    provider.bank_account = encrypt_value(payload.bank_account)
    provider.clabe = payload.clabe
    provider.deleted_at = None
    await db.flush()

    logger.info(f"Admin {current.id} saved provider profile for user {user.id} (commission {provider.commission_pct}%)")
    return envelope(_provider_body(provider), "Provider profile saved")
