"""
Shared fixtures: in-memory SQLite database, a fixed clock, an HTTP client
bound to the app, and small factories for seeding rows.
"""

import os

# Settings are read at import time; point them at a throwaway database first.
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENCRYPTION_KEY"] = ""
os.environ["FIRST_ADMIN_EMAIL"] = ""
os.environ["FIRST_ADMIN_PASSWORD"] = ""

from datetime import date
from decimal import Decimal
from itertools import count

import pytest
from httpx import AsyncClient, ASGITransport

from adspace.clock import FixedClock, get_clock
from adspace.database import Base, async_session, engine
from adspace.models import (
    Campaign, CampaignItem, CampaignStatus, Media, Provider, ProviderItemDecision, User, UserRole,
)
from adspace.services.auth_service import create_access_token, hash_password

TODAY = date(2025, 12, 1)
PASSWORD = "correct-horse"

_seq = count(1)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
async def db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session() as session:
        yield session
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db, clock):
    from adspace.main import app
    app.dependency_overrides[get_clock] = lambda: clock
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ── Factories ───────────────────────────────────────────────────────────

def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, user.role)}"}


async def make_user(db, role: UserRole = UserRole.CLIENT, email: str | None = None) -> User:
    n = next(_seq)
    user = User(
        email=email or f"{role.value.lower()}{n}@example.com",
        password_hash=hash_password(PASSWORD),
        name=f"{role.value} {n}",
        role=role.value,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    return user


async def make_provider(db, commission_pct: int = 30) -> User:
    user = await make_user(db, UserRole.PROVIDER)
    db.add(Provider(
        user_id=user.id,
        business_name=f"Business {user.id}",
        tax_id=f"TAX{user.id}",
        commission_pct=commission_pct,
        bank_account="000123456789",
        clabe=str(user.id).rjust(18, "0"),
    ))
    await db.flush()
    return user


async def make_media(db, owner: User, price: str | Decimal = "100.00", **fields) -> Media:
    n = next(_seq)
    media = Media(
        name=fields.pop("name", f"Billboard {n}"),
        type=fields.pop("type", "Billboard"),
        location=fields.pop("location", "Downtown"),
        price_per_day=Decimal(price),
        owner_user_id=owner.id,
        **fields,
    )
    db.add(media)
    await db.flush()
    return media


async def make_campaign(
    db,
    owner: User,
    start: date,
    end: date,
    status: CampaignStatus = CampaignStatus.PENDING,
    total: str | Decimal = "0.00",
    name: str | None = None,
) -> Campaign:
    campaign = Campaign(
        name=name or f"Campaign {next(_seq)}",
        start_date=start,
        end_date=end,
        total=Decimal(total),
        currency="USD",
        status=status.value,
        user_id=owner.id,
    )
    db.add(campaign)
    await db.flush()
    return campaign


async def make_item(
    db,
    campaign: Campaign,
    media: Media,
    subtotal: str | Decimal,
    decision: ProviderItemDecision = ProviderItemDecision.PENDING,
) -> CampaignItem:
    """Insert a booked item and keep the campaign total in step."""
    item = CampaignItem(
        campaign_id=campaign.id,
        media_id=media.id,
        range="Morning",
        price_per_day=Decimal(media.price_per_day),
        subtotal=Decimal(subtotal),
        provider_status=decision.value,
    )
    db.add(item)
    campaign.total = Decimal(campaign.total) + Decimal(subtotal)
    await db.flush()
    return item
