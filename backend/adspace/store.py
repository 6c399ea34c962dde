"""
Store helpers — soft-delete aware lookups, row locks, the compound queries
the booking core needs, and pagination.

Row locks use SELECT ... FOR UPDATE; on SQLite (tests) the clause is not
rendered and the single writer lock provides the same serialization.
"""

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy import Select, select, func
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.config import get_settings
from adspace.errors import NotFound
from adspace.models import Campaign, CampaignItem, CampaignStatus, Media

T = TypeVar("T")

CENT = Decimal("0.01")

# Upper bound for the per_page query parameter of every list endpoint
PER_PAGE_LIMIT = get_settings().max_per_page


def money(value) -> Decimal:
    """Quantize to two decimals, half away from zero."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def alive(model):
    """WHERE clause for rows that are not soft-deleted."""
    return model.deleted_at.is_(None)


async def get_live(
    db: AsyncSession,
    model: type[T],
    obj_id: int,
    *,
    lock: bool = False,
    label: Optional[str] = None,
    include_deleted: bool = False,
) -> T:
    """Load a non-deleted row by id, optionally locking it for the rest of the transaction.

    `include_deleted` also returns soft-deleted rows, for records that still
    reference them (an item booked on a media that was later removed).
    """
    stmt = select(model).where(model.id == obj_id)
    if not include_deleted:
        stmt = stmt.where(alive(model))
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    obj = result.scalar_one_or_none()
    if obj is None:
        raise NotFound(f"{label or model.__name__} not found")
    return obj


# ── Booking queries ──────────────────────────────────────────────────

def overlapping_items(
    media_id: int,
    start: date,
    end: date,
    exclude_item_id: Optional[int] = None,
) -> Select:
    """Live items of `media_id` whose (non-cancelled, live) campaign overlaps [start, end] inclusive."""
    stmt = (
        select(CampaignItem)
        .join(Campaign, Campaign.id == CampaignItem.campaign_id)
        .where(
            CampaignItem.media_id == media_id,
            alive(CampaignItem),
            alive(Campaign),
            Campaign.status != CampaignStatus.CANCELLED.value,
            Campaign.start_date <= end,
            Campaign.end_date >= start,
        )
    )
    if exclude_item_id is not None:
        stmt = stmt.where(CampaignItem.id != exclude_item_id)
    return stmt


def booked_media_ids(start: date, end: date) -> Select:
    """Ids of media booked by any non-cancelled campaign overlapping [start, end]."""
    return (
        select(CampaignItem.media_id)
        .join(Campaign, Campaign.id == CampaignItem.campaign_id)
        .where(
            alive(CampaignItem),
            alive(Campaign),
            Campaign.status != CampaignStatus.CANCELLED.value,
            Campaign.start_date <= end,
            Campaign.end_date >= start,
        )
    )


def campaign_ids_for_provider(user_id: int) -> Select:
    """Campaigns holding at least one live item on media owned by `user_id`."""
    return (
        select(CampaignItem.campaign_id)
        .join(Media, Media.id == CampaignItem.media_id)
        .where(Media.owner_user_id == user_id, alive(CampaignItem))
    )


def media_ids_for_provider(user_id: int) -> Select:
    return select(Media.id).where(Media.owner_user_id == user_id, alive(Media))


# ── Pagination ───────────────────────────────────────────────────────

@dataclass
class Page:
    items: list
    page: int
    per_page: int
    total: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    def to_dict(self, serialize: Callable[[Any], Any]) -> dict:
        return {
            "data": [serialize(i) for i in self.items],
            "current_page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "last_page": self.last_page,
        }


def clamp_per_page(per_page: Optional[int]) -> int:
    settings = get_settings()
    if per_page is None:
        return settings.default_per_page
    return max(1, min(per_page, settings.max_per_page))


async def paginate(db: AsyncSession, stmt: Select, page: int = 1, per_page: Optional[int] = None) -> Page:
    per_page = clamp_per_page(per_page)
    page = max(1, page)
    count_result = await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    total = count_result.scalar() or 0
    result = await db.execute(stmt.offset((page - 1) * per_page).limit(per_page))
    return Page(items=list(result.scalars().all()), page=page, per_page=per_page, total=total)
