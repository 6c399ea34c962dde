"""
Catalog — public search over active media.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.errors import ValidationFailed
from adspace.models import Media
from adspace.store import Page, alive, booked_media_ids, paginate

SORTABLE_FIELDS = {
    "name": Media.name,
    "type": Media.type,
    "location": Media.location,
    "price_per_day": Media.price_per_day,
    "created_at": Media.created_at,
}


@dataclass
class CatalogFilters:
    name: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    price_per_day: Optional[Decimal] = None  # upper bound
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"

    def validate(self) -> None:
        errors: dict[str, list[str]] = {}
        if self.sort_by not in SORTABLE_FIELDS:
            errors["sort_by"] = [f"Sort field must be one of: {', '.join(SORTABLE_FIELDS)}"]
        if self.sort_order not in ("asc", "desc"):
            errors["sort_order"] = ["Sort order must be asc or desc"]
        if (self.start_date is None) != (self.end_date is None):
            errors["end_date" if self.start_date else "start_date"] = [
                "start_date and end_date must be given together"
            ]
        elif self.start_date and self.end_date < self.start_date:
            errors["end_date"] = ["The end date must be on or after the start date"]
        if self.min_price is not None and self.max_price is not None and self.min_price > self.max_price:
            errors["max_price"] = ["max_price must be greater than or equal to min_price"]
        if errors:
            raise ValidationFailed(errors)


def catalog_query(filters: CatalogFilters):
    filters.validate()
    stmt = select(Media).where(alive(Media), Media.active.is_(True))

    if filters.name:
        stmt = stmt.where(Media.name.ilike(f"%{filters.name}%"))
    if filters.type:
        stmt = stmt.where(Media.type.ilike(f"%{filters.type}%"))
    if filters.location:
        stmt = stmt.where(Media.location.ilike(f"%{filters.location}%"))
    if filters.price_per_day is not None:
        stmt = stmt.where(Media.price_per_day <= filters.price_per_day)
    if filters.min_price is not None:
        stmt = stmt.where(Media.price_per_day >= filters.min_price)
    if filters.max_price is not None:
        stmt = stmt.where(Media.price_per_day <= filters.max_price)
    if filters.start_date and filters.end_date:
        stmt = stmt.where(Media.id.not_in(booked_media_ids(filters.start_date, filters.end_date)))

    column = SORTABLE_FIELDS[filters.sort_by]
    ordering = column.asc() if filters.sort_order == "asc" else column.desc()
    return stmt.order_by(ordering, Media.id.desc())


async def search_catalog(
    db: AsyncSession,
    filters: CatalogFilters,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Page:
    return await paginate(db, catalog_query(filters), page, per_page)
