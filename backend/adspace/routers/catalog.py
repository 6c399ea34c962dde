"""
Catalog Router — public media search (no auth).
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.database import get_db
from adspace.schemas import MediaOut, dump_page
from adspace.services.catalog_service import CatalogFilters, search_catalog
from adspace.store import PER_PAGE_LIMIT
from adspace.utils import envelope

router = APIRouter(prefix="/catalog", tags=["Catalog"])


@router.get("/media")
async def browse_media(
    name: Optional[str] = None,
    type: Optional[str] = None,
    location: Optional[str] = None,
    price_per_day: Optional[Decimal] = Query(None, ge=0),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    db: AsyncSession = Depends(get_db),
):
    """Active media, optionally only those free over [start_date, end_date]."""
    filters = CatalogFilters(
        name=name,
        type=type,
        location=location,
        price_per_day=price_per_day,
        min_price=min_price,
        max_price=max_price,
        start_date=start_date,
        end_date=end_date,
        sort_by=sort_by,
        sort_order=sort_order.lower(),
    )
    result = await search_catalog(db, filters, page, per_page)
    return envelope(dump_page(result, MediaOut))
