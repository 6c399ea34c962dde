"""
Media Router — media CRUD, price-rule links, price preview and image references.

Admins manage every media; providers only their own.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.auth import require_roles
from adspace.clock import Clock, get_clock
from adspace.database import get_db
from adspace.models import MediaImage, MediaStatus, User, UserRole
from adspace.schemas import MediaImageOut, MediaOut, PriceRuleOut, dump, dump_page
from adspace.services.media_service import MAX_PRICE_PER_DAY, MediaService
from adspace.services.pricing_service import quote_price
from adspace.store import PER_PAGE_LIMIT, get_live
from adspace.utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["Media"])
images_router = APIRouter(prefix="/media-images", tags=["Media"])

require_manager = require_roles(UserRole.ADMIN, UserRole.PROVIDER)


# ── Schemas ────────────────────────────────────────────────────────────

class MediaCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=100)
    price_per_day: Decimal = Field(..., ge=0, le=MAX_PRICE_PER_DAY, decimal_places=2)
    status: MediaStatus = MediaStatus.AVAILABLE
    active: bool = True
    owner_user_id: Optional[int] = None
    price_rule_ids: list[int] = []


class MediaUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[str] = Field(None, min_length=1, max_length=100)
    price_per_day: Optional[Decimal] = Field(None, ge=0, le=MAX_PRICE_PER_DAY, decimal_places=2)
    status: Optional[MediaStatus] = None
    active: Optional[bool] = None
    owner_user_id: Optional[int] = None
    price_rule_ids: Optional[list[int]] = None


class PriceRuleIdsRequest(BaseModel):
    price_rule_ids: list[int]


class MediaImageCreateRequest(BaseModel):
    media_id: int
    route: str = Field(..., min_length=1, max_length=250)


# ── Media ───────────────────────────────────────────────────────────────

@router.get("")
async def list_media(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    result = await MediaService(db).list_media(user, page, per_page)
    return envelope(dump_page(result, MediaOut))


@router.post("", status_code=201)
async def create_media(
    payload: MediaCreateRequest,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    media = await MediaService(db).create(
        user,
        name=payload.name,
        type=payload.type,
        location=payload.location,
        price_per_day=payload.price_per_day,
        status=payload.status.value,
        active=payload.active,
        owner_user_id=payload.owner_user_id,
        price_rule_ids=payload.price_rule_ids,
    )
    return envelope(dump(MediaOut, media), "Media created")


@router.get("/{media_id}")
async def get_media(
    media_id: int,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    service = MediaService(db)
    media = await service.get_owned(user, media_id)
    data = dump(MediaOut, media)
    data["price_rules"] = [dump(PriceRuleOut, r) for r in await service.list_rules(user, media_id)]
    data["images"] = [dump(MediaImageOut, i) for i in await service.list_images(user, media_id)]
    return envelope(data)


@router.put("/{media_id}")
async def update_media(
    media_id: int,
    payload: MediaUpdateRequest,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    fields = payload.model_dump(exclude_unset=True)
    if fields.get("status") is not None:
        fields["status"] = payload.status.value
    media = await MediaService(db).update(user, media_id, **fields)
    return envelope(dump(MediaOut, media), "Media updated")


@router.delete("/{media_id}")
async def delete_media(
    media_id: int,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    await MediaService(db).delete(user, media_id)
    return envelope(None, "Media deleted")


# ── Price rules of a media ──────────────────────────────────────────────

@router.get("/{media_id}/price-rules")
async def media_price_rules(
    media_id: int,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    rules = await MediaService(db).list_rules(user, media_id)
    return envelope([dump(PriceRuleOut, r) for r in rules])


@router.get("/{media_id}/price-rules/active")
async def media_active_price_rules(
    media_id: int,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Linked rules whose window covers today."""
    rules = await MediaService(db).list_rules(user, media_id, on=clock.today())
    return envelope([dump(PriceRuleOut, r) for r in rules])


async def _rules_after(service: MediaService, user: User, media_id: int) -> list[dict]:
    return [dump(PriceRuleOut, r) for r in await service.list_rules(user, media_id)]


@router.post("/{media_id}/price-rules/attach")
async def attach_price_rules(
    media_id: int,
    payload: PriceRuleIdsRequest,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    service = MediaService(db)
    await service.attach_rules(user, media_id, payload.price_rule_ids)
    return envelope(await _rules_after(service, user, media_id), "Price rules attached")


@router.post("/{media_id}/price-rules/detach")
async def detach_price_rules(
    media_id: int,
    payload: PriceRuleIdsRequest,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    service = MediaService(db)
    await service.detach_rules(user, media_id, payload.price_rule_ids)
    return envelope(await _rules_after(service, user, media_id), "Price rules detached")


@router.post("/{media_id}/price-rules/sync")
async def sync_price_rules(
    media_id: int,
    payload: PriceRuleIdsRequest,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    service = MediaService(db)
    await service.sync_rules(user, media_id, payload.price_rule_ids)
    return envelope(await _rules_after(service, user, media_id), "Price rules synced")


@router.get("/{media_id}/calculate-price")
async def calculate_price(
    media_id: int,
    start_date: date,
    end_date: date,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Preview the booking price of a media over a date range."""
    media = await MediaService(db).get_owned(user, media_id)
    quote = await quote_price(db, media, start_date, end_date)
    return envelope(quote.as_dict())


# ── Images ──────────────────────────────────────────────────────────────

@router.get("/{media_id}/images")
async def media_images(
    media_id: int,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    images = await MediaService(db).list_images(user, media_id)
    return envelope([dump(MediaImageOut, i) for i in images])


@images_router.post("", status_code=201)
async def add_media_image(
    payload: MediaImageCreateRequest,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Store a file reference for a media picture."""
    media = await MediaService(db).get_owned(user, payload.media_id)
    image = MediaImage(media_id=media.id, route=payload.route)
    db.add(image)
    await db.flush()
    return envelope(dump(MediaImageOut, image), "Image added")


@images_router.delete("/{image_id}")
async def delete_media_image(
    image_id: int,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    image = await get_live(db, MediaImage, image_id, label="Media image")
    await MediaService(db).get_owned(user, image.media_id)
    image.soft_delete()
    await db.flush()
    return envelope(None, "Image deleted")
