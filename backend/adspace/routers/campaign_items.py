"""
Campaign Items Router — book media into campaigns; providers accept or reject.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.auth import get_current_user, require_roles
from adspace.database import get_db
from adspace.models import User, UserRole
from adspace.schemas import CampaignItemOut, dump, dump_page
from adspace.services.campaign_item_service import CampaignItemService
from adspace.store import PER_PAGE_LIMIT
from adspace.utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaign-items", tags=["Campaign Items"])

require_provider = require_roles(UserRole.PROVIDER)


# ── Schemas ────────────────────────────────────────────────────────────

class ItemCreateRequest(BaseModel):
    range: str = Field(..., min_length=1, max_length=100)
    campaign_id: int
    media_id: int


class ItemUpdateRequest(BaseModel):
    range: Optional[str] = Field(None, min_length=1, max_length=100)
    campaign_id: Optional[int] = None


class RejectRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)


def _service(db: AsyncSession = Depends(get_db)) -> CampaignItemService:
    return CampaignItemService(db)


# ── Endpoints ───────────────────────────────────────────────────────────

@router.get("")
async def list_items(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    campaign_id: Optional[int] = None,
    user: User = Depends(get_current_user),
    service: CampaignItemService = Depends(_service),
):
    result = await service.list_items(user, page, per_page, campaign_id)
    return envelope(dump_page(result, CampaignItemOut))


@router.post("", status_code=201)
async def add_item(
    payload: ItemCreateRequest,
    user: User = Depends(get_current_user),
    service: CampaignItemService = Depends(_service),
):
    """Book a media for the whole campaign range at the price in force for it."""
    booked = await service.add(user, payload.range, payload.campaign_id, payload.media_id)
    return envelope(
        {"item": dump(CampaignItemOut, booked.item), "calculation": booked.quote.as_dict()},
        "Media added to campaign",
    )


@router.get("/{item_id}")
async def get_item(
    item_id: int,
    user: User = Depends(get_current_user),
    service: CampaignItemService = Depends(_service),
):
    item = await service.get_item(user, item_id)
    return envelope(dump(CampaignItemOut, item))


@router.put("/{item_id}")
async def update_item(
    item_id: int,
    payload: ItemUpdateRequest,
    user: User = Depends(get_current_user),
    service: CampaignItemService = Depends(_service),
):
    item = await service.update(user, item_id, range_=payload.range, campaign_id=payload.campaign_id)
    return envelope(dump(CampaignItemOut, item), "Campaign item updated")


@router.delete("/{item_id}")
async def remove_item(
    item_id: int,
    user: User = Depends(get_current_user),
    service: CampaignItemService = Depends(_service),
):
    await service.remove(user, item_id)
    return envelope(None, "Media removed from campaign")


@router.patch("/{item_id}/accept")
async def accept_item(
    item_id: int,
    user: User = Depends(require_provider),
    service: CampaignItemService = Depends(_service),
):
    item = await service.accept(user, item_id)
    return envelope(dump(CampaignItemOut, item), "Campaign item accepted")


@router.patch("/{item_id}/reject")
async def reject_item(
    item_id: int,
    payload: RejectRequest,
    user: User = Depends(require_provider),
    service: CampaignItemService = Depends(_service),
):
    item = await service.reject(user, item_id, payload.description)
    return envelope(dump(CampaignItemOut, item), "Campaign item rejected")
