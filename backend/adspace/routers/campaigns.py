"""
Campaigns Router — campaign CRUD and cancellation.

Listing is role-scoped: admins see every campaign, clients their own,
providers the campaigns that book at least one of their media.
"""

import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.auth import get_current_user
from adspace.clock import Clock, get_clock
from adspace.database import get_db
from adspace.models import CampaignStatus, Currency, User
from adspace.schemas import CampaignOut, dump, dump_page
from adspace.services.campaign_service import CampaignService
from adspace.store import PER_PAGE_LIMIT
from adspace.utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


# ── Schemas ────────────────────────────────────────────────────────────

class CampaignCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    currency: Currency = Currency.USD
    status: Optional[CampaignStatus] = None
    user_id: Optional[int] = None


class CampaignUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    currency: Optional[Currency] = None
    status: Optional[CampaignStatus] = None
    user_id: Optional[int] = None


def _service(db: AsyncSession = Depends(get_db), clock: Clock = Depends(get_clock)) -> CampaignService:
    return CampaignService(db, clock)


# ── Endpoints ───────────────────────────────────────────────────────────

@router.get("")
async def list_campaigns(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    status: Optional[CampaignStatus] = None,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(_service),
):
    result = await service.list_campaigns(user, page, per_page, status.value if status else None)
    return envelope(dump_page(result, CampaignOut))


@router.post("", status_code=201)
async def create_campaign(
    payload: CampaignCreateRequest,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(_service),
):
    campaign = await service.create(
        user,
        name=payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        currency=payload.currency.value,
        status=payload.status.value if payload.status else None,
        user_id=payload.user_id,
    )
    return envelope(dump(CampaignOut, campaign), "Campaign created")


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: int,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(_service),
):
    campaign = await service.get(user, campaign_id)
    return envelope(dump(CampaignOut, campaign))


@router.put("/{campaign_id}")
async def update_campaign(
    campaign_id: int,
    payload: CampaignUpdateRequest,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(_service),
):
    campaign = await service.update(
        user,
        campaign_id,
        name=payload.name,
        currency=payload.currency.value if payload.currency else None,
        status=payload.status.value if payload.status else None,
        user_id=payload.user_id,
    )
    return envelope(dump(CampaignOut, campaign), "Campaign updated")


@router.delete("/{campaign_id}")
async def delete_campaign(
    campaign_id: int,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(_service),
):
    await service.delete(user, campaign_id)
    return envelope(None, "Campaign deleted")


@router.patch("/{campaign_id}/cancel")
async def cancel_campaign(
    campaign_id: int,
    user: User = Depends(get_current_user),
    service: CampaignService = Depends(_service),
):
    """Cancel a campaign that has not started yet. The penalty depends on the lead time."""
    result = await service.cancel(user, campaign_id)
    return envelope(
        {"campaign": dump(CampaignOut, result.campaign), "penalty": result.penalty_dict()},
        "Campaign cancelled",
    )
