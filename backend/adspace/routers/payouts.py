"""
Payouts Router — generate provider payouts for a paid campaign and settle them.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.auth import get_current_user, require_admin
from adspace.database import get_db
from adspace.models import PayoutStatus, User
from adspace.schemas import PayoutOut, dump, dump_page
from adspace.services.payout_service import PayoutService
from adspace.store import PER_PAGE_LIMIT
from adspace.utils import envelope

router = APIRouter(prefix="/payouts", tags=["Payouts"])


class PayoutGenerateRequest(BaseModel):
    campaign_id: int


@router.get("")
async def list_payouts(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    campaign_id: Optional[int] = None,
    status: Optional[PayoutStatus] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await PayoutService(db).list_payouts(
        user, page, per_page, campaign_id, status.value if status else None,
    )
    return envelope(dump_page(result, PayoutOut))


@router.post("", status_code=201)
async def generate_payouts(
    payload: PayoutGenerateRequest,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Split a Paid campaign into one Pending payout per provider with accepted media."""
    run = await PayoutService(db).generate(user, payload.campaign_id)
    return envelope(
        {
            "payouts": [dump(PayoutOut, p) for p in run.payouts],
            "breakdown": [line.as_dict() for line in run.breakdown],
            "summary": run.summary(),
        },
        "Payouts generated",
    )


@router.get("/{payout_id}")
async def get_payout(
    payout_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payout = await PayoutService(db).get(user, payout_id)
    return envelope(dump(PayoutOut, payout))


@router.patch("/{payout_id}/pay")
async def mark_payout_paid(
    payout_id: int,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payout = await PayoutService(db).mark_paid(user, payout_id)
    return envelope(dump(PayoutOut, payout), "Payout marked as paid")
