"""
Payments Router — record the payment of a confirmed campaign (admin) and read payments.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.auth import get_current_user, require_admin
from adspace.database import get_db
from adspace.models import User
from adspace.schemas import PaymentOut, dump, dump_page
from adspace.services.payment_service import PaymentService
from adspace.store import PER_PAGE_LIMIT
from adspace.utils import envelope

router = APIRouter(prefix="/payments", tags=["Payments"])


class PaymentCreateRequest(BaseModel):
    campaign_id: int


@router.get("")
async def list_payments(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    campaign_id: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await PaymentService(db).list_payments(user, page, per_page, campaign_id)
    return envelope(dump_page(result, PaymentOut))


@router.post("", status_code=201)
async def pay_campaign(
    payload: PaymentCreateRequest,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payment = await PaymentService(db).pay(user, payload.campaign_id)
    return envelope(dump(PaymentOut, payment), "Payment recorded; campaign is now Paid")


@router.get("/{payment_id}")
async def get_payment(
    payment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payment = await PaymentService(db).get(user, payment_id)
    return envelope(dump(PaymentOut, payment))
