"""
Payment Service — records the client-side settlement of a confirmed campaign.

Nothing is charged here; a payment row is the ledger entry that moves the
campaign to Paid. The campaign row lock taken first makes "status is
Confirmed and no Success payment exists" hold until commit.
"""

import logging
from typing import Optional

from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.errors import Conflict, Forbidden
from adspace.models import Campaign, CampaignStatus, Payment, PaymentStatus, User, UserRole
from adspace.store import Page, alive, get_live, money, paginate

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _scoped(self, caller: User):
        stmt = select(Payment).where(alive(Payment))
        if caller.role == UserRole.ADMIN.value:
            return stmt
        if caller.role == UserRole.CLIENT.value:
            return stmt.join(Campaign, Campaign.id == Payment.campaign_id).where(Campaign.user_id == caller.id)
        return stmt.where(false())

    async def list_payments(
        self,
        caller: User,
        page: int = 1,
        per_page: Optional[int] = None,
        campaign_id: Optional[int] = None,
    ) -> Page:
        stmt = self._scoped(caller)
        if campaign_id is not None:
            stmt = stmt.where(Payment.campaign_id == campaign_id)
        return await paginate(self.db, stmt.order_by(Payment.id.desc()), page, per_page)

    async def get(self, caller: User, payment_id: int) -> Payment:
        payment = await get_live(self.db, Payment, payment_id, label="Payment")
        visible = await self.db.execute(self._scoped(caller).where(Payment.id == payment_id))
        if visible.scalar_one_or_none() is None:
            raise Forbidden("You do not have access to this payment")
        return payment

    async def pay(self, caller: User, campaign_id: int) -> Payment:
        if caller.role != UserRole.ADMIN.value:
            raise Forbidden("Only admins can record payments")

        campaign = await get_live(self.db, Campaign, campaign_id, lock=True, label="Campaign")

        if campaign.status == CampaignStatus.PAID.value:
            raise Conflict("This campaign has already been paid")
        if campaign.status != CampaignStatus.CONFIRMED.value:
            raise Conflict(f"Only Confirmed campaigns can be paid; this one is {campaign.status}")
        if campaign.total is None or campaign.total <= 0:
            raise Conflict("The campaign total must be greater than zero")

        existing = await self.db.execute(
            select(Payment.id).where(
                Payment.campaign_id == campaign.id,
                Payment.status == PaymentStatus.SUCCESS.value,
                alive(Payment),
            )
        )
        if existing.first():
            raise Conflict("This campaign already has a successful payment")

        payment = Payment(
            campaign_id=campaign.id,
            amount=money(campaign.total),
            status=PaymentStatus.SUCCESS.value,
        )
        self.db.add(payment)
        campaign.status = CampaignStatus.PAID.value
        await self.db.flush()

        logger.info(f"Payment {payment.id}: campaign {campaign.id} paid {payment.amount} {campaign.currency}")
        return payment
