"""
Payout Service — splits a paid campaign into per-provider payouts.

For every Accepted item the media owner's commission_pct is applied to the
captured subtotal; amounts are summed per owner and rounded once per
payout. Items on media whose owner is not a Provider are skipped.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.errors import Conflict, Forbidden
from adspace.models import (
    Campaign, CampaignItem, CampaignStatus, Media, Payout, PayoutStatus,
    Provider, ProviderItemDecision, User, UserRole,
)
from adspace.store import Page, alive, get_live, money, paginate
from adspace.utils import utcnow

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


@dataclass
class PayoutBreakdownLine:
    item_id: int
    media_id: int
    provider_user_id: int
    subtotal: Decimal
    commission_pct: int
    amount: Decimal

    def as_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "media_id": self.media_id,
            "provider_user_id": self.provider_user_id,
            "subtotal": str(self.subtotal),
            "commission_pct": self.commission_pct,
            "amount": str(money(self.amount)),
        }


@dataclass
class PayoutRun:
    campaign: Campaign
    payouts: list[Payout] = field(default_factory=list)
    breakdown: list[PayoutBreakdownLine] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return money(sum((p.amount for p in self.payouts), Decimal(0)))

    def summary(self) -> dict:
        return {
            "campaign_id": self.campaign.id,
            "campaign_total": str(self.campaign.total),
            "payouts_created": len(self.payouts),
            "total_payout_amount": str(self.total_amount),
        }


class PayoutService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _scoped(self, caller: User):
        stmt = select(Payout).where(alive(Payout))
        if caller.role == UserRole.ADMIN.value:
            return stmt
        if caller.role == UserRole.PROVIDER.value:
            return stmt.where(Payout.user_id == caller.id)
        return stmt.where(false())

    async def list_payouts(
        self,
        caller: User,
        page: int = 1,
        per_page: Optional[int] = None,
        campaign_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Page:
        stmt = self._scoped(caller)
        if campaign_id is not None:
            stmt = stmt.where(Payout.campaign_id == campaign_id)
        if status:
            stmt = stmt.where(Payout.status == status)
        return await paginate(self.db, stmt.order_by(Payout.id.desc()), page, per_page)

    async def get(self, caller: User, payout_id: int) -> Payout:
        payout = await get_live(self.db, Payout, payout_id, label="Payout")
        visible = await self.db.execute(self._scoped(caller).where(Payout.id == payout_id))
        if visible.scalar_one_or_none() is None:
            raise Forbidden("You do not have access to this payout")
        return payout

    async def generate(self, caller: User, campaign_id: int) -> PayoutRun:
        if caller.role != UserRole.ADMIN.value:
            raise Forbidden("Only admins can generate payouts")

        campaign = await get_live(self.db, Campaign, campaign_id, lock=True, label="Campaign")
        if campaign.status != CampaignStatus.PAID.value:
            raise Conflict(f"Payouts can only be generated for Paid campaigns; this one is {campaign.status}")

        existing = await self.db.execute(
            select(Payout.id).where(Payout.campaign_id == campaign.id, alive(Payout))
        )
        if existing.first():
            raise Conflict("Payouts have already been generated for this campaign")

        rows = await self.db.execute(
            select(CampaignItem, Media, User, Provider)
            .join(Media, Media.id == CampaignItem.media_id)
            .join(User, User.id == Media.owner_user_id)
            .outerjoin(Provider, (Provider.user_id == User.id) & alive(Provider))
            .where(
                CampaignItem.campaign_id == campaign.id,
                CampaignItem.provider_status == ProviderItemDecision.ACCEPTED.value,
                alive(CampaignItem),
            )
            .order_by(CampaignItem.id)
            .with_for_update(of=[CampaignItem, Media])
        )

        run = PayoutRun(campaign=campaign)
        per_owner: dict[int, Decimal] = defaultdict(Decimal)
        for item, media, owner, provider in rows.all():
            if owner.role != UserRole.PROVIDER.value:
                logger.info(f"Payout: skipping item {item.id}, media {media.id} owner {owner.id} is {owner.role}")
                continue
            if provider is None:
                raise Conflict(f"Provider user {owner.id} has no provider profile; set a commission first")
            amount = Decimal(item.subtotal) * Decimal(provider.commission_pct) / HUNDRED
            per_owner[owner.id] += amount
            run.breakdown.append(PayoutBreakdownLine(
                item_id=item.id,
                media_id=media.id,
                provider_user_id=owner.id,
                subtotal=item.subtotal,
                commission_pct=provider.commission_pct,
                amount=amount,
            ))

        if not run.breakdown:
            raise Conflict("This campaign has no accepted media to pay out")

        for owner_id, amount in per_owner.items():
            amount = money(amount)
            if amount <= 0:
                continue
            payout = Payout(
                campaign_id=campaign.id,
                user_id=owner_id,
                amount=amount,
                status=PayoutStatus.PENDING.value,
            )
            self.db.add(payout)
            run.payouts.append(payout)

        await self.db.flush()
        logger.info(
            f"Generated {len(run.payouts)} payouts for campaign {campaign.id}: "
            f"{run.total_amount} of {campaign.total}"
        )
        return run

    async def mark_paid(self, caller: User, payout_id: int) -> Payout:
        if caller.role != UserRole.ADMIN.value:
            raise Forbidden("Only admins can settle payouts")
        payout = await get_live(self.db, Payout, payout_id, lock=True, label="Payout")
        if payout.status != PayoutStatus.PENDING.value:
            raise Conflict(f"Only Pending payouts can be paid; this one is {payout.status}")
        payout.status = PayoutStatus.PAID.value
        payout.paid_at = utcnow()
        await self.db.flush()
        logger.info(f"Payout {payout.id} to user {payout.user_id} marked paid ({payout.amount})")
        return payout
