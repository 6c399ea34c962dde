"""
Campaign Service — campaign lifecycle, role-scoped reads and cancellation.

State machine (see `models.CAMPAIGN_TRANSITIONS`):
    Pending → Confirmed → Paid → Active → Finished
    Pending | Confirmed | Paid → Cancelled (penalty by lead time)

Paid is only reachable through PaymentService.pay and Cancelled only
through cancel(); a plain update may confirm, activate or finish.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import false, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.clock import Clock
from adspace.config import get_settings
from adspace.errors import Conflict, Forbidden, ValidationFailed
from adspace.models import (
    Campaign, CampaignItem, CampaignStatus, CancellationPolicy, Currency, User, UserRole,
)
from adspace.store import Page, alive, campaign_ids_for_provider, get_live, money, paginate
from adspace.utils import utcnow

logger = logging.getLogger(__name__)

CANCELLABLE_STATES = {
    CampaignStatus.PENDING.value,
    CampaignStatus.CONFIRMED.value,
    CampaignStatus.PAID.value,
}
DELETABLE_STATES = {CampaignStatus.PENDING.value, CampaignStatus.CANCELLED.value}
# Statuses with their own operation; update() refuses to set them directly
GUARDED_TARGETS = {CampaignStatus.PAID.value, CampaignStatus.CANCELLED.value}


@dataclass
class CancellationResult:
    campaign: Campaign
    days_until_start: int
    penalty_pct: int
    penalty_amount: Decimal
    policy_id: Optional[int] = None

    def penalty_dict(self) -> dict:
        return {
            "days_until_start": self.days_until_start,
            "penalty_pct": self.penalty_pct,
            "penalty_amount": str(self.penalty_amount),
            "policy_id": self.policy_id,
        }


async def resolve_penalty(db: AsyncSession, days_until_start: int) -> tuple[int, Optional[int]]:
    """
    Penalty percentage for cancelling `days_until_start` days ahead.

    Returns (pct, policy_id). Configured policy bands win; the lowest
    start_days band containing the lead time applies. With no bands at
    all the configured default (≤ N days ⇒ pct) is used.
    """
    result = await db.execute(
        select(CancellationPolicy)
        .where(alive(CancellationPolicy))
        .order_by(CancellationPolicy.start_days, CancellationPolicy.id)
    )
    policies = result.scalars().all()

    if not policies:
        settings = get_settings()
        if days_until_start <= settings.cancellation_penalty_days:
            return settings.cancellation_penalty_pct, None
        return 0, None

    for policy in policies:
        if policy.start_days <= days_until_start <= policy.end_days:
            return policy.commission_pct, policy.id
    return 0, None


class CampaignService:
    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    # ── Access ────────────────────────────────────────────────────────

    def _scoped(self, caller: User):
        stmt = select(Campaign).where(alive(Campaign))
        if caller.role == UserRole.ADMIN.value:
            return stmt
        if caller.role == UserRole.CLIENT.value:
            return stmt.where(Campaign.user_id == caller.id)
        if caller.role == UserRole.PROVIDER.value:
            return stmt.where(Campaign.id.in_(campaign_ids_for_provider(caller.id)))
        return stmt.where(false())

    @staticmethod
    def _check_owner(caller: User, campaign: Campaign) -> None:
        if caller.role == UserRole.ADMIN.value:
            return
        if caller.role == UserRole.CLIENT.value and campaign.user_id == caller.id:
            return
        raise Forbidden("You can only manage your own campaigns")

    async def _check_name_free(self, name: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Campaign.id).where(Campaign.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Campaign.id != exclude_id)
        if (await self.db.execute(stmt)).first():
            raise ValidationFailed.field("name", "A campaign with this name already exists")

    async def _require_client(self, user_id: int) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id, alive(User)))
        user = result.scalar_one_or_none()
        if not user or user.role != UserRole.CLIENT.value:
            raise ValidationFailed.field("user_id", "The campaign owner must be an existing Client")
        return user

    # ── Reads ─────────────────────────────────────────────────────────

    async def list_campaigns(
        self,
        caller: User,
        page: int = 1,
        per_page: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Page:
        stmt = self._scoped(caller)
        if status:
            stmt = stmt.where(Campaign.status == status)
        return await paginate(self.db, stmt.order_by(Campaign.id.desc()), page, per_page)

    async def get(self, caller: User, campaign_id: int) -> Campaign:
        campaign = await get_live(self.db, Campaign, campaign_id, label="Campaign")
        visible = await self.db.execute(self._scoped(caller).where(Campaign.id == campaign_id))
        if visible.scalar_one_or_none() is None:
            raise Forbidden("You do not have access to this campaign")
        return campaign

    # ── Writes ────────────────────────────────────────────────────────

    async def create(
        self,
        caller: User,
        name: str,
        start_date: date,
        end_date: date,
        currency: str = Currency.USD.value,
        status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Campaign:
        if caller.role == UserRole.CLIENT.value:
            if status not in (None, CampaignStatus.PENDING.value):
                raise Forbidden("Clients can only create Pending campaigns")
            if user_id not in (None, caller.id):
                raise Forbidden("Clients can only create campaigns for themselves")
            owner_id = caller.id
            status = CampaignStatus.PENDING.value
        elif caller.role == UserRole.ADMIN.value:
            if user_id is None:
                raise ValidationFailed.field("user_id", "The campaign owner is required")
            owner_id = (await self._require_client(user_id)).id
            status = status or CampaignStatus.PENDING.value
            if status not in (CampaignStatus.PENDING.value, CampaignStatus.CONFIRMED.value):
                raise ValidationFailed.field("status", "New campaigns must be Pending or Confirmed")
        else:
            raise Forbidden("Only admins and clients can create campaigns")

        errors: dict[str, list[str]] = {}
        if start_date < self.clock.today():
            errors["start_date"] = ["The start date must be today or later"]
        if end_date <= start_date:
            errors["end_date"] = ["The end date must be after the start date"]
        if errors:
            raise ValidationFailed(errors)
        await self._check_name_free(name)

        campaign = Campaign(
            name=name,
            start_date=start_date,
            end_date=end_date,
            currency=currency,
            status=status,
            user_id=owner_id,
            total=money(0),
        )
        self.db.add(campaign)
        await self.db.flush()
        logger.info(f"Created campaign {campaign.id} ({status}) for user {owner_id}: {start_date}..{end_date}")
        return campaign

    async def update(
        self,
        caller: User,
        campaign_id: int,
        name: Optional[str] = None,
        currency: Optional[str] = None,
        status: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Campaign:
        campaign = await get_live(self.db, Campaign, campaign_id, lock=True, label="Campaign")
        self._check_owner(caller, campaign)
        is_admin = caller.role == UserRole.ADMIN.value

        if (status is not None or user_id is not None) and not is_admin:
            raise Forbidden("Only admins can change the campaign status or owner")

        if name is not None and name != campaign.name:
            await self._check_name_free(name, exclude_id=campaign.id)
            campaign.name = name
        if currency is not None:
            campaign.currency = currency

        if user_id is not None and user_id != campaign.user_id:
            campaign.user_id = (await self._require_client(user_id)).id

        if status is not None and status != campaign.status:
            if status in GUARDED_TARGETS:
                how = "recording a payment" if status == CampaignStatus.PAID.value else "cancelling it"
                raise Conflict(f"A campaign becomes {status} only by {how}")
            if not campaign.can_transition_to(status):
                raise Conflict(f"Cannot move a campaign from {campaign.status} to {status}")
            logger.info(f"Campaign {campaign.id}: {campaign.status} → {status}")
            campaign.status = status

        await self.db.flush()
        return campaign

    async def delete(self, caller: User, campaign_id: int) -> Campaign:
        campaign = await get_live(self.db, Campaign, campaign_id, lock=True, label="Campaign")
        self._check_owner(caller, campaign)
        if campaign.status not in DELETABLE_STATES:
            raise Conflict(f"A {campaign.status} campaign cannot be deleted")

        now = utcnow()
        await self.db.execute(
            update(CampaignItem)
            .where(CampaignItem.campaign_id == campaign.id, alive(CampaignItem))
            .values(deleted_at=now)
        )
        # Keep the total equal to the sum of live items, which is now none
        campaign.total = money(0)
        campaign.deleted_at = now
        await self.db.flush()
        logger.info(f"Deleted campaign {campaign.id} and its items")
        return campaign

    async def cancel(self, caller: User, campaign_id: int) -> CancellationResult:
        campaign = await get_live(self.db, Campaign, campaign_id, lock=True, label="Campaign")
        self._check_owner(caller, campaign)

        if campaign.status not in CANCELLABLE_STATES:
            raise Conflict(f"A {campaign.status} campaign cannot be cancelled")

        today = self.clock.today()
        if campaign.start_date <= today:
            raise Conflict("The campaign has already started and can no longer be cancelled")

        days_until_start = (campaign.start_date - today).days
        pct, policy_id = await resolve_penalty(self.db, days_until_start)
        amount = money(Decimal(campaign.total) * Decimal(pct) / Decimal(100))

        campaign.status = CampaignStatus.CANCELLED.value
        campaign.penalty_pct = pct
        campaign.penalty_amount = amount
        campaign.cancelled_at = utcnow()
        await self.db.flush()

        logger.info(
            f"Cancelled campaign {campaign.id} {days_until_start} days ahead: "
            f"penalty {pct}% = {amount} of {campaign.total}"
        )
        return CancellationResult(
            campaign=campaign,
            days_until_start=days_until_start,
            penalty_pct=pct,
            penalty_amount=amount,
            policy_id=policy_id,
        )
