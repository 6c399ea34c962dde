"""
Campaign Item Service — books media into campaigns.

Owns the campaign total: every add/move/remove adjusts `Campaign.total`
by the item's captured subtotal inside the same transaction, so the total
always equals the sum of live item subtotals.

Lock order inside a transaction is campaign(s) → media → items. Locking
the media row serializes concurrent bookings of the same media, which is
what keeps the overlap check and the insert atomic.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import false, select
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.errors import Conflict, Forbidden, ValidationFailed
from adspace.models import (
    Campaign, CampaignItem, CampaignStatus, Media, Payout, ProviderItemDecision, User, UserRole,
)
from adspace.services.availability_service import is_media_free
from adspace.services.pricing_service import PriceQuote, quote_price
from adspace.store import Page, alive, get_live, media_ids_for_provider, money, paginate

logger = logging.getLogger(__name__)

# Items can only be booked, moved or removed while the campaign is still being assembled
EDITABLE_CAMPAIGN_STATES = {CampaignStatus.PENDING.value, CampaignStatus.CONFIRMED.value}

# Providers can no longer change their decision once the campaign is over
CLOSED_DECISION_STATES = {CampaignStatus.CANCELLED.value, CampaignStatus.FINISHED.value}

MAX_DESCRIPTION_LENGTH = 255


@dataclass
class BookedItem:
    item: CampaignItem
    quote: PriceQuote


class CampaignItemService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Access ────────────────────────────────────────────────────────

    @staticmethod
    def _check_campaign_access(caller: User, campaign: Campaign) -> None:
        if caller.role == UserRole.CLIENT.value and campaign.user_id != caller.id:
            raise Forbidden("You can only manage items of your own campaigns")

    @staticmethod
    def _check_media_access(caller: User, media: Media) -> None:
        if caller.role == UserRole.PROVIDER.value and media.owner_user_id != caller.id:
            raise Forbidden("You can only manage items of media you own")

    def _check_access(self, caller: User, campaign: Campaign, media: Media) -> None:
        if caller.role not in {r.value for r in UserRole}:
            raise Forbidden()
        self._check_campaign_access(caller, campaign)
        self._check_media_access(caller, media)

    @staticmethod
    def _check_editable(campaign: Campaign) -> None:
        if campaign.status not in EDITABLE_CAMPAIGN_STATES:
            raise Conflict(f"Items cannot be changed while the campaign is {campaign.status}")

    async def _media_of(self, item: CampaignItem) -> Media:
        # A booked item outlives its media; the row is still needed for the owner check
        return await get_live(self.db, Media, item.media_id, include_deleted=True)

    async def _find_live_pair(self, campaign_id: int, media_id: int) -> Optional[CampaignItem]:
        result = await self.db.execute(
            select(CampaignItem).where(
                CampaignItem.campaign_id == campaign_id,
                CampaignItem.media_id == media_id,
                alive(CampaignItem),
            )
        )
        return result.scalars().first()

    # ── Reads ─────────────────────────────────────────────────────────

    async def list_items(
        self,
        caller: User,
        page: int = 1,
        per_page: Optional[int] = None,
        campaign_id: Optional[int] = None,
    ) -> Page:
        stmt = select(CampaignItem).where(alive(CampaignItem))
        if caller.role == UserRole.ADMIN.value:
            pass
        elif caller.role == UserRole.CLIENT.value:
            stmt = stmt.join(Campaign, Campaign.id == CampaignItem.campaign_id).where(
                Campaign.user_id == caller.id, alive(Campaign),
            )
        elif caller.role == UserRole.PROVIDER.value:
            stmt = stmt.where(CampaignItem.media_id.in_(media_ids_for_provider(caller.id)))
        else:
            stmt = stmt.where(false())
        if campaign_id is not None:
            stmt = stmt.where(CampaignItem.campaign_id == campaign_id)
        return await paginate(self.db, stmt.order_by(CampaignItem.id.desc()), page, per_page)

    async def get_item(self, caller: User, item_id: int) -> CampaignItem:
        item = await get_live(self.db, CampaignItem, item_id, label="Campaign item")
        campaign = await get_live(self.db, Campaign, item.campaign_id)
        media = await self._media_of(item)
        self._check_access(caller, campaign, media)
        return item

    # ── Writes ────────────────────────────────────────────────────────

    async def add(self, caller: User, range_: str, campaign_id: int, media_id: int) -> BookedItem:
        campaign = await get_live(self.db, Campaign, campaign_id, lock=True)
        media = await get_live(self.db, Media, media_id, lock=True)
        self._check_access(caller, campaign, media)
        self._check_editable(campaign)

        if await self._find_live_pair(campaign.id, media.id):
            raise Conflict("This media is already assigned to the selected campaign")

        if not await is_media_free(self.db, media.id, campaign.start_date, campaign.end_date, lock=True):
            raise Conflict(
                "This media is not available in the campaign dates. "
                "It is already booked by another campaign in that period."
            )

        quote = await quote_price(self.db, media, campaign.start_date, campaign.end_date)

        item = CampaignItem(
            campaign_id=campaign.id,
            media_id=media.id,
            range=range_,
            price_per_day=quote.final_price_per_day,
            subtotal=quote.subtotal,
            provider_status=ProviderItemDecision.PENDING.value,
        )
        self.db.add(item)
        campaign.total = money(campaign.total + quote.subtotal)
        await self.db.flush()

        logger.info(
            f"Booked media {media.id} into campaign {campaign.id} as item {item.id}: "
            f"{quote.final_price_per_day}/day x {quote.total_days} = {quote.subtotal}; "
            f"campaign total now {campaign.total}"
        )
        return BookedItem(item=item, quote=quote)

    async def update(
        self,
        caller: User,
        item_id: int,
        range_: Optional[str] = None,
        campaign_id: Optional[int] = None,
    ) -> CampaignItem:
        """
        Change the free-text range and/or move the item to another campaign.
        The captured price is never recomputed, so a move is only allowed
        between campaigns with the same date range.
        """
        item = await get_live(self.db, CampaignItem, item_id, label="Campaign item")
        moving = campaign_id is not None and campaign_id != item.campaign_id

        # Lock both campaigns in id order
        campaign_ids = sorted({item.campaign_id, campaign_id} if moving else {item.campaign_id})
        locked = {cid: await get_live(self.db, Campaign, cid, lock=True) for cid in campaign_ids}
        current = locked[item.campaign_id]
        media = await self._media_of(item)
        item = await get_live(self.db, CampaignItem, item_id, lock=True, label="Campaign item")

        self._check_access(caller, current, media)
        self._check_editable(current)

        if moving:
            target = locked[campaign_id]
            self._check_campaign_access(caller, target)
            self._check_editable(target)
            if (target.start_date, target.end_date) != (current.start_date, current.end_date):
                raise Conflict(
                    "An item can only move to a campaign with the same date range; "
                    "remove it and book the media again instead"
                )
            if await self._find_live_pair(target.id, item.media_id):
                raise Conflict("This media is already assigned to the selected campaign")

            current.total = money(current.total - item.subtotal)
            target.total = money(target.total + item.subtotal)
            item.campaign_id = target.id
            logger.info(f"Moved item {item.id} from campaign {current.id} to {target.id} ({item.subtotal})")

        if range_ is not None:
            item.range = range_

        await self.db.flush()
        return item

    async def remove(self, caller: User, item_id: int) -> CampaignItem:
        item = await get_live(self.db, CampaignItem, item_id, label="Campaign item")
        campaign = await get_live(self.db, Campaign, item.campaign_id, lock=True)
        media = await self._media_of(item)
        item = await get_live(self.db, CampaignItem, item_id, lock=True, label="Campaign item")
        self._check_access(caller, campaign, media)
        self._check_editable(campaign)

        item.soft_delete()
        if item.subtotal and item.subtotal > 0:
            campaign.total = money(campaign.total - item.subtotal)
        await self.db.flush()

        logger.info(f"Removed item {item.id} from campaign {campaign.id}; total now {campaign.total}")
        return item

    # ── Provider decision ─────────────────────────────────────────────

    async def _load_for_decision(self, caller: User, item_id: int) -> CampaignItem:
        if caller.role != UserRole.PROVIDER.value:
            raise Forbidden("Only providers can accept or reject campaign items")
        item = await get_live(self.db, CampaignItem, item_id, label="Campaign item")
        campaign = await get_live(self.db, Campaign, item.campaign_id, lock=True, label="Campaign")
        media = await self._media_of(item)
        item = await get_live(self.db, CampaignItem, item_id, lock=True, label="Campaign item")
        if media.owner_user_id != caller.id:
            raise Forbidden("You can only decide on items for media you own")

        if campaign.status in CLOSED_DECISION_STATES:
            raise Conflict(f"Items of a {campaign.status} campaign can no longer be accepted or rejected")
        # Payouts are computed from the accepted items; the decision is frozen after that
        payouts = await self.db.execute(
            select(Payout.id).where(Payout.campaign_id == campaign.id, alive(Payout)).limit(1)
        )
        if payouts.first():
            raise Conflict("Payouts have already been generated for this campaign")
        return item

    async def accept(self, caller: User, item_id: int) -> CampaignItem:
        item = await self._load_for_decision(caller, item_id)
        item.provider_status = ProviderItemDecision.ACCEPTED.value
        item.description = None
        await self.db.flush()
        logger.info(f"Provider {caller.id} accepted item {item.id}")
        return item

    async def reject(self, caller: User, item_id: int, description: str) -> CampaignItem:
        description = (description or "").strip()
        if not description:
            raise ValidationFailed.field("description", "A rejection description is required")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationFailed.field(
                "description", f"The description cannot exceed {MAX_DESCRIPTION_LENGTH} characters",
            )
        item = await self._load_for_decision(caller, item_id)
        item.provider_status = ProviderItemDecision.REJECTED.value
        item.description = description
        await self.db.flush()
        logger.info(f"Provider {caller.id} rejected item {item.id}")
        return item
