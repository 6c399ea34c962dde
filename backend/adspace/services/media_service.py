"""
Media Service — provider-owned media and their price-rule links.

Providers only see and edit their own media; admins see everything and may
assign a media to any Provider. Link rows are never hard-deleted: detach
soft-deletes the row and a later attach revives it.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.errors import Forbidden, ValidationFailed
from adspace.models import Media, MediaImage, MediaPriceRule, MediaStatus, PriceRule, User, UserRole
from adspace.store import Page, alive, get_live, money, paginate

logger = logging.getLogger(__name__)

MAX_PRICE_PER_DAY = Decimal("999999.99")


class MediaService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Access ────────────────────────────────────────────────────────

    @staticmethod
    def _check_manager(caller: User) -> None:
        if caller.role not in (UserRole.ADMIN.value, UserRole.PROVIDER.value):
            raise Forbidden("Only admins and providers can manage media")

    @staticmethod
    def _check_owner(caller: User, media: Media) -> None:
        if caller.role == UserRole.PROVIDER.value and media.owner_user_id != caller.id:
            raise Forbidden("You can only manage your own media")

    async def _resolve_owner(self, caller: User, owner_user_id: Optional[int]) -> int:
        if caller.role == UserRole.PROVIDER.value:
            if owner_user_id not in (None, caller.id):
                raise Forbidden("Providers can only own their own media")
            return caller.id
        if owner_user_id is None:
            raise ValidationFailed.field("owner_user_id", "The media owner is required")
        result = await self.db.execute(select(User).where(User.id == owner_user_id, alive(User)))
        owner = result.scalar_one_or_none()
        if not owner or owner.role != UserRole.PROVIDER.value:
            raise ValidationFailed.field("owner_user_id", "The media owner must be an existing Provider")
        return owner.id

    @staticmethod
    def _check_price(price_per_day: Decimal) -> Decimal:
        if price_per_day < 0 or price_per_day > MAX_PRICE_PER_DAY:
            raise ValidationFailed.field("price_per_day", f"The price per day must be between 0 and {MAX_PRICE_PER_DAY}")
        return money(price_per_day)

    async def get_owned(self, caller: User, media_id: int, lock: bool = False) -> Media:
        self._check_manager(caller)
        media = await get_live(self.db, Media, media_id, lock=lock, label="Media")
        self._check_owner(caller, media)
        return media

    # ── CRUD ──────────────────────────────────────────────────────────

    async def list_media(self, caller: User, page: int = 1, per_page: Optional[int] = None) -> Page:
        self._check_manager(caller)
        stmt = select(Media).where(alive(Media))
        if caller.role == UserRole.PROVIDER.value:
            stmt = stmt.where(Media.owner_user_id == caller.id)
        return await paginate(self.db, stmt.order_by(Media.id.desc()), page, per_page)

    async def create(
        self,
        caller: User,
        name: str,
        type: str,
        location: str,
        price_per_day: Decimal,
        status: str = MediaStatus.AVAILABLE.value,
        active: bool = True,
        owner_user_id: Optional[int] = None,
        price_rule_ids: Optional[list[int]] = None,
    ) -> Media:
        self._check_manager(caller)
        media = Media(
            name=name,
            type=type,
            location=location,
            price_per_day=self._check_price(price_per_day),
            status=status,
            active=active,
            owner_user_id=await self._resolve_owner(caller, owner_user_id),
        )
        self.db.add(media)
        await self.db.flush()
        if price_rule_ids:
            await self.sync_rules(caller, media.id, price_rule_ids)
        logger.info(f"Created media {media.id} '{media.name}' for user {media.owner_user_id} at {media.price_per_day}/day")
        return media

    async def update(self, caller: User, media_id: int, **fields) -> Media:
        media = await self.get_owned(caller, media_id, lock=True)
        price_rule_ids = fields.pop("price_rule_ids", None)

        if "owner_user_id" in fields:
            owner_user_id = fields.pop("owner_user_id")
            if owner_user_id is not None and owner_user_id != media.owner_user_id:
                media.owner_user_id = await self._resolve_owner(caller, owner_user_id)
        if fields.get("price_per_day") is not None:
            fields["price_per_day"] = self._check_price(fields["price_per_day"])

        for key in ("name", "type", "location", "price_per_day", "status", "active"):
            if fields.get(key) is not None:
                setattr(media, key, fields[key])

        if price_rule_ids is not None:
            await self.sync_rules(caller, media.id, price_rule_ids)
        await self.db.flush()
        return media

    async def delete(self, caller: User, media_id: int) -> Media:
        media = await self.get_owned(caller, media_id, lock=True)
        media.soft_delete()
        await self.db.flush()
        logger.info(f"Deleted media {media.id}")
        return media

    async def list_images(self, caller: User, media_id: int) -> list[MediaImage]:
        await self.get_owned(caller, media_id)
        result = await self.db.execute(
            select(MediaImage).where(MediaImage.media_id == media_id, alive(MediaImage)).order_by(MediaImage.id)
        )
        return list(result.scalars().all())

    # ── Price-rule links ──────────────────────────────────────────────

    async def _links(self, media_id: int) -> dict[int, MediaPriceRule]:
        """Every link row for the media keyed by rule id, soft-deleted ones included."""
        result = await self.db.execute(select(MediaPriceRule).where(MediaPriceRule.media_id == media_id))
        return {link.price_rule_id: link for link in result.scalars().all()}

    async def _check_rules_exist(self, rule_ids: Iterable[int]) -> set[int]:
        wanted = set(rule_ids)
        if not wanted:
            return wanted
        result = await self.db.execute(select(PriceRule.id).where(PriceRule.id.in_(wanted), alive(PriceRule)))
        missing = wanted - set(result.scalars().all())
        if missing:
            raise ValidationFailed.field(
                "price_rule_ids", f"Unknown price rules: {', '.join(str(i) for i in sorted(missing))}",
            )
        return wanted

    async def list_rules(self, caller: User, media_id: int, on: Optional[date] = None) -> list[PriceRule]:
        """Live rules linked to the media; with `on`, only rules whose window covers that day."""
        await self.get_owned(caller, media_id)
        stmt = (
            select(PriceRule)
            .join(MediaPriceRule, MediaPriceRule.price_rule_id == PriceRule.id)
            .where(MediaPriceRule.media_id == media_id, alive(MediaPriceRule), alive(PriceRule))
        )
        if on is not None:
            stmt = stmt.where(PriceRule.start_date <= on, PriceRule.end_date >= on)
        result = await self.db.execute(stmt.order_by(PriceRule.id))
        return list(result.scalars().all())

    async def attach_rules(self, caller: User, media_id: int, rule_ids: Iterable[int]) -> None:
        await self.get_owned(caller, media_id)
        wanted = await self._check_rules_exist(rule_ids)
        links = await self._links(media_id)
        for rule_id in wanted:
            link = links.get(rule_id)
            if link is None:
                self.db.add(MediaPriceRule(media_id=media_id, price_rule_id=rule_id))
            elif link.deleted_at is not None:
                link.deleted_at = None
        await self.db.flush()

    async def detach_rules(self, caller: User, media_id: int, rule_ids: Iterable[int]) -> None:
        await self.get_owned(caller, media_id)
        links = await self._links(media_id)
        for rule_id in set(rule_ids):
            link = links.get(rule_id)
            if link is not None and link.deleted_at is None:
                link.soft_delete()
        await self.db.flush()

    async def sync_rules(self, caller: User, media_id: int, rule_ids: Iterable[int]) -> None:
        await self.get_owned(caller, media_id)
        wanted = await self._check_rules_exist(rule_ids)
        links = await self._links(media_id)
        live = {rule_id for rule_id, link in links.items() if link.deleted_at is None}
        if live - wanted:
            await self.detach_rules(caller, media_id, live - wanted)
        if wanted - live:
            await self.attach_rules(caller, media_id, wanted - live)
        logger.info(f"Media {media_id} price rules synced to {sorted(wanted)}")
