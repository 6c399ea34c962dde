"""
Pricing Service — price of a media over a campaign date range.

Every linked price rule whose window touches the range discounts the
untouched base rate by its percentage, so rule order never matters.
Intermediate amounts keep full Decimal precision; rounding (half away
from zero, two places) happens only on the reported figures.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adspace.errors import ValidationFailed
from adspace.models import Media, MediaPriceRule, PriceRule
from adspace.store import alive, money

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


@dataclass
class AppliedDiscount:
    rule_id: int
    rule_name: str
    value_pct: int
    discount_amount: Decimal


@dataclass
class PriceQuote:
    media_id: int
    start_date: date
    end_date: date
    total_days: int
    base_price_per_day: Decimal
    final_price_per_day: Decimal
    subtotal: Decimal
    applied_discounts: list[AppliedDiscount] = field(default_factory=list)

    @property
    def total_discount_amount(self) -> Decimal:
        return money(self.base_price_per_day - self.final_price_per_day)

    def as_dict(self) -> dict:
        return {
            "media_id": self.media_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "base_price_per_day": str(self.base_price_per_day),
            "final_price_per_day": str(self.final_price_per_day),
            "total_discount_amount": str(self.total_discount_amount),
            "applied_discounts": [
                {
                    "rule_id": d.rule_id,
                    "rule_name": d.rule_name,
                    "value_pct": d.value_pct,
                    "discount_amount": str(d.discount_amount),
                }
                for d in self.applied_discounts
            ],
            "subtotal": str(self.subtotal),
            "subtotal_calculation": f"{self.final_price_per_day} x {self.total_days} days = {self.subtotal}",
        }


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


async def rules_for_range(db: AsyncSession, media_id: int, start: date, end: date) -> list[PriceRule]:
    """Live rules linked (by a live link) to the media whose window intersects [start, end]."""
    result = await db.execute(
        select(PriceRule)
        .join(MediaPriceRule, MediaPriceRule.price_rule_id == PriceRule.id)
        .where(
            MediaPriceRule.media_id == media_id,
            alive(MediaPriceRule),
            alive(PriceRule),
            PriceRule.start_date <= end,
            PriceRule.end_date >= start,
        )
        .order_by(PriceRule.id)
    )
    return list(result.scalars().all())


def compute_quote(media: Media, rules: list[PriceRule], start: date, end: date) -> PriceQuote:
    """Pure part of the engine: base rate, rules and range in, quote out."""
    if end < start:
        raise ValidationFailed.field("end_date", "End date must be on or after start date")

    total_days = inclusive_days(start, end)
    base = Decimal(media.price_per_day)
    running = base
    applied = []
    for rule in rules:
        discount = base * Decimal(rule.value_pct) / HUNDRED
        running -= discount
        applied.append(AppliedDiscount(
            rule_id=rule.id,
            rule_name=rule.name,
            value_pct=rule.value_pct,
            discount_amount=money(discount),
        ))

    final = max(Decimal(0), running)
    return PriceQuote(
        media_id=media.id,
        start_date=start,
        end_date=end,
        total_days=total_days,
        base_price_per_day=money(base),
        final_price_per_day=money(final),
        subtotal=money(final * total_days),
        applied_discounts=applied,
    )


async def quote_price(db: AsyncSession, media: Media, start: date, end: date) -> PriceQuote:
    rules = await rules_for_range(db, media.id, start, end)
    quote = compute_quote(media, rules, start, end)
    logger.debug(
        f"Quote media={media.id} {start}..{end}: base={quote.base_price_per_day} "
        f"final={quote.final_price_per_day} days={quote.total_days} rules={len(rules)}"
    )
    return quote
