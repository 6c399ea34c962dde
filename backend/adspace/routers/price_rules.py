"""
Price Rules Router — percentage discounts over a date window (admins and providers).
"""

import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from adspace.auth import require_roles
from adspace.clock import Clock, get_clock
from adspace.database import get_db
from adspace.errors import ValidationFailed
from adspace.models import PriceRule, User, UserRole
from adspace.schemas import PriceRuleOut, dump, dump_page
from adspace.store import PER_PAGE_LIMIT, alive, get_live, paginate
from adspace.utils import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/price-rules", tags=["Price Rules"])

require_manager = require_roles(UserRole.ADMIN, UserRole.PROVIDER)


# ── Schemas ────────────────────────────────────────────────────────────

class PriceRuleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    value_pct: int = Field(..., ge=0, le=100)


class PriceRuleUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    value_pct: Optional[int] = Field(None, ge=0, le=100)


async def _check_name_free(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    stmt = select(PriceRule.id).where(PriceRule.name == name)
    if exclude_id is not None:
        stmt = stmt.where(PriceRule.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise ValidationFailed.field("name", "A price rule with this name already exists")


# ── Endpoints ───────────────────────────────────────────────────────────

@router.get("")
async def list_price_rules(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    _: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(PriceRule).where(alive(PriceRule)).order_by(PriceRule.id.desc())
    result = await paginate(db, stmt, page, per_page)
    return envelope(dump_page(result, PriceRuleOut))


@router.post("", status_code=201)
async def create_price_rule(
    payload: PriceRuleCreateRequest,
    user: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    errors: dict[str, list[str]] = {}
    if payload.start_date < clock.today():
        errors["start_date"] = ["The start date must be today or later"]
    if payload.end_date < payload.start_date:
        errors["end_date"] = ["The end date must be on or after the start date"]
    if errors:
        raise ValidationFailed(errors)
    await _check_name_free(db, payload.name)

    rule = PriceRule(
        name=payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        value_pct=payload.value_pct,
    )
    db.add(rule)
    await db.flush()
    logger.info(f"User {user.id} created price rule {rule.id} ({rule.value_pct}% {rule.start_date}..{rule.end_date})")
    return envelope(dump(PriceRuleOut, rule), "Price rule created")


@router.get("/{rule_id}")
async def get_price_rule(
    rule_id: int,
    _: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    rule = await get_live(db, PriceRule, rule_id, label="Price rule")
    return envelope(dump(PriceRuleOut, rule))


@router.put("/{rule_id}")
async def update_price_rule(
    rule_id: int,
    payload: PriceRuleUpdateRequest,
    _: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Existing bookings keep the price captured when they were made."""
    rule = await get_live(db, PriceRule, rule_id, label="Price rule")

    start = payload.start_date or rule.start_date
    end = payload.end_date or rule.end_date
    if end < start:
        raise ValidationFailed.field("end_date", "The end date must be on or after the start date")
    if payload.name is not None and payload.name != rule.name:
        await _check_name_free(db, payload.name, exclude_id=rule.id)
        rule.name = payload.name

    rule.start_date = start
    rule.end_date = end
    if payload.value_pct is not None:
        rule.value_pct = payload.value_pct
    await db.flush()
    return envelope(dump(PriceRuleOut, rule), "Price rule updated")


@router.delete("/{rule_id}")
async def delete_price_rule(
    rule_id: int,
    _: User = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    rule = await get_live(db, PriceRule, rule_id, label="Price rule")
    rule.soft_delete()
    await db.flush()
    return envelope(None, "Price rule deleted")
