"""
Cancellations Router — penalty bands applied when a campaign is cancelled (admin only).

A band {start_days, end_days, commission_pct} charges commission_pct of the
campaign total when the lead time falls inside [start_days, end_days].
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from adspace.auth import require_admin
from adspace.database import get_db
from adspace.errors import ValidationFailed
from adspace.models import CancellationPolicy, User
from adspace.schemas import CancellationPolicyOut, dump, dump_page
from adspace.store import PER_PAGE_LIMIT, alive, get_live, paginate
from adspace.utils import envelope

router = APIRouter(prefix="/cancellations", tags=["Cancellations"])


class PolicyCreateRequest(BaseModel):
    start_days: int = Field(..., ge=0)
    end_days: int = Field(..., ge=0)
    commission_pct: int = Field(..., ge=0, le=100)


class PolicyUpdateRequest(BaseModel):
    start_days: Optional[int] = Field(None, ge=0)
    end_days: Optional[int] = Field(None, ge=0)
    commission_pct: Optional[int] = Field(None, ge=0, le=100)


def _check_band(start_days: int, end_days: int) -> None:
    if end_days < start_days:
        raise ValidationFailed.field("end_days", "end_days must be greater than or equal to start_days")


@router.get("")
async def list_policies(
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=PER_PAGE_LIMIT),
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(CancellationPolicy).where(alive(CancellationPolicy)).order_by(CancellationPolicy.start_days)
    result = await paginate(db, stmt, page, per_page)
    return envelope(dump_page(result, CancellationPolicyOut))


@router.post("", status_code=201)
async def create_policy(
    payload: PolicyCreateRequest,
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    _check_band(payload.start_days, payload.end_days)
    policy = CancellationPolicy(**payload.model_dump())
    db.add(policy)
    await db.flush()
    return envelope(dump(CancellationPolicyOut, policy), "Cancellation policy created")


@router.get("/{policy_id}")
async def get_policy(
    policy_id: int,
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    policy = await get_live(db, CancellationPolicy, policy_id, label="Cancellation policy")
    return envelope(dump(CancellationPolicyOut, policy))


@router.put("/{policy_id}")
async def update_policy(
    policy_id: int,
    payload: PolicyUpdateRequest,
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    policy = await get_live(db, CancellationPolicy, policy_id, label="Cancellation policy")
    for key, value in payload.model_dump(exclude_none=True).items():
        setattr(policy, key, value)
    _check_band(policy.start_days, policy.end_days)
    await db.flush()
    return envelope(dump(CancellationPolicyOut, policy), "Cancellation policy updated")


@router.delete("/{policy_id}")
async def delete_policy(
    policy_id: int,
    _: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    policy = await get_live(db, CancellationPolicy, policy_id, label="Cancellation policy")
    policy.soft_delete()
    await db.flush()
    return envelope(None, "Cancellation policy deleted")
