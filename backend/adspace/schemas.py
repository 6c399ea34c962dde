"""
Response models shared across routers. Money fields are Decimal and
serialize as two-decimal strings.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class _ORM(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserOut(_ORM):
    id: int
    email: str
    name: Optional[str]
    role: str
    is_active: bool
    last_login_at: Optional[datetime]
    created_at: datetime


class ProviderOut(_ORM):
    id: int
    user_id: int
    business_name: str
    tax_id: str
    commission_pct: int
    bank_account: str  # masked by the router
    clabe: str


class MediaOut(_ORM):
    id: int
    name: str
    type: str
    location: str
    price_per_day: Decimal
    active: bool
    status: Optional[str]
    owner_user_id: int
    created_at: datetime


class MediaImageOut(_ORM):
    id: int
    media_id: int
    route: str


class PriceRuleOut(_ORM):
    id: int
    name: str
    start_date: date
    end_date: date
    value_pct: int


class CancellationPolicyOut(_ORM):
    id: int
    start_days: int
    end_days: int
    commission_pct: int


class CampaignOut(_ORM):
    id: int
    name: str
    start_date: date
    end_date: date
    total: Decimal
    currency: str
    status: str
    user_id: int
    penalty_pct: Optional[int] = None
    penalty_amount: Optional[Decimal] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime


class CampaignItemOut(_ORM):
    id: int
    campaign_id: int
    media_id: int
    range: str
    price_per_day: Decimal
    subtotal: Decimal
    provider_status: str
    description: Optional[str]
    created_at: datetime


class PaymentOut(_ORM):
    id: int
    campaign_id: int
    amount: Decimal
    status: str
    created_at: datetime


class PayoutOut(_ORM):
    id: int
    campaign_id: int
    user_id: int
    amount: Decimal
    status: str
    paid_at: Optional[datetime]
    created_at: datetime


def dump(schema: type[BaseModel], obj) -> dict:
    """ORM row → JSON-ready dict (Decimals become strings)."""
    return schema.model_validate(obj).model_dump(mode="json")


def dump_page(page, schema: type[BaseModel]) -> dict:
    return page.to_dict(lambda obj: dump(schema, obj))
