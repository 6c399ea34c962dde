"""
Media Marketplace — Database Models
Users (Admin / Provider / Client), rentable media, price rules, campaigns
built from media slots, and the money records settled against them.

Every domain table is soft-deletable through `deleted_at`; rows with a
non-null `deleted_at` are invisible to every query in `adspace.store`.
Money is `Numeric(12, 2)` and handled as `Decimal` in Python.
"""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy import (
    String, Integer, Boolean, Date, DateTime, Numeric, Text,
    ForeignKey, Index, UniqueConstraint, CheckConstraint, text,
)
from sqlalchemy.orm import Mapped, mapped_column
from adspace.database import Base


def _utcnow() -> datetime:
    """Naive UTC now — matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


Money = Numeric(12, 2)

ZERO = Decimal("0.00")


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class UserRole(str, enum.Enum):
    ADMIN = "Admin"
    PROVIDER = "Provider"
    CLIENT = "Client"


class MediaStatus(str, enum.Enum):
    AVAILABLE = "Available"
    BUSY = "Busy"


class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    COP = "COP"
    MXN = "MXN"
    ARS = "ARS"


class CampaignStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PAID = "Paid"
    ACTIVE = "Active"
    FINISHED = "Finished"
    CANCELLED = "Cancelled"


CAMPAIGN_TRANSITIONS: dict[str, set[str]] = {
    CampaignStatus.PENDING.value: {CampaignStatus.CONFIRMED.value, CampaignStatus.CANCELLED.value},
    CampaignStatus.CONFIRMED.value: {CampaignStatus.PAID.value, CampaignStatus.CANCELLED.value},
    CampaignStatus.PAID.value: {CampaignStatus.ACTIVE.value, CampaignStatus.CANCELLED.value},
    CampaignStatus.ACTIVE.value: {CampaignStatus.FINISHED.value},
    CampaignStatus.FINISHED.value: set(),  # Terminal
    CampaignStatus.CANCELLED.value: set(),  # Terminal
}


class ProviderItemDecision(str, enum.Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class PaymentStatus(str, enum.Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


class PayoutStatus(str, enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"


class _Timestamps:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
    deleted_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    def soft_delete(self) -> None:
        self.deleted_at = _utcnow()


# ══════════════════════════════════════════════════════════════════════
#  USERS & PROVIDER PROFILES
# ══════════════════════════════════════════════════════════════════════

class User(_Timestamps, Base):
    """App user for login and access control."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.CLIENT.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_users_role", "role"),
    )


class Provider(_Timestamps, Base):
    """Business profile of a Provider user. One-to-one with User."""
    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    business_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tax_id: Mapped[str] = mapped_column(String(100), nullable=False)
    commission_pct: Mapped[int] = mapped_column(Integer, nullable=False)
    bank_account: Mapped[str] = mapped_column(Text, nullable=False)  # Fernet-encrypted when a key is configured
    clabe: Mapped[str] = mapped_column(String(18), unique=True, nullable=False)

    __table_args__ = (
        CheckConstraint("commission_pct >= 0 AND commission_pct <= 100", name="ck_providers_commission_pct"),
    )


# ══════════════════════════════════════════════════════════════════════
#  MEDIA — rentable advertising slots
# ══════════════════════════════════════════════════════════════════════

class Media(_Timestamps, Base):
    """A rentable advertising display slot owned by a Provider."""
    __tablename__ = "media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str] = mapped_column(String(100), nullable=False)
    price_per_day: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(20), default=MediaStatus.AVAILABLE.value)  # advisory only
    owner_user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        Index("ix_media_owner_user_id", "owner_user_id"),
        Index("ix_media_active", "active"),
        CheckConstraint("price_per_day >= 0", name="ck_media_price_per_day"),
    )


class MediaImage(_Timestamps, Base):
    """File reference for a media picture. Blob storage lives elsewhere."""
    __tablename__ = "media_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_id: Mapped[int] = mapped_column(Integer, ForeignKey("media.id"), nullable=False)
    route: Mapped[str] = mapped_column(String(250), nullable=False)

    __table_args__ = (
        Index("ix_media_images_media_id", "media_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  PRICE RULES — percentage discounts over a date window
# ══════════════════════════════════════════════════════════════════════

class PriceRule(_Timestamps, Base):
    __tablename__ = "price_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    value_pct: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_price_rules_dates"),
        CheckConstraint("value_pct >= 0 AND value_pct <= 100", name="ck_price_rules_value_pct"),
    )


class MediaPriceRule(_Timestamps, Base):
    """Link row between media and price rules. Detaching soft-deletes it."""
    __tablename__ = "media_price_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    media_id: Mapped[int] = mapped_column(Integer, ForeignKey("media.id"), nullable=False)
    price_rule_id: Mapped[int] = mapped_column(Integer, ForeignKey("price_rules.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("media_id", "price_rule_id", name="uq_media_price_rule"),
        Index("ix_media_price_rules_price_rule_id", "price_rule_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  CANCELLATION POLICIES — penalty bands by lead time
# ══════════════════════════════════════════════════════════════════════

class CancellationPolicy(_Timestamps, Base):
    """Penalty band: cancelling with days_until_start in [start_days, end_days] costs commission_pct."""
    __tablename__ = "cancellations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_days: Mapped[int] = mapped_column(Integer, nullable=False)
    end_days: Mapped[int] = mapped_column(Integer, nullable=False)
    commission_pct: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("start_days <= end_days", name="ck_cancellations_days"),
    )


# ══════════════════════════════════════════════════════════════════════
#  CAMPAIGNS & ITEMS
# ══════════════════════════════════════════════════════════════════════

class Campaign(_Timestamps, Base):
    """Time-boxed bundle of media bookings owned by a Client."""
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total: Mapped[Decimal] = mapped_column(Money, nullable=False, default=ZERO)  # sum of live item subtotals
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=Currency.USD.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=CampaignStatus.PENDING.value)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    penalty_pct: Mapped[int] = mapped_column(Integer, nullable=True)
    penalty_amount: Mapped[Decimal] = mapped_column(Money, nullable=True)
    cancelled_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_campaigns_user_id", "user_id"),
        Index("ix_campaigns_status", "status"),
        Index("ix_campaigns_dates", "start_date", "end_date"),
        CheckConstraint("start_date < end_date", name="ck_campaigns_dates"),
    )

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in CAMPAIGN_TRANSITIONS.get(self.status, set())


class CampaignItem(_Timestamps, Base):
    """One media slot inside a campaign, with captured price and the provider's decision."""
    __tablename__ = "campaign_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False)
    media_id: Mapped[int] = mapped_column(Integer, ForeignKey("media.id"), nullable=False)
    range: Mapped[str] = mapped_column(String(100), nullable=False)  # free text, e.g. "Morning"
    price_per_day: Mapped[Decimal] = mapped_column(Money, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)
    provider_status: Mapped[str] = mapped_column(String(20), nullable=False, default=ProviderItemDecision.PENDING.value)
    description: Mapped[str] = mapped_column(String(255), nullable=True)  # rejection reason

    __table_args__ = (
        Index(
            "uq_campaign_items_campaign_media_live",
            "campaign_id", "media_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        Index("ix_campaign_items_media_id", "media_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  MONEY RECORDS
# ══════════════════════════════════════════════════════════════════════

class Payment(_Timestamps, Base):
    """Client-side settlement of a campaign. Recorded, not charged."""
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.SUCCESS.value)

    __table_args__ = (
        Index("ix_payments_campaign_id", "campaign_id"),
    )


class Payout(_Timestamps, Base):
    """Provider-side settlement derived from a paid campaign."""
    __tablename__ = "payouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PayoutStatus.PENDING.value)
    paid_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("campaign_id", "user_id", name="uq_payouts_campaign_user"),
        Index("ix_payouts_user_id", "user_id"),
    )
