"""
Tests for settlement: client payments and provider payout fan-out.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from adspace.errors import Conflict, Forbidden
from adspace.models import CampaignStatus, Payment, PayoutStatus, ProviderItemDecision, UserRole
from adspace.services.payment_service import PaymentService
from adspace.services.payout_service import PayoutService

from conftest import auth_header, make_campaign, make_item, make_media, make_provider, make_user

ACCEPTED = ProviderItemDecision.ACCEPTED


async def _payment_count(db, campaign_id: int) -> int:
    result = await db.execute(select(func.count()).select_from(Payment).where(Payment.campaign_id == campaign_id))
    return result.scalar()


# ── Payments ────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_pay_confirmed_campaign(db):
    admin = await make_user(db, UserRole.ADMIN)
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(
        db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED, total="750.00",
    )

    payment = await PaymentService(db).pay(admin, campaign.id)

    assert payment.amount == Decimal("750.00")
    assert payment.status == "Success"
    assert campaign.status == CampaignStatus.PAID.value


@pytest.mark.anyio
async def test_second_payment_is_refused_without_new_rows(db):
    admin = await make_user(db, UserRole.ADMIN)
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(
        db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED, total="750.00",
    )
    service = PaymentService(db)
    await service.pay(admin, campaign.id)

    with pytest.raises(Conflict, match="already been paid"):
        await service.pay(admin, campaign.id)
    assert await _payment_count(db, campaign.id) == 1


@pytest.mark.anyio
async def test_pending_or_empty_campaigns_cannot_be_paid(db):
    admin = await make_user(db, UserRole.ADMIN)
    client = await make_user(db, UserRole.CLIENT)
    pending = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5), total="10.00")
    empty = await make_campaign(db, client, date(2026, 2, 1), date(2026, 2, 5), CampaignStatus.CONFIRMED)
    service = PaymentService(db)

    with pytest.raises(Conflict):
        await service.pay(admin, pending.id)
    with pytest.raises(Conflict, match="greater than zero"):
        await service.pay(admin, empty.id)
    assert await _payment_count(db, pending.id) == 0


@pytest.mark.anyio
async def test_only_admin_pays(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(
        db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED, total="10.00",
    )
    with pytest.raises(Forbidden):
        await PaymentService(db).pay(client, campaign.id)


@pytest.mark.anyio
async def test_payments_listing_is_role_scoped(client, db):
    admin = await make_user(db, UserRole.ADMIN)
    alice = await make_user(db, UserRole.CLIENT)
    bob = await make_user(db, UserRole.CLIENT)
    provider = await make_user(db, UserRole.PROVIDER)
    ka = await make_campaign(db, alice, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED, total="10.00")
    kb = await make_campaign(db, bob, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED, total="20.00")
    await db.commit()

    for campaign in (ka, kb):
        response = await client.post("/v1/payments", json={"campaign_id": campaign.id}, headers=auth_header(admin))
        assert response.status_code == 201

    async def amounts(user):
        response = await client.get("/v1/payments", headers=auth_header(user))
        return sorted(p["amount"] for p in response.json()["data"]["data"])

    assert await amounts(admin) == ["10.00", "20.00"]
    assert await amounts(alice) == ["10.00"]
    assert await amounts(provider) == []


# ── Payouts ─────────────────────────────────────────────────────────────

async def _paid_campaign_with_two_providers(db):
    client = await make_user(db, UserRole.CLIENT)
    p1 = await make_provider(db, commission_pct=30)
    p2 = await make_provider(db, commission_pct=50)
    m1 = await make_media(db, p1)
    m2 = await make_media(db, p1)
    m3 = await make_media(db, p2)
    campaign = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.PAID)
    await make_item(db, campaign, m1, "600.00", ACCEPTED)
    await make_item(db, campaign, m2, "200.00", ACCEPTED)
    await make_item(db, campaign, m3, "200.00", ACCEPTED)
    return campaign, p1, p2


@pytest.mark.anyio
async def test_payout_fanout_by_commission(db):
    admin = await make_user(db, UserRole.ADMIN)
    campaign, p1, p2 = await _paid_campaign_with_two_providers(db)
    assert campaign.total == Decimal("1000.00")

    run = await PayoutService(db).generate(admin, campaign.id)

    amounts = {p.user_id: p.amount for p in run.payouts}
    assert amounts == {p1.id: Decimal("240.00"), p2.id: Decimal("100.00")}
    assert all(p.status == PayoutStatus.PENDING.value for p in run.payouts)
    assert len(run.breakdown) == 3
    assert run.summary()["total_payout_amount"] == "340.00"


@pytest.mark.anyio
async def test_payouts_generated_once(db):
    admin = await make_user(db, UserRole.ADMIN)
    campaign, _, _ = await _paid_campaign_with_two_providers(db)
    service = PayoutService(db)
    await service.generate(admin, campaign.id)

    with pytest.raises(Conflict, match="already been generated"):
        await service.generate(admin, campaign.id)


@pytest.mark.anyio
async def test_only_accepted_items_on_provider_media_pay_out(db):
    admin = await make_user(db, UserRole.ADMIN)
    client = await make_user(db, UserRole.CLIENT)
    provider = await make_provider(db, commission_pct=10)
    media_a = await make_media(db, provider)
    media_b = await make_media(db, provider)
    admin_media = await make_media(db, admin)
    campaign = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.PAID)
    await make_item(db, campaign, media_a, "500.00", ACCEPTED)
    await make_item(db, campaign, media_b, "900.00", ProviderItemDecision.REJECTED)
    await make_item(db, campaign, admin_media, "300.00", ACCEPTED)

    run = await PayoutService(db).generate(admin, campaign.id)

    assert [(p.user_id, p.amount) for p in run.payouts] == [(provider.id, Decimal("50.00"))]


@pytest.mark.anyio
async def test_payout_requires_paid_campaign_and_accepted_media(db):
    admin = await make_user(db, UserRole.ADMIN)
    client = await make_user(db, UserRole.CLIENT)
    provider = await make_provider(db)
    media = await make_media(db, provider)
    confirmed = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED)
    paid = await make_campaign(db, client, date(2026, 2, 1), date(2026, 2, 5), CampaignStatus.PAID)
    await make_item(db, paid, media, "100.00")  # still Pending
    service = PayoutService(db)

    with pytest.raises(Conflict):
        await service.generate(admin, confirmed.id)
    with pytest.raises(Conflict, match="no accepted media"):
        await service.generate(admin, paid.id)


@pytest.mark.anyio
async def test_provider_without_profile_blocks_payout(db):
    admin = await make_user(db, UserRole.ADMIN)
    client = await make_user(db, UserRole.CLIENT)
    bare = await make_user(db, UserRole.PROVIDER)
    media = await make_media(db, bare)
    campaign = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.PAID)
    await make_item(db, campaign, media, "100.00", ACCEPTED)

    with pytest.raises(Conflict, match="no provider profile"):
        await PayoutService(db).generate(admin, campaign.id)


@pytest.mark.anyio
async def test_mark_payout_paid_once(db):
    admin = await make_user(db, UserRole.ADMIN)
    campaign, _, _ = await _paid_campaign_with_two_providers(db)
    service = PayoutService(db)
    run = await service.generate(admin, campaign.id)
    payout = run.payouts[0]

    await service.mark_paid(admin, payout.id)
    assert payout.status == PayoutStatus.PAID.value
    assert payout.paid_at is not None
    with pytest.raises(Conflict):
        await service.mark_paid(admin, payout.id)


@pytest.mark.anyio
async def test_pay_then_generate_over_http(client, db):
    admin = await make_user(db, UserRole.ADMIN)
    owner = await make_user(db, UserRole.CLIENT)
    provider = await make_provider(db, commission_pct=25)
    media = await make_media(db, provider)
    campaign = await make_campaign(db, owner, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED)
    await make_item(db, campaign, media, "400.00", ACCEPTED)
    await db.commit()

    paid = await client.post("/v1/payments", json={"campaign_id": campaign.id}, headers=auth_header(admin))
    assert paid.status_code == 201
    again = await client.post("/v1/payments", json={"campaign_id": campaign.id}, headers=auth_header(admin))
    assert again.status_code == 409

    generated = await client.post("/v1/payouts", json={"campaign_id": campaign.id}, headers=auth_header(admin))
    assert generated.status_code == 201
    data = generated.json()["data"]
    assert [p["amount"] for p in data["payouts"]] == ["100.00"]
    assert data["summary"]["payouts_created"] == 1

    mine = await client.get("/v1/payouts", headers=auth_header(provider))
    assert mine.json()["data"]["total"] == 1
    theirs = await client.get("/v1/payouts", headers=auth_header(owner))
    assert theirs.json()["data"]["total"] == 0

    forbidden = await client.post("/v1/payouts", json={"campaign_id": campaign.id}, headers=auth_header(provider))
    assert forbidden.status_code == 403
