"""
Tests for the campaign lifecycle: creation rules, role-scoped listing,
status transitions and cancellation penalties.
"""

from datetime import date
from decimal import Decimal

import pytest

from adspace.clock import FixedClock
from adspace.errors import Conflict, Forbidden, ValidationFailed
from adspace.models import CampaignStatus, CancellationPolicy, UserRole
from adspace.services.campaign_service import CampaignService, resolve_penalty

from conftest import TODAY, auth_header, make_campaign, make_item, make_media, make_user

MARCH_1 = date(2026, 3, 1)


# ── Cancellation ────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_late_cancellation_charges_half(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, date(2026, 3, 5), date(2026, 3, 10), total="1000.00")

    result = await CampaignService(db, FixedClock(MARCH_1)).cancel(client, campaign.id)

    assert result.days_until_start == 4
    assert result.penalty_pct == 50
    assert result.penalty_amount == Decimal("500.00")
    assert campaign.status == CampaignStatus.CANCELLED.value
    assert campaign.penalty_amount == Decimal("500.00")
    assert campaign.cancelled_at is not None


@pytest.mark.anyio
async def test_early_cancellation_is_free(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, date(2026, 3, 20), date(2026, 3, 25), total="1000.00")

    result = await CampaignService(db, FixedClock(MARCH_1)).cancel(client, campaign.id)

    assert result.days_until_start == 19
    assert result.penalty_pct == 0
    assert result.penalty_amount == Decimal("0.00")


@pytest.mark.anyio
async def test_penalty_threshold_is_inclusive(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, date(2026, 3, 8), date(2026, 3, 10), total="80.00")

    result = await CampaignService(db, FixedClock(MARCH_1)).cancel(client, campaign.id)

    assert result.days_until_start == 7
    assert result.penalty_pct == 50
    assert result.penalty_amount == Decimal("40.00")


@pytest.mark.anyio
async def test_campaign_starting_today_cannot_be_cancelled(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, MARCH_1, date(2026, 3, 10), total="1000.00")

    with pytest.raises(Conflict):
        await CampaignService(db, FixedClock(MARCH_1)).cancel(client, campaign.id)
    assert campaign.status == CampaignStatus.PENDING.value


@pytest.mark.anyio
@pytest.mark.parametrize("status", [CampaignStatus.ACTIVE, CampaignStatus.FINISHED, CampaignStatus.CANCELLED])
async def test_cancel_refused_outside_cancellable_states(db, status):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, date(2026, 4, 1), date(2026, 4, 10), status)

    with pytest.raises(Conflict):
        await CampaignService(db, FixedClock(MARCH_1)).cancel(client, campaign.id)


@pytest.mark.anyio
async def test_paid_campaign_can_still_be_cancelled(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(
        db, client, date(2026, 3, 3), date(2026, 3, 10), CampaignStatus.PAID, total="200.00",
    )

    result = await CampaignService(db, FixedClock(MARCH_1)).cancel(client, campaign.id)
    assert result.penalty_amount == Decimal("100.00")


@pytest.mark.anyio
async def test_configured_policy_bands_replace_default(db):
    db.add_all([
        CancellationPolicy(start_days=0, end_days=3, commission_pct=80),
        CancellationPolicy(start_days=4, end_days=14, commission_pct=20),
    ])
    await db.flush()

    assert (await resolve_penalty(db, 2))[0] == 80
    assert (await resolve_penalty(db, 4))[0] == 20
    assert (await resolve_penalty(db, 30)) == (0, None)


@pytest.mark.anyio
async def test_other_client_cannot_cancel(db):
    owner = await make_user(db, UserRole.CLIENT)
    other = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, owner, date(2026, 4, 1), date(2026, 4, 10))

    with pytest.raises(Forbidden):
        await CampaignService(db, FixedClock(MARCH_1)).cancel(other, campaign.id)


# ── Create / update ─────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_client_creates_pending_campaign_for_self(db):
    client = await make_user(db, UserRole.CLIENT)

    campaign = await CampaignService(db, FixedClock(TODAY)).create(
        client, "Launch", TODAY, date(2025, 12, 20), "MXN",
    )

    assert campaign.user_id == client.id
    assert campaign.status == CampaignStatus.PENDING.value
    assert campaign.total == Decimal("0.00")
    assert campaign.currency == "MXN"


@pytest.mark.anyio
async def test_create_validates_dates_and_name(db):
    client = await make_user(db, UserRole.CLIENT)
    service = CampaignService(db, FixedClock(TODAY))

    with pytest.raises(ValidationFailed) as exc:
        await service.create(client, "Past", date(2025, 11, 1), date(2025, 11, 1))
    assert set(exc.value.errors) == {"start_date", "end_date"}

    await service.create(client, "Taken", TODAY, date(2025, 12, 5))
    with pytest.raises(ValidationFailed) as exc:
        await service.create(client, "Taken", TODAY, date(2025, 12, 5))
    assert "name" in exc.value.errors


@pytest.mark.anyio
async def test_admin_must_assign_client_owner(db):
    admin = await make_user(db, UserRole.ADMIN)
    provider = await make_user(db, UserRole.PROVIDER)
    service = CampaignService(db, FixedClock(TODAY))

    with pytest.raises(ValidationFailed):
        await service.create(admin, "No owner", TODAY, date(2025, 12, 5))
    with pytest.raises(ValidationFailed):
        await service.create(admin, "Wrong owner", TODAY, date(2025, 12, 5), user_id=provider.id)


@pytest.mark.anyio
async def test_provider_cannot_create_campaigns(db):
    provider = await make_user(db, UserRole.PROVIDER)
    with pytest.raises(Forbidden):
        await CampaignService(db, FixedClock(TODAY)).create(provider, "Nope", TODAY, date(2025, 12, 5))


@pytest.mark.anyio
async def test_status_follows_state_machine(db):
    admin = await make_user(db, UserRole.ADMIN)
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5))
    service = CampaignService(db, FixedClock(TODAY))

    await service.update(admin, campaign.id, status=CampaignStatus.CONFIRMED.value)
    assert campaign.status == CampaignStatus.CONFIRMED.value

    with pytest.raises(Conflict):
        await service.update(admin, campaign.id, status=CampaignStatus.PAID.value)
    with pytest.raises(Conflict):
        await service.update(admin, campaign.id, status=CampaignStatus.CANCELLED.value)
    with pytest.raises(Conflict):
        await service.update(admin, campaign.id, status=CampaignStatus.FINISHED.value)


@pytest.mark.anyio
async def test_client_cannot_change_status(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5))
    service = CampaignService(db, FixedClock(TODAY))

    with pytest.raises(Forbidden):
        await service.update(client, campaign.id, status=CampaignStatus.CONFIRMED.value)
    updated = await service.update(client, campaign.id, name="Renamed", currency="EUR")
    assert (updated.name, updated.currency) == ("Renamed", "EUR")


@pytest.mark.anyio
async def test_delete_soft_deletes_items(db):
    client = await make_user(db, UserRole.CLIENT)
    provider = await make_user(db, UserRole.PROVIDER)
    media = await make_media(db, provider)
    campaign = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5))
    item = await make_item(db, campaign, media, "500.00")

    await CampaignService(db, FixedClock(TODAY)).delete(client, campaign.id)

    await db.refresh(item)
    assert campaign.deleted_at is not None
    assert item.deleted_at is not None
    assert campaign.total == Decimal("0.00")


@pytest.mark.anyio
async def test_confirmed_campaign_cannot_be_deleted(db):
    client = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, client, date(2026, 1, 1), date(2026, 1, 5), CampaignStatus.CONFIRMED)

    with pytest.raises(Conflict):
        await CampaignService(db, FixedClock(TODAY)).delete(client, campaign.id)


# ── HTTP ────────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_listing_is_role_scoped(client, db):
    admin = await make_user(db, UserRole.ADMIN)
    alice = await make_user(db, UserRole.CLIENT)
    bob = await make_user(db, UserRole.CLIENT)
    provider = await make_user(db, UserRole.PROVIDER)
    stranger = await make_user(db, UserRole.PROVIDER)
    media = await make_media(db, provider)
    a1 = await make_campaign(db, alice, date(2026, 1, 1), date(2026, 1, 5))
    a2 = await make_campaign(db, alice, date(2026, 2, 1), date(2026, 2, 5))
    b1 = await make_campaign(db, bob, date(2026, 3, 1), date(2026, 3, 5))
    await make_item(db, b1, media, "100.00")
    await db.commit()

    async def ids(user):
        response = await client.get("/v1/campaigns", headers=auth_header(user))
        assert response.status_code == 200
        return [c["id"] for c in response.json()["data"]["data"]]

    assert await ids(admin) == [b1.id, a2.id, a1.id]
    assert await ids(alice) == [a2.id, a1.id]
    assert await ids(provider) == [b1.id]
    assert await ids(stranger) == []


@pytest.mark.anyio
async def test_client_cannot_read_other_clients_campaign(client, db):
    alice = await make_user(db, UserRole.CLIENT)
    bob = await make_user(db, UserRole.CLIENT)
    campaign = await make_campaign(db, alice, date(2026, 1, 1), date(2026, 1, 5))
    await db.commit()

    response = await client.get(f"/v1/campaigns/{campaign.id}", headers=auth_header(bob))
    assert response.status_code == 403
    missing = await client.get("/v1/campaigns/9999", headers=auth_header(bob))
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_create_and_cancel_over_http(client, db, clock):
    owner = await make_user(db, UserRole.CLIENT)
    await db.commit()

    created = await client.post(
        "/v1/campaigns",
        json={"name": "Spring", "start_date": "2025-12-05", "end_date": "2025-12-15", "currency": "USD"},
        headers=auth_header(owner),
    )
    assert created.status_code == 201
    campaign_id = created.json()["data"]["id"]
    assert created.json()["data"]["status"] == "Pending"

    cancelled = await client.patch(f"/v1/campaigns/{campaign_id}/cancel", headers=auth_header(owner))
    assert cancelled.status_code == 200
    data = cancelled.json()["data"]
    assert data["campaign"]["status"] == "Cancelled"
    assert data["penalty"]["days_until_start"] == 4
    assert data["penalty"]["penalty_pct"] == 50
    assert data["penalty"]["penalty_amount"] == "0.00"


@pytest.mark.anyio
async def test_unknown_currency_is_a_validation_error(client, db):
    owner = await make_user(db, UserRole.CLIENT)
    await db.commit()

    response = await client.post(
        "/v1/campaigns",
        json={"name": "Yen", "start_date": "2025-12-05", "end_date": "2025-12-15", "currency": "JPY"},
        headers=auth_header(owner),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert "currency" in body["errors"]



@pytest.mark.anyio
async def test_page_size_is_capped(client, db):
    owner = await make_user(db, UserRole.CLIENT)
    await db.commit()
    headers = auth_header(owner)

    largest = await client.get("/v1/campaigns", params={"per_page": 100}, headers=headers)
    assert largest.status_code == 200

    too_large = await client.get("/v1/campaigns", params={"per_page": 101}, headers=headers)
    assert too_large.status_code == 422
    assert "per_page" in too_large.json()["errors"]
