"""
Tests for the public media catalog.
"""

from datetime import date
from decimal import Decimal

import pytest

from adspace.errors import ValidationFailed
from adspace.models import CampaignStatus, UserRole
from adspace.services.catalog_service import CatalogFilters, search_catalog

from conftest import make_campaign, make_item, make_media, make_user


async def _names(db, **filters) -> list[str]:
    page = await search_catalog(db, CatalogFilters(**filters))
    return [m.name for m in page.items]


@pytest.fixture
async def catalog(db):
    provider = await make_user(db, UserRole.PROVIDER)
    await make_media(db, provider, "50.00", name="Metro Screen", type="Digital", location="Centro")
    await make_media(db, provider, "150.00", name="Highway Board", type="Billboard", location="Norte")
    await make_media(db, provider, "300.00", name="Plaza Tower", type="Billboard", location="Centro")
    await make_media(db, provider, "10.00", name="Retired Panel", active=False)
    return provider


@pytest.mark.anyio
async def test_inactive_media_is_hidden(db, catalog):
    names = await _names(db, sort_by="price_per_day", sort_order="asc")
    assert names == ["Metro Screen", "Highway Board", "Plaza Tower"]


@pytest.mark.anyio
async def test_text_filters_are_case_insensitive(db, catalog):
    assert await _names(db, type="billboard", sort_by="name", sort_order="asc") == ["Highway Board", "Plaza Tower"]
    assert await _names(db, location="CENTRO", sort_by="name", sort_order="asc") == ["Metro Screen", "Plaza Tower"]
    assert await _names(db, name="tower") == ["Plaza Tower"]


@pytest.mark.anyio
async def test_price_bounds(db, catalog):
    between = await _names(db, min_price=Decimal("100"), max_price=Decimal("300"), sort_by="price_per_day")
    assert between == ["Plaza Tower", "Highway Board"]
    assert await _names(db, price_per_day=Decimal("60")) == ["Metro Screen"]


@pytest.mark.anyio
async def test_booked_media_is_excluded_for_overlapping_dates(db):
    provider = await make_user(db, UserRole.PROVIDER)
    client = await make_user(db, UserRole.CLIENT)
    booked = await make_media(db, provider, name="Booked")
    await make_media(db, provider, name="Free")
    released = await make_media(db, provider, name="Released")
    live = await make_campaign(db, client, date(2026, 1, 10), date(2026, 1, 20))
    dead = await make_campaign(db, client, date(2026, 1, 10), date(2026, 1, 20), CampaignStatus.CANCELLED)
    await make_item(db, live, booked, "100.00")
    await make_item(db, dead, released, "100.00")

    overlapping = await _names(
        db, start_date=date(2026, 1, 20), end_date=date(2026, 1, 25), sort_by="name", sort_order="asc",
    )
    assert overlapping == ["Free", "Released"]

    later = await _names(
        db, start_date=date(2026, 1, 21), end_date=date(2026, 1, 25), sort_by="name", sort_order="asc",
    )
    assert later == ["Booked", "Free", "Released"]


@pytest.mark.parametrize("filters, field", [
    ({"sort_by": "owner_user_id"}, "sort_by"),
    ({"sort_order": "sideways"}, "sort_order"),
    ({"start_date": date(2026, 1, 1)}, "end_date"),
    ({"start_date": date(2026, 1, 5), "end_date": date(2026, 1, 1)}, "end_date"),
    ({"min_price": Decimal("10"), "max_price": Decimal("5")}, "max_price"),
])
def test_invalid_filters(filters, field):
    with pytest.raises(ValidationFailed) as exc:
        CatalogFilters(**filters).validate()
    assert field in exc.value.errors


@pytest.mark.anyio
async def test_catalog_is_public_and_paginated(client, db, catalog):
    await db.commit()

    response = await client.get(
        "/v1/catalog/media", params={"per_page": 2, "sort_by": "price_per_day", "sort_order": "ASC"},
    )
    assert response.status_code == 200
    body = response.json()["data"]
    assert [m["name"] for m in body["data"]] == ["Metro Screen", "Highway Board"]
    assert body["data"][0]["price_per_day"] == "50.00"
    assert body["total"] == 3
    assert body["last_page"] == 2


@pytest.mark.anyio
async def test_catalog_rejects_unpaired_dates_over_http(client, db):
    response = await client.get("/v1/catalog/media", params={"start_date": "2026-01-01"})
    assert response.status_code == 422
    assert "end_date" in response.json()["errors"]
