"""Test ad API routes."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

BASE = {
    "title": "Clean family sedan",
    "description": "One owner, full service history, no accidents.",
    "price": 12500,
}


def _payload(cars, **fields):
    return {
        **BASE,
        "category_id": cars.category.id,
        "fields": {"color": cars.options["Red"].id, "year": 2019, **fields},
    }


def _by_key(body: dict) -> dict:
    return {f["key"]: f for f in body["fields"]}


@pytest.mark.asyncio
async def test_create_ad(client: AsyncClient, cars):
    sunroof, nav = cars.options["Sunroof"].id, cars.options["Navigation"].id
    resp = await client.post("/api/v1/ads", json=_payload(cars, features=[sunroof, nav], warranty=True))

    assert resp.status_code == 201
    body = resp.json()
    assert resp.headers["location"] == f"/api/v1/ads/{body['id']}"
    assert body["status"] == "active"
    assert body["category"]["id"] == cars.category.id

    fields = _by_key(body)
    assert fields["color"]["value"] == {"id": cars.options["Red"].id, "value": "red", "label": "Red"}
    assert fields["color"]["display_value"] == "Red"
    assert fields["color"]["field_type"] == "select"
    assert fields["year"]["value"] == 2019
    assert fields["features"]["value"] == [sunroof, nav]
    assert fields["features"]["display_value"] == ["Sunroof", "Navigation"]
    assert fields["warranty"]["value"] is True


@pytest.mark.asyncio
async def test_create_ad_missing_required_field(client: AsyncClient, cars):
    payload = _payload(cars)
    del payload["fields"]["color"]

    resp = await client.post("/api/v1/ads", json=payload)

    assert resp.status_code == 422
    assert resp.json() == {
        "success": False,
        "message": "Validation failed",
        "errors": {"fields.color": ["The Color field is required."]},
    }


@pytest.mark.asyncio
async def test_create_ad_reports_base_and_field_errors_together(client: AsyncClient, cars):
    payload = _payload(cars, mileage=-1)
    payload["title"] = "Car"
    payload["price"] = -10

    resp = await client.post("/api/v1/ads", json=payload)

    assert resp.status_code == 422
    errors = resp.json()["errors"]
    assert set(errors) == {"title", "price", "fields.mileage"}
    assert errors["fields.mileage"] == ["The Kilometers must be at least 0."]


@pytest.mark.asyncio
async def test_create_ad_checkbox_element_errors(client: AsyncClient, cars):
    resp = await client.post(
        "/api/v1/ads", json=_payload(cars, features=[cars.options["ABS"].id, cars.options["Red"].id])
    )

    assert resp.status_code == 422
    assert resp.json()["errors"] == {"fields.features.1": ["The selected Extra Features is invalid."]}


@pytest.mark.asyncio
async def test_create_ad_rejects_non_object_body(client: AsyncClient):
    resp = await client.post("/api/v1/ads", json=["not", "an", "ad"])

    assert resp.status_code == 422
    assert "body" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_create_ad_unknown_category(client: AsyncClient, cars):
    resp = await client.post("/api/v1/ads", json={**BASE, "category_id": 98765})

    assert resp.status_code == 422
    assert resp.json()["errors"] == {"category_id": ["The selected category is invalid."]}


@pytest.mark.asyncio
async def test_get_ad_counts_views(client: AsyncClient, cars):
    created = (await client.post("/api/v1/ads", json=_payload(cars))).json()

    first = await client.get(f"/api/v1/ads/{created['id']}")
    second = await client.get(f"/api/v1/ads/{created['id']}")

    assert first.status_code == 200
    assert first.json()["views_count"] == 1
    assert second.json()["views_count"] == 2


@pytest.mark.asyncio
async def test_get_missing_ad(client: AsyncClient):
    resp = await client.get("/api/v1/ads/424242")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_ads(client: AsyncClient, cars):
    for price in (1000, 2000, 3000):
        await client.post("/api/v1/ads", json={**_payload(cars), "price": price})

    resp = await client.get("/api/v1/ads", params={"sort_by": "price", "sort_order": "asc", "limit": 2})

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 3
    assert body["limit"] == 2
    assert [ad["price"] for ad in body["items"]] == [1000, 2000]


@pytest.mark.asyncio
async def test_list_ads_clamps_limit(client: AsyncClient):
    resp = await client.get("/api/v1/ads", params={"limit": 5000})

    assert resp.status_code == 200
    assert resp.json()["limit"] == 100


@pytest.mark.asyncio
async def test_update_ad(client: AsyncClient, cars):
    created = (await client.post("/api/v1/ads", json=_payload(cars, notes="Garage kept"))).json()

    resp = await client.patch(f"/api/v1/ads/{created['id']}", json={
        "status": "sold",
        "fields": {"color": cars.options["Blue"].id, "notes": ""},
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "sold"
    fields = _by_key(body)
    assert fields["color"]["display_value"] == "Blue"
    assert fields["year"]["value"] == 2019
    assert "notes" not in fields


@pytest.mark.asyncio
async def test_update_ad_does_not_require_stored_fields(client: AsyncClient, cars):
    created = (await client.post("/api/v1/ads", json=_payload(cars))).json()

    resp = await client.patch(f"/api/v1/ads/{created['id']}", json={"fields": {"mileage": 12000}})

    assert resp.status_code == 200
    assert _by_key(resp.json())["mileage"]["value"] == 12000


@pytest.mark.asyncio
async def test_update_ad_rejects_unknown_status(client: AsyncClient, cars):
    created = (await client.post("/api/v1/ads", json=_payload(cars))).json()

    resp = await client.patch(f"/api/v1/ads/{created['id']}", json={"status": "archived"})

    assert resp.status_code == 422
    assert "status" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_update_missing_ad(client: AsyncClient):
    resp = await client.patch("/api/v1/ads/424242", json={"status": "sold"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_ad(client: AsyncClient, cars):
    created = (await client.post("/api/v1/ads", json=_payload(cars))).json()

    resp = await client.delete(f"/api/v1/ads/{created['id']}")

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Ad deleted successfully"}
    assert (await client.get(f"/api/v1/ads/{created['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_create_ad_number_too_large_for_storage(client: AsyncClient, cars):
    payload = _payload(cars)
    payload["fields"]["year"] = "1e20"

    resp = await client.post("/api/v1/ads", json=payload)

    assert resp.status_code == 422
    assert resp.json()["errors"] == {
        "fields.year": ["The Year must be between -2147483648 and 2147483647."],
    }


@pytest.mark.asyncio
async def test_update_ad_cannot_clear_mandatory_field(client: AsyncClient, cars):
    created = (await client.post("/api/v1/ads", json=_payload(cars))).json()

    resp = await client.patch(f"/api/v1/ads/{created['id']}", json={"fields": {"year": None}})

    assert resp.status_code == 422
    assert resp.json()["errors"] == {"fields.year": ["The Year field must have a value."]}
    stored = _by_key((await client.get(f"/api/v1/ads/{created['id']}")).json())
    assert stored["year"]["value"] == 2019
