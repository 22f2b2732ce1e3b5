from decimal import Decimal

import pytest

from conftest import ADMIN, auth
from routers.auth.helpers import auth_helpers

OWNER = auth("owner-1")

STORE = {
    "store_name": "  Tin Roof Records  ",
    "description": "Vinyl and cassettes",
    "contact_email": "hello@tinroof.example.com",
}


@pytest.fixture(autouse=True)
def no_supabase_metadata(monkeypatch):
    synced = []

    def fake_sync(user_id, role):
        synced.append((user_id, role))
        return True

    monkeypatch.setattr(auth_helpers, "sync_role_metadata", fake_sync)
    return synced


async def test_open_store_and_get_approved(client, seed, no_supabase_metadata):
    await seed.profile("owner-1")

    created = await client.post("/sellers", json=STORE, headers=OWNER)
    assert created.status_code == 201
    store = created.json()["data"]
    assert store["store_name"] == "Tin Roof Records"
    assert store["is_approved"] is False
    assert Decimal(store["rating"]) == Decimal("0")

    pending = await client.get("/admin/pending-sellers", headers=ADMIN)
    assert [s["id"] for s in pending.json()["data"]] == [store["id"]]

    approved = await client.put(f"/admin/sellers/{store['id']}/approve", json={"is_approved": True}, headers=ADMIN)
    assert approved.status_code == 200
    assert approved.json()["data"] == {"seller_id": store["id"], "is_approved": True, "metadata_updated": True}
    assert no_supabase_metadata == [("owner-1", "seller")]

    # A token without a role claim falls back to the stored profile role
    me = await client.get("/auth/me", headers=auth("owner-1", None))
    assert me.json()["data"]["role"] == "seller"

    assert (await client.get("/admin/pending-sellers", headers=ADMIN)).json()["data"] == []


async def test_one_store_per_user(client):
    assert (await client.post("/sellers", json=STORE, headers=OWNER)).status_code == 201

    again = await client.post("/sellers", json=STORE, headers=OWNER)
    assert again.status_code == 409


async def test_invalid_contact_email_is_rejected(client):
    resp = await client.post("/sellers", json={**STORE, "contact_email": "not-an-email"}, headers=OWNER)

    assert resp.status_code == 400
    assert any(message.startswith("contact_email") for message in resp.json()["validationErrors"])


async def test_only_owner_or_admin_updates_store(client, seed):
    store = await seed.seller("owner-1", store_name="Old Name")

    stranger = await client.put(f"/sellers/{store.id}", json={"store_name": "Hijacked"}, headers=auth("stranger"))
    assert stranger.status_code == 403

    owner = await client.put(f"/sellers/{store.id}", json={"store_name": "New Name"}, headers=OWNER)
    assert owner.json()["data"]["store_name"] == "New Name"

    admin = await client.put(f"/sellers/{store.id}", json={"address": "1 Admin Way"}, headers=ADMIN)
    assert admin.json()["data"]["address"] == "1 Admin Way"
    assert admin.json()["data"]["store_name"] == "New Name"


async def test_unapproved_seller_cannot_bulk_create(client, seed):
    category = await seed.category()
    await seed.seller("owner-1", is_approved=False)

    resp = await client.post("/sellers/bulk-create-products", json={"products": [
        {"name": "Mixtape", "price": "9.99", "stock": 3, "category_id": category.id},
    ]}, headers=auth("owner-1", "seller"))

    assert resp.status_code == 400
    assert resp.json()["error"] == "An approved seller account is required to list products"


async def test_bulk_create_products(client, seed):
    category = await seed.category()
    store = await seed.seller("owner-1")
    headers = auth("owner-1", "seller")

    resp = await client.post("/sellers/bulk-create-products", json={"products": [
        {"name": "Mixtape", "price": "9.99", "stock": 3, "category_id": category.id},
        {"name": "Turntable", "price": "199.00", "stock": 1, "category_id": category.id, "seller_id": 999},
    ]}, headers=headers)

    assert resp.status_code == 201
    assert {p["seller_id"] for p in resp.json()["data"]} == {store.id}

    mine = await client.get("/sellers/my-products", headers=headers)
    assert [p["name"] for p in mine.json()["data"]] == ["Mixtape", "Turntable"]


async def test_bulk_create_with_unknown_category_creates_nothing(client, seed):
    category = await seed.category()
    await seed.seller("owner-1")
    headers = auth("owner-1", "seller")

    resp = await client.post("/sellers/bulk-create-products", json={"products": [
        {"name": "Mixtape", "price": "9.99", "stock": 3, "category_id": category.id},
        {"name": "Ghost", "price": "1.00", "stock": 1, "category_id": 404},
    ]}, headers=headers)

    assert resp.status_code == 404
    assert (await client.get("/sellers/my-products", headers=headers)).json()["data"] == []


async def test_bulk_update_stock_is_all_or_nothing(client, seed):
    category = await seed.category()
    store = await seed.seller("owner-1")
    rival = await seed.seller("rival-1")
    mine = await seed.product(category, name="Mixtape", stock=3, seller=store)
    theirs = await seed.product(category, name="Poster", stock=8, seller=rival)
    headers = auth("owner-1", "seller")

    rejected = await client.put("/sellers/bulk-update-stock", json={"products": [
        {"product_id": mine.id, "new_stock": 30},
        {"product_id": theirs.id, "new_stock": 0},
    ]}, headers=headers)
    assert rejected.status_code == 404
    assert (await client.get(f"/products/{mine.id}")).json()["data"]["stock"] == 3
    assert (await client.get(f"/products/{theirs.id}")).json()["data"]["stock"] == 8

    accepted = await client.put("/sellers/bulk-update-stock", json={"products": [
        {"product_id": mine.id, "new_stock": 30},
    ]}, headers=headers)
    assert accepted.status_code == 200
    assert (await client.get(f"/products/{mine.id}")).json()["data"]["stock"] == 30


async def test_bulk_update_rejects_negative_and_repeated_products(client, seed):
    category = await seed.category()
    store = await seed.seller("owner-1")
    product = await seed.product(category, seller=store)
    headers = auth("owner-1", "seller")

    negative = await client.put("/sellers/bulk-update-stock", json={"products": [
        {"product_id": product.id, "new_stock": -1},
    ]}, headers=headers)
    assert negative.status_code == 400

    repeated = await client.put("/sellers/bulk-update-stock", json={"products": [
        {"product_id": product.id, "new_stock": 1},
        {"product_id": product.id, "new_stock": 2},
    ]}, headers=headers)
    assert repeated.status_code == 400


async def test_seller_views_need_a_store(client):
    resp = await client.get("/sellers/my-products", headers=auth("nobody", "seller"))
    assert resp.status_code == 404


async def test_public_seller_listing(client, seed):
    await seed.seller("owner-1", store_name="First")
    await seed.seller("owner-2", store_name="Second")

    resp = await client.get("/sellers")
    assert [s["store_name"] for s in resp.json()["data"]] == ["First", "Second"]

    assert (await client.get("/sellers/999")).status_code == 404
