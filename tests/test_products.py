import pytest

from conftest import ADMIN, auth, order_payload


@pytest.fixture
async def catalog(seed):
    phones = await seed.category("Phones")
    audio = await seed.category("Audio")
    products = {
        "budget": await seed.product(phones, name="Budget Phone", price="5.00", stock=3),
        "basic": await seed.product(phones, name="Basic Phone", price="10.00", stock=7),
        "mid": await seed.product(phones, name="Midrange Phone", price="50.00", stock=2),
        "flagship": await seed.product(phones, name="Flagship Phone", price="100.00", stock=9),
        "headset": await seed.product(audio, name="Headset", description="Pairs with any phone", price="60.00", stock=4),
        "speaker": await seed.product(audio, name="Speaker", price="80.00", stock=1),
    }
    return {"phones": phones, "audio": audio, "products": products}


async def test_filter_by_price_range_and_term(client, catalog):
    resp = await client.get("/products/filter", params={
        "search_term": "phone",
        "min_price": "10",
        "max_price": "100",
        "sort_by": "price",
        "sort_direction": "desc",
        "page_size": 2,
    })

    assert resp.status_code == 200
    body = resp.json()
    assert [p["name"] for p in body["data"]] == ["Flagship Phone", "Headset"]
    assert body["meta"] == {"total_items": 4, "total_pages": 2, "current_page": 1, "page_size": 2}

    second_page = await client.get("/products/filter", params={
        "search_term": "phone",
        "min_price": "10",
        "max_price": "100",
        "sort_by": "price",
        "sort_direction": "desc",
        "page_size": 2,
        "page_number": 2,
    })
    assert [p["name"] for p in second_page.json()["data"]] == ["Midrange Phone", "Basic Phone"]


async def test_filter_by_category_sorted_by_stock(client, catalog):
    resp = await client.get("/products/filter", params={
        "category_id": catalog["phones"].id,
        "sort_by": "stock",
    })

    assert [p["stock"] for p in resp.json()["data"]] == [2, 3, 7, 9]


async def test_filter_sort_by_name(client, catalog):
    resp = await client.get("/products/filter", params={"category_id": catalog["audio"].id, "sort_by": "name", "sort_direction": "desc"})
    assert [p["name"] for p in resp.json()["data"]] == ["Speaker", "Headset"]


async def test_inverted_price_range_is_rejected(client, catalog):
    resp = await client.get("/products/filter", params={"min_price": "50", "max_price": "10"})

    assert resp.status_code == 400
    assert resp.json()["validationErrors"] == ["min_price must not be greater than max_price"]


async def test_unknown_sort_field_is_rejected(client, catalog):
    resp = await client.get("/products/filter", params={"sort_by": "popularity"})
    assert resp.status_code == 400


async def test_empty_result_has_zero_pages(client, catalog):
    resp = await client.get("/products/filter", params={"search_term": "toaster"})

    assert resp.json()["data"] == []
    assert resp.json()["meta"]["total_pages"] == 0


async def test_list_products_and_categories(client, catalog):
    products = await client.get("/products", params={"limit": 4})
    assert products.json()["data"]["total"] == 6
    assert len(products.json()["data"]["products"]) == 4

    categories = await client.get("/products/categories")
    assert [c["name"] for c in categories.json()["data"]] == ["Audio", "Phones"]


async def test_unknown_product_is_not_found(client):
    resp = await client.get("/products/31337")

    assert resp.status_code == 404
    assert resp.json() == {"data": None, "error": "Product 31337 not found", "validationErrors": None, "meta": None}


async def test_admin_manages_products(client, catalog):
    created = await client.post("/products", json={
        "name": "Earbuds",
        "price": "25.00",
        "stock": 12,
        "category_id": catalog["audio"].id,
    }, headers=ADMIN)
    assert created.status_code == 201
    product_id = created.json()["data"]["id"]

    updated = await client.put(f"/products/{product_id}", json={"stock": 0}, headers=ADMIN)
    assert updated.json()["data"]["stock"] == 0

    deleted = await client.delete(f"/products/{product_id}", headers=ADMIN)
    assert deleted.status_code == 200
    assert (await client.get(f"/products/{product_id}")).status_code == 404


async def test_product_in_unknown_category_is_rejected(client):
    resp = await client.post("/products", json={
        "name": "Orphan", "price": "1.00", "stock": 1, "category_id": 999
    }, headers=ADMIN)
    assert resp.status_code == 404


async def test_ordered_product_cannot_be_deleted(client, catalog):
    product = catalog["products"]["speaker"]
    await client.post("/orders", json=order_payload((product.id, 1)), headers=auth("buyer-1"))

    resp = await client.delete(f"/products/{product.id}", headers=ADMIN)
    assert resp.status_code == 400


async def test_catalog_writes_need_admin(client, catalog):
    resp = await client.post("/products", json={
        "name": "Bootleg", "price": "1.00", "stock": 1, "category_id": catalog["audio"].id
    }, headers=auth("seller-1", "seller"))
    assert resp.status_code == 403


async def test_admin_creates_categories(client):
    created = await client.post("/admin/categories", json={"name": "  Garden  "}, headers=ADMIN)
    assert created.status_code == 201
    assert created.json()["data"]["name"] == "Garden"

    duplicate = await client.post("/admin/categories", json={"name": "Garden"}, headers=ADMIN)
    assert duplicate.status_code == 409

    forbidden = await client.post("/admin/categories", json={"name": "Tools"}, headers=auth("user-1"))
    assert forbidden.status_code == 403
