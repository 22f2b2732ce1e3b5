from decimal import Decimal

import pytest

from conftest import auth, capture_sql, order_payload

BUYER = auth("buyer-1")
SELLER_A = auth("seller-a", "seller")
SELLER_B = auth("seller-b", "seller")


@pytest.fixture
async def split_order(client, seed):
    """One order holding one item from each of two sellers"""
    category = await seed.category()
    store_a = await seed.seller("seller-a", store_name="Alpha Goods")
    store_b = await seed.seller("seller-b", store_name="Beta Supplies")
    kettle = await seed.product(category, name="Kettle", price="20.00", stock=5, seller=store_a)
    mugs = await seed.product(category, name="Mug Set", price="7.50", stock=8, seller=store_b)

    resp = await client.post("/orders", json=order_payload((kettle.id, 2), (mugs.id, 3)), headers=BUYER)
    assert resp.status_code == 201
    order = resp.json()["data"]
    items = {item["seller_id"]: item for item in order["items"]}
    return {
        "order_id": order["id"],
        "store_a": store_a,
        "store_b": store_b,
        "item_a": items[store_a.id]["id"],
        "item_b": items[store_b.id]["id"],
    }


async def move(client, headers, item_id, new_status):
    return await client.put(
        f"/orders/seller/items/{item_id}/status",
        json={"status": new_status},
        headers=headers
    )


async def order_status(client, order_id):
    resp = await client.get(f"/orders/{order_id}", headers=BUYER)
    return resp.json()["data"]["status"]


async def test_seller_sees_only_own_items(client, split_order):
    resp = await client.get("/orders/seller", headers=SELLER_A)

    assert resp.status_code == 200
    orders = resp.json()["data"]
    assert len(orders) == 1
    assert [item["id"] for item in orders[0]["items"]] == [split_order["item_a"]]
    assert Decimal(orders[0]["total_amount"]) == Decimal("40.00")


async def test_seller_orders_filter_by_item_status(client, split_order):
    await move(client, SELLER_A, split_order["item_a"], "Accepted")

    pending = await client.get("/orders/seller", params={"status": "Pending"}, headers=SELLER_A)
    accepted = await client.get("/orders/seller", params={"status": "Accepted"}, headers=SELLER_A)

    assert pending.json()["data"] == []
    assert len(accepted.json()["data"]) == 1


async def test_full_fulfillment_flow_rolls_order_up_to_delivered(client, split_order):
    for new_status in ("Accepted", "Shipped", "Delivered"):
        resp = await move(client, SELLER_A, split_order["item_a"], new_status)
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == new_status

    # Seller B has not delivered yet
    assert await order_status(client, split_order["order_id"]) == "Pending"

    for new_status in ("Accepted", "Shipped", "Delivered"):
        resp = await move(client, SELLER_B, split_order["item_b"], new_status)
        assert resp.status_code == 200

    assert await order_status(client, split_order["order_id"]) == "Delivered"


async def test_delivery_counts_towards_seller_total_sales(client, split_order):
    for new_status in ("Accepted", "Shipped", "Delivered"):
        await move(client, SELLER_A, split_order["item_a"], new_status)

    store_a = await client.get(f"/sellers/{split_order['store_a'].id}")
    store_b = await client.get(f"/sellers/{split_order['store_b'].id}")

    assert store_a.json()["data"]["total_sales"] == 2
    assert store_b.json()["data"]["total_sales"] == 0


async def test_last_delivery_locks_the_order_and_increments_sales_in_place(client, split_order, engine):
    for new_status in ("Accepted", "Shipped", "Delivered"):
        await move(client, SELLER_A, split_order["item_a"], new_status)
    for new_status in ("Accepted", "Shipped"):
        await move(client, SELLER_B, split_order["item_b"], new_status)

    with capture_sql(engine) as statements:
        resp = await move(client, SELLER_B, split_order["item_b"], "Delivered")
    assert resp.status_code == 200

    order_read = next(i for i, s in enumerate(statements) if s.startswith("SELECT orders."))
    sibling_read = next(i for i, s in enumerate(statements) if s.startswith("SELECT order_items.status"))
    assert order_read < sibling_read

    # total_sales is bumped by the database, never written back from a stale read
    sales_updates = [s for s in statements if s.startswith("UPDATE sellers")]
    assert len(sales_updates) == 1
    assert "sellers.total_sales" in sales_updates[0]

    assert await order_status(client, split_order["order_id"]) == "Delivered"
    store_b = await client.get(f"/sellers/{split_order['store_b'].id}")
    assert store_b.json()["data"]["total_sales"] == 3


async def test_skipping_a_step_is_rejected(client, split_order):
    resp = await move(client, SELLER_A, split_order["item_a"], "Delivered")

    assert resp.status_code == 400
    assert resp.json()["error"] == "Cannot change item status from Pending to Delivered"


async def test_rejected_is_terminal(client, split_order):
    assert (await move(client, SELLER_A, split_order["item_a"], "Rejected")).status_code == 200

    resp = await move(client, SELLER_A, split_order["item_a"], "Accepted")
    assert resp.status_code == 400

    assert await order_status(client, split_order["order_id"]) == "Pending"


async def test_seller_cannot_touch_another_sellers_item(client, split_order):
    resp = await move(client, SELLER_B, split_order["item_a"], "Accepted")
    assert resp.status_code == 404

    seller_a_view = await client.get("/orders/seller", headers=SELLER_A)
    assert seller_a_view.json()["data"][0]["items"][0]["status"] == "Pending"


async def test_user_without_store_gets_not_found(client, split_order):
    resp = await move(client, auth("buyer-1", "seller"), split_order["item_a"], "Accepted")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Seller profile not found"


async def test_unknown_status_value_is_a_validation_error(client, split_order):
    resp = await move(client, SELLER_A, split_order["item_a"], "Teleported")
    assert resp.status_code == 400
    assert resp.json()["validationErrors"]
