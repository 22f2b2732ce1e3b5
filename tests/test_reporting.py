from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import ADMIN, auth, order_payload

SELLER = auth("seller-1", "seller")


@pytest.fixture
async def sales(client, seed):
    category = await seed.category()
    store = await seed.seller("seller-1", store_name="Night Market")
    lantern = await seed.product(category, name="Lantern", price="15.00", stock=20, seller=store)
    candle = await seed.product(category, name="Candle", price="3.00", stock=50, seller=store)
    other = await seed.product(category, name="Rug", price="40.00", stock=5)

    first = await client.post(
        "/orders", json=order_payload((lantern.id, 2), (other.id, 1)), headers=auth("buyer-1")
    )
    second = await client.post(
        "/orders", json=order_payload((candle.id, 5), payment_method="cash"), headers=auth("buyer-2")
    )
    return {
        "store": store,
        "first": first.json()["data"],
        "second": second.json()["data"],
    }


async def test_order_stats_summarise_recent_orders(client, sales):
    resp = await client.get("/orders/stats", headers=ADMIN)

    assert resp.status_code == 200
    stats = resp.json()["data"]
    assert stats["total_orders"] == 2
    assert Decimal(stats["total_revenue"]) == Decimal("85.00")
    assert Decimal(stats["average_order_value"]) == Decimal("42.50")
    assert stats["orders_by_status"] == [{"status": "Pending", "count": 2}]

    methods = {m["method"]: m for m in stats["payment_method_stats"]}
    assert methods["card"]["count"] == 1
    assert Decimal(methods["card"]["total_amount"]) == Decimal("70.00")
    assert Decimal(methods["cash"]["total_amount"]) == Decimal("15.00")

    assert len(stats["daily_stats"]) == 1
    assert stats["daily_stats"][0]["order_count"] == 2


async def test_order_stats_outside_window_are_empty(client, sales):
    end = datetime.now(timezone.utc) - timedelta(days=60)
    resp = await client.get("/orders/stats", params={"end_date": end.isoformat()}, headers=ADMIN)

    stats = resp.json()["data"]
    assert stats["total_orders"] == 0
    assert Decimal(stats["total_revenue"]) == Decimal("0")
    assert Decimal(stats["average_order_value"]) == Decimal("0")


async def test_order_stats_reject_inverted_range(client, sales):
    now = datetime.now(timezone.utc)
    resp = await client.get("/orders/stats", params={
        "start_date": now.isoformat(),
        "end_date": (now - timedelta(days=1)).isoformat(),
    }, headers=ADMIN)
    assert resp.status_code == 400


async def test_search_orders_by_amount(client, sales):
    resp = await client.get("/orders/search", params={"min_amount": "20", "sort_by": "amount_desc"}, headers=ADMIN)

    data = resp.json()["data"]
    assert data["total_items"] == 1
    assert data["items"][0]["id"] == sales["first"]["id"]

    everything = await client.get("/orders/search", params={"sort_by": "amount_asc", "page_size": 1}, headers=ADMIN)
    page = everything.json()["data"]
    assert page["total_items"] == 2
    assert page["total_pages"] == 2
    assert page["items"][0]["id"] == sales["second"]["id"]


async def test_search_by_status(client, sales):
    delivered = await client.get("/orders/search", params={"status": "Delivered"}, headers=ADMIN)
    assert delivered.json()["data"]["total_items"] == 0


async def test_search_reads_naive_dates_as_utc(client, sales):
    now = datetime.now(timezone.utc)
    window = {
        "start_date": (now - timedelta(days=1)).replace(tzinfo=None).isoformat(),
        "end_date": (now + timedelta(days=1)).replace(tzinfo=None).isoformat(),
    }
    naive = await client.get("/orders/search", params=window, headers=ADMIN)
    assert naive.status_code == 200
    assert naive.json()["data"]["total_items"] == 2

    past = (now - timedelta(days=60)).replace(tzinfo=None).isoformat()
    stale = await client.get("/orders/search", params={"end_date": past}, headers=ADMIN)
    assert stale.json()["data"]["total_items"] == 0


async def test_seller_report(client, sales):
    lantern_item = next(i for i in sales["first"]["items"] if i["product_name"] == "Lantern")
    for new_status in ("Accepted", "Shipped", "Delivered"):
        await client.put(
            f"/orders/seller/items/{lantern_item['id']}/status",
            json={"status": new_status},
            headers=SELLER
        )

    resp = await client.get("/sellers/reports", headers=SELLER)

    assert resp.status_code == 200
    report = resp.json()["data"]
    assert Decimal(report["total_revenue"]) == Decimal("45.00")
    assert report["total_orders"] == 2
    assert report["completed_orders"] == 1
    assert report["pending_orders"] == 1
    assert Decimal(report["average_order_value"]) == Decimal("22.50")
    assert [p["product_name"] for p in report["top_products"]] == ["Lantern", "Candle"]
    assert report["top_products"][0]["total_sales"] == 2
    assert len(report["daily_revenue"]) == 1
    assert report["daily_revenue"][0]["order_count"] == 2


async def test_seller_stats(client, sales):
    resp = await client.get("/sellers/my-stats", headers=SELLER)

    stats = resp.json()["data"]
    assert stats["total_products"] == 2
    assert stats["store_name"] == "Night Market"
    assert stats["is_approved"] is True


async def test_admin_dashboard(client, sales, seed):
    await seed.seller("seller-2", store_name="Waiting Room", is_approved=False)

    resp = await client.get("/admin/dashboard", headers=ADMIN)

    dashboard = resp.json()["data"]
    assert dashboard["total_orders"] == 2
    assert dashboard["total_products"] == 3
    assert dashboard["total_sellers"] == 2
    assert dashboard["pending_sellers"] == 1
    # Payments are still pending, so nothing counts as revenue yet
    assert Decimal(dashboard["total_revenue"]) == Decimal("0")
    assert [o["id"] for o in dashboard["recent_orders"]] == [sales["second"]["id"], sales["first"]["id"]]
