"""Pure business rules and access-control tables, no database involved"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from dependencies.rbac import has_permission, normalize_path
from routers.orders.helpers import can_transition, derive_order_status, merge_order_lines, resolve_date_range
from routers.orders.schemas import OrderCreate
from utils.exceptions import InputValidationError
from utils.response_helpers import to_money, total_pages
from conftest import ADMIN, auth


@pytest.mark.parametrize("current, new, allowed", [
    ("Pending", "Accepted", True),
    ("Pending", "Rejected", True),
    ("Pending", "Shipped", False),
    ("Accepted", "Shipped", True),
    ("Accepted", "Rejected", True),
    ("Shipped", "Delivered", True),
    ("Shipped", "Rejected", False),
    ("Delivered", "Pending", False),
    ("Rejected", "Accepted", False),
])
def test_item_transitions(current, new, allowed):
    assert can_transition(current, new) is allowed


def test_only_all_delivered_rolls_up():
    assert derive_order_status(["Delivered", "Delivered"]) == "Delivered"
    assert derive_order_status(["Delivered", "Shipped"]) is None
    assert derive_order_status(["Delivered", "Rejected"]) is None
    assert derive_order_status([]) is None


def test_merge_order_lines_keeps_first_seen_order():
    order = OrderCreate(
        items=[
            {"product_id": 7, "quantity": 1},
            {"product_id": 3, "quantity": 2},
            {"product_id": 7, "quantity": 4},
        ],
        shipping_address="1 Main St",
        contact_phone="555",
        payment_method="card",
    )
    assert list(merge_order_lines(order).items()) == [(7, 5), (3, 2)]


def test_default_report_window_is_trailing_thirty_days():
    start, end = resolve_date_range(None, None)
    assert end - start == timedelta(days=30)
    assert end <= datetime.now(timezone.utc)


def test_naive_dates_are_treated_as_utc():
    start, end = resolve_date_range(datetime(2025, 1, 1), datetime(2025, 1, 31, tzinfo=timezone.utc))
    assert start.tzinfo is not None
    assert end - start == timedelta(days=30)


def test_inverted_report_window_is_rejected():
    with pytest.raises(InputValidationError):
        resolve_date_range(datetime(2025, 2, 1, tzinfo=timezone.utc), datetime(2025, 1, 1, tzinfo=timezone.utc))


def test_money_and_paging_helpers():
    assert to_money(None) == Decimal("0.00")
    assert to_money(4.333333) == Decimal("4.33")
    assert to_money(Decimal("2.675")) == Decimal("2.68")
    assert total_pages(0, 10) == 0
    assert total_pages(21, 10) == 3


@pytest.mark.parametrize("path, resource", [
    ("/orders/stats", "orders/reports"),
    ("/orders/search", "orders/reports"),
    ("/orders/12", "orders"),
    ("/sellers/my-stats", "sellers/catalog"),
    ("/sellers/4/reviews", "sellers/reviews"),
    ("/sellers/4", "sellers"),
    ("/admin/categories", "categories"),
    ("/admin/dashboard", "admin"),
    ("/products/categories", "categories"),
    ("/carts/items/3", "carts"),
])
def test_normalize_path(path, resource):
    assert normalize_path(path) == resource


def test_reports_are_admin_only():
    assert has_permission("admin", "orders/reports", "read")
    assert not has_permission("seller", "orders/reports", "read")
    assert not has_permission("user", "orders/reports", "read")
    assert not has_permission("guest", "orders", "read")


async def test_non_admins_cannot_read_order_stats(client):
    for headers in (auth("buyer-1"), auth("seller-1", "seller")):
        resp = await client.get("/orders/stats", headers=headers)
        assert resp.status_code == 403

    assert (await client.get("/orders/stats", headers=ADMIN)).status_code == 200


async def test_admin_area_is_admin_only(client):
    resp = await client.get("/admin/dashboard", headers=auth("seller-1", "seller"))

    assert resp.status_code == 403
    assert resp.json()["error"] == "Access denied. Requires role: admin"
