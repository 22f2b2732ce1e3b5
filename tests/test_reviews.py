from decimal import Decimal

import pytest

from conftest import ADMIN, auth


@pytest.fixture
async def store(seed):
    return await seed.seller("seller-1", store_name="Harbor Books")


async def review(client, store, user_id, rating, comment=None):
    resp = await client.post(
        f"/sellers/{store.id}/reviews",
        json={"rating": rating, "comment": comment},
        headers=auth(user_id)
    )
    assert resp.status_code == 201
    return resp.json()["data"]["id"]


async def set_approval(client, review_id, is_approved):
    resp = await client.put(f"/admin/reviews/{review_id}/approve", json={"is_approved": is_approved}, headers=ADMIN)
    assert resp.status_code == 200
    return resp


async def store_rating(client, store):
    resp = await client.get(f"/sellers/{store.id}")
    return Decimal(resp.json()["data"]["rating"])


async def test_rating_is_mean_of_approved_reviews(client, store):
    three = await review(client, store, "reader-1", 3)
    five = await review(client, store, "reader-2", 5)
    await review(client, store, "reader-3", 1)

    await set_approval(client, three, True)
    await set_approval(client, five, True)

    assert await store_rating(client, store) == Decimal("4.00")

    listed = await client.get(f"/sellers/{store.id}/reviews", headers=auth("reader-1"))
    assert sorted(r["rating"] for r in listed.json()["data"]) == [3, 5]


async def test_rating_rounds_to_two_places(client, store):
    for user_id, rating in (("reader-1", 4), ("reader-2", 4), ("reader-3", 5)):
        await set_approval(client, await review(client, store, user_id, rating), True)

    assert await store_rating(client, store) == Decimal("4.33")


async def test_unapproving_recomputes_rating(client, store):
    three = await review(client, store, "reader-1", 3)
    five = await review(client, store, "reader-2", 5)
    await set_approval(client, three, True)
    await set_approval(client, five, True)

    await set_approval(client, five, False)
    assert await store_rating(client, store) == Decimal("3.00")

    await set_approval(client, three, False)
    assert await store_rating(client, store) == Decimal("0")


async def test_new_reviews_wait_for_moderation(client, store):
    review_id = await review(client, store, "reader-1", 2, "Slow shipping")

    assert await store_rating(client, store) == Decimal("0")

    hidden = await client.get(f"/sellers/{store.id}/reviews/{review_id}", headers=auth("reader-1"))
    assert hidden.status_code == 404

    pending = await client.get("/admin/pending-reviews", headers=ADMIN)
    assert [r["id"] for r in pending.json()["data"]] == [review_id]

    await set_approval(client, review_id, True)
    shown = await client.get(f"/sellers/{store.id}/reviews/{review_id}", headers=auth("reader-1"))
    assert shown.json()["data"]["comment"] == "Slow shipping"


async def test_one_review_per_user(client, store):
    await review(client, store, "reader-1", 4)

    resp = await client.post(f"/sellers/{store.id}/reviews", json={"rating": 1}, headers=auth("reader-1"))
    assert resp.status_code == 409


async def test_sellers_cannot_review_themselves(client, store):
    resp = await client.post(f"/sellers/{store.id}/reviews", json={"rating": 5}, headers=auth("seller-1", "seller"))
    assert resp.status_code == 403


async def test_rating_must_be_between_one_and_five(client, store):
    resp = await client.post(f"/sellers/{store.id}/reviews", json={"rating": 6}, headers=auth("reader-1"))
    assert resp.status_code == 400


async def test_review_moderation_is_admin_only(client, store):
    review_id = await review(client, store, "reader-1", 5)

    resp = await client.put(
        f"/admin/reviews/{review_id}/approve",
        json={"is_approved": True},
        headers=auth("seller-1", "seller")
    )
    assert resp.status_code == 403
    assert await store_rating(client, store) == Decimal("0")
