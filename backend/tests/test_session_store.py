import asyncio
import time
import pytest

from shopassist.state.store import SessionStateStore

SHIRT = {"id": "p1", "name": "Oxford Shirt", "price": 25.0, "category": "shirts"}
PANTS = {"id": "p4", "name": "Chinos", "price": 40.0, "category": "pants"}
SHOES = {"id": "p8", "name": "Oxford Shoes", "price": 60.0, "category": "footwear"}


@pytest.mark.asyncio
async def test_price_snapshot_survives_catalog_change(store):
    await store.add_to_cart("acme", "s1", SHIRT, 1)
    repriced = dict(SHIRT, price=99.0)

    line, summary = await store.add_to_cart("acme", "s1", repriced, 1)

    assert line.quantity == 2
    assert line.price_snapshot == 25.0
    assert summary == {"totalItems": 2, "totalAmount": 50.0, "lineCount": 1}


@pytest.mark.asyncio
async def test_quantity_must_be_positive(store):
    with pytest.raises(ValueError):
        await store.add_to_cart("acme", "s1", SHIRT, 0)


@pytest.mark.asyncio
async def test_checkout_creates_order_and_clears_cart(store):
    await store.add_to_cart("acme", "s1", SHIRT, 2)
    await store.add_to_cart("acme", "s1", PANTS, 1)
    await store.add_to_cart("acme", "s1", SHOES, 1)

    order = await store.checkout("acme", "s1")

    assert order.total_amount == 150.0
    assert order.total_items == 4
    assert order.status == "confirmed"
    assert order.payment_method == "COD"
    assert order.order_id.startswith("ORD-")
    assert len(order.lines) == 3
    lines, summary = store.view_cart("acme", "s1")
    assert lines == []
    assert summary["totalAmount"] == 0
    assert [o.order_id for o in store.get_orders("acme", "s1")] == [order.order_id]


@pytest.mark.asyncio
async def test_checkout_with_empty_cart(store):
    assert await store.checkout("acme", "s1") is None
    assert store.get_orders("acme", "s1") == []


@pytest.mark.asyncio
async def test_save_context_leaves_cart_alone(store):
    await store.add_to_cart("acme", "s1", SHIRT, 1)

    ctx = await store.save_context("acme", "s1", last_products=[PANTS, SHOES], last_matched_ids=["p4", "p8"])

    assert [line.product_id for line in ctx.cart] == ["p1"]
    assert ctx.last_matched_ids == ["p4", "p8"]


@pytest.mark.asyncio
async def test_every_write_bumps_version(store):
    assert store.get("acme", "s1").version == 0
    await store.add_to_cart("acme", "s1", SHIRT, 1)
    await store.save_context("acme", "s1", last_matched_ids=["p1"])
    assert store.get("acme", "s1").version == 2


@pytest.mark.asyncio
async def test_snapshots_are_detached(store):
    await store.add_to_cart("acme", "s1", SHIRT, 1)

    snapshot = store.get("acme", "s1")
    snapshot.cart.clear()
    snapshot.last_matched_ids.append("p999")

    fresh = store.get("acme", "s1")
    assert len(fresh.cart) == 1
    assert fresh.last_matched_ids == []


@pytest.mark.asyncio
async def test_tenants_do_not_share_sessions(store):
    await store.add_to_cart("acme", "s1", SHIRT, 1)
    lines, _ = store.view_cart("globex", "s1")
    assert lines == []


@pytest.mark.asyncio
async def test_concurrent_adds_are_serialized(store):
    await asyncio.gather(*[store.add_to_cart("acme", "s1", SHIRT, 1) for _ in range(20)])

    ctx = store.get("acme", "s1")
    assert ctx.cart[0].quantity == 20
    assert ctx.version == 20


@pytest.mark.asyncio
async def test_remove_from_cart(store):
    await store.add_to_cart("acme", "s1", SHIRT, 1)
    await store.add_to_cart("acme", "s1", PANTS, 1)

    removed, summary = await store.remove_from_cart("acme", "s1", "p1")
    missing, _ = await store.remove_from_cart("acme", "s1", "p1")

    assert removed.product_id == "p1"
    assert summary["totalAmount"] == 40.0
    assert missing is None


@pytest.mark.asyncio
async def test_add_multiple(store):
    added, summary = await store.add_multiple("acme", "s1", [(SHIRT, 1), (PANTS, 2)])
    assert [line.product_id for line in added] == ["p1", "p4"]
    assert summary["totalAmount"] == 105.0


@pytest.mark.asyncio
async def test_cancel_order(store):
    await store.add_to_cart("acme", "s1", SHIRT, 1)
    order = await store.checkout("acme", "s1")

    cancelled, error = await store.cancel_order("acme", "s1", order.order_id, "changed my mind")
    again, again_error = await store.cancel_order("acme", "s1", order.order_id)
    missing, missing_error = await store.cancel_order("acme", "s1", "ORD-0")

    assert error is None
    assert cancelled.status == "cancelled"
    assert cancelled.cancel_reason == "changed my mind"
    assert again_error == "Order is already cancelled"
    assert missing is None and missing_error == "Order not found"
    assert store.get_order("acme", "s1", order.order_id).status == "cancelled"


def test_only_cancelled_orders_are_final():
    from shopassist.state.store import _FINAL_STATUSES

    assert _FINAL_STATUSES == {"cancelled"}


@pytest.mark.asyncio
async def test_update_profile_learns_preferences(store):
    await store.update_profile("acme", "s1", [SHOES, dict(PANTS, colors=["Khaki"], tags=["office"])], query="office")

    profile = store.get("acme", "s1").profile
    assert profile.categories == {"footwear": 2.0, "pants": 2.0}
    assert profile.colors == {"khaki": 1.0}
    assert profile.tags == {"office": 1.0}
    assert profile.interaction_count == 1
    assert profile.recent_product_ids == ["p8", "p4"]


@pytest.mark.asyncio
async def test_lru_eviction_keeps_orders():
    store = SessionStateStore(max_items=2, ttl_seconds=3600)
    await store.add_to_cart("acme", "s1", SHIRT, 1)
    await store.checkout("acme", "s1")
    await store.add_to_cart("acme", "s1", SHIRT, 1)
    store.get("acme", "s2")
    store.get("acme", "s3")

    assert len(store) == 2
    assert store.get("acme", "s1").cart == []
    assert len(store.get_orders("acme", "s1")) == 1


@pytest.mark.asyncio
async def test_idle_sessions_expire(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(time, "time", lambda: now[0])
    store = SessionStateStore(max_items=10, ttl_seconds=60)
    await store.add_to_cart("acme", "s1", SHIRT, 1)

    now[0] += 61

    assert store.get("acme", "s1").cart == []
