# tests/test_orders.py
import pytest

from shared.repository import RecordNotFound
from marketplace.orders import OrderNotCancellable, cancel_order, change_order_status


@pytest.mark.asyncio
async def test_cancel_unpaid_order_reactivates_listings(marketplace):
    marketplace.record("Listing", "L1")["status"] = "unconfirmed"

    result = await cancel_order(marketplace, "ORD1", buyer_id="buyer-1")

    assert marketplace.record("Order", "ORD1")["orderStatus"] == "cancelled"
    assert marketplace.record("Listing", "L1")["status"] == "active"
    # cascade reaches every item on the listing, including other orders' items
    assert marketplace.record("OrderItem", "O1")["status"] == "active"
    assert marketplace.record("OrderItem", "O3")["status"] == "active"
    assert result.reactivated_listing_ids == ["L1"]
    assert result.failed_listings == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("order_status", ["pending", "delivered"])
async def test_paid_order_cannot_be_cancelled(marketplace, order_status):
    marketplace.record("Order", "ORD2")["orderStatus"] = order_status

    with pytest.raises(OrderNotCancellable, match="contact support"):
        await cancel_order(marketplace, "ORD2", buyer_id="buyer-2")

    assert marketplace.record("Order", "ORD2")["orderStatus"] == order_status
    assert marketplace.updates_for("Order") == []
    assert marketplace.updates_for("Listing") == []


@pytest.mark.asyncio
async def test_second_cancel_does_not_touch_a_resold_listing(marketplace):
    await cancel_order(marketplace, "ORD1", buyer_id="buyer-1")

    # L1 is bought again by someone else
    marketplace.record("Listing", "L1")["status"] = "unconfirmed"
    marketplace.seed("OrderItem", {"id": "O9", "orderId": "ORD9", "listingId": "L1", "status": "unconfirmed"})

    with pytest.raises(OrderNotCancellable, match="already cancelled"):
        await cancel_order(marketplace, "ORD1", buyer_id="buyer-1")

    assert marketplace.record("Listing", "L1")["status"] == "unconfirmed"
    assert marketplace.record("OrderItem", "O9")["status"] == "unconfirmed"


@pytest.mark.asyncio
async def test_cancel_someone_elses_order(marketplace):
    with pytest.raises(PermissionError):
        await cancel_order(marketplace, "ORD1", buyer_id="buyer-2")
    assert marketplace.record("Order", "ORD1")["orderStatus"] == "pending"


@pytest.mark.asyncio
async def test_cancel_reports_listing_failures_without_raising(marketplace):
    marketplace.fail_updates.add(("Listing", "L1"))

    result = await cancel_order(marketplace, "ORD1")

    assert marketplace.record("Order", "ORD1")["orderStatus"] == "cancelled"
    assert "L1" in result.failed_listings
    assert result.to_dict()["orderStatus"] == "cancelled"


@pytest.mark.asyncio
async def test_cancel_unknown_order(marketplace):
    with pytest.raises(RecordNotFound):
        await cancel_order(marketplace, "nope")


@pytest.mark.asyncio
async def test_order_status_follows_transitions(marketplace):
    updated = await change_order_status(marketplace, "ORD1", "processing")
    assert updated["orderStatus"] == "processing"

    with pytest.raises(ValueError, match="cannot change"):
        await change_order_status(marketplace, "ORD1", "delivered")

    with pytest.raises(ValueError, match="invalid"):
        await change_order_status(marketplace, "ORD1", "lost")
