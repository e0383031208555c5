from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from shared.models import AuthMode, ListingStatus, OrderStatus, PaymentStatus, ORDER_TRANSITIONS
from shared.repository import Repository, RecordNotFound
from .status_sync import sync_listing_status

log = logging.getLogger(__name__)

@dataclass
class CancelResult:
    order_id: str
    reactivated_listing_ids: List[str] = field(default_factory=list)
    failed_listings: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "orderStatus": OrderStatus.CANCELLED.value,
            "reactivatedListingIds": self.reactivated_listing_ids,
            "failedListings": self.failed_listings,
        }

class OrderNotCancellable(ValueError):
    """The order is already cancelled, or paid and needs support to cancel."""

async def _load_order(repo: Repository, order_id: str) -> dict:
    order = await repo.get("Order", order_id)
    if order is None:
        raise RecordNotFound("Order", order_id)
    return order

async def cancel_order(
    repo: Repository,
    order_id: str,
    buyer_id: Optional[str] = None,
    auth_mode: AuthMode | str = AuthMode.USER_POOL,
) -> CancelResult:
    """Cancel an unpaid order and hand its listings back to the storefront.

    Only orders still awaiting payment can be cancelled here, and only once;
    anything else raises ``OrderNotCancellable``. Listing reactivation goes
    through the status cascade, one call per listing, all at once. A listing
    that fails to reactivate is logged and reported in the result; it does
    not undo the cancellation.
    """
    log_prefix = f"[Order: {order_id}]"
    order = await _load_order(repo, order_id)
    if buyer_id is not None and order.get("buyerId") != buyer_id:
        raise PermissionError(f"order {order_id} does not belong to {buyer_id}")
    if order.get("orderStatus") == OrderStatus.CANCELLED.value:
        raise OrderNotCancellable(f"order {order_id} is already cancelled")
    if order.get("paymentStatus") != PaymentStatus.AWAITING_PAYMENT.value:
        log.warning(f"{log_prefix} Cancel refused, payment status is {order.get('paymentStatus')}")
        raise OrderNotCancellable(f"order {order_id} is paid and cannot be automatically cancelled; contact support")

    await repo.update("Order", {"id": order_id, "orderStatus": OrderStatus.CANCELLED.value})
    log.info(f"{log_prefix} Cancelled.")

    result = CancelResult(order_id=order_id)
    items = await repo.list_all("OrderItem", {"orderId": order_id})
    listing_ids = list(dict.fromkeys(i["listingId"] for i in items if i.get("listingId")))
    outcomes = await asyncio.gather(
        *(sync_listing_status(repo, lid, ListingStatus.ACTIVE, auth_mode) for lid in listing_ids),
        return_exceptions=True,
    )
    for lid, outcome in zip(listing_ids, outcomes):
        if isinstance(outcome, BaseException):
            log.error(f"{log_prefix} Error reactivating listing {lid}: {outcome}")
            result.failed_listings[lid] = str(outcome)
        else:
            result.reactivated_listing_ids.append(lid)
    return result

async def change_order_status(repo: Repository, order_id: str, new_status: OrderStatus | str) -> dict:
    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise ValueError(f"invalid order status {new_status!r}") from None

    order = await _load_order(repo, order_id)
    current = order.get("orderStatus") or OrderStatus.PENDING.value
    allowed = ORDER_TRANSITIONS.get(current, list(OrderStatus))
    if target not in allowed:
        raise ValueError(f"cannot change order from {current} to {target.value}")

    updated = await repo.update("Order", {"id": order_id, "orderStatus": target.value})
    log.info(f"[Order: {order_id}] Status {current} -> {target.value}")
    return updated
