"""
status_sync.py: keeps order items in step with their listing's status.

Flow for ``sync_listing_status(repo, listing_id, new_status)``:
    1. update the Listing's status
    2. collect every OrderItem with ``listingId == listing_id`` (all pages)
    3. update those items concurrently and wait for every one to settle

The cascade is not transactional. A failed item update leaves the listing
and the other items already changed; the raised ``StatusSyncError`` carries
a ``SyncResult`` that says which ids were updated and which were not.
Re-running the same call converges, since every step is idempotent.
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from shared.models import AuthMode, ListingStatus
from shared.repository import Repository

log = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to update listing status"

@dataclass
class SyncResult:
    listing_id: str
    status: str
    updated_item_ids: List[str] = field(default_factory=list)
    failed_items: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed_items

    def to_dict(self) -> dict:
        return {
            "listingId": self.listing_id,
            "status": self.status,
            "updatedOrderItemIds": self.updated_item_ids,
            "failedOrderItems": self.failed_items,
        }

class StatusSyncError(Exception):
    """Raised when any part of the cascade fails.

    ``stage`` is ``"listing"``, ``"query"`` or ``"order_items"``. ``result`` is
    filled in once the listing itself was updated.
    """

    def __init__(self, stage: str, result: Optional[SyncResult] = None):
        super().__init__(FAILURE_MESSAGE)
        self.stage = stage
        self.result = result

    def to_dict(self) -> dict:
        out = {"error": FAILURE_MESSAGE, "stage": self.stage}
        if self.result is not None:
            out["result"] = self.result.to_dict()
        if self.__cause__ is not None:
            out["cause"] = str(self.__cause__)
        return out

def _validate(listing_id: str, new_status) -> ListingStatus:
    if not isinstance(listing_id, str) or not listing_id.strip():
        raise ValueError("listing_id must be a non-empty string")
    try:
        return ListingStatus(new_status)
    except ValueError:
        allowed = ", ".join(s.value for s in ListingStatus)
        raise ValueError(f"invalid listing status {new_status!r} (expected one of: {allowed})") from None

async def sync_listing_status(
    repo: Repository,
    listing_id: str,
    new_status: ListingStatus | str,
    auth_mode: AuthMode | str = AuthMode.USER_POOL,
) -> SyncResult:
    """Set ``new_status`` on the listing and on every order item that references it.

    ``auth_mode`` must match the mode ``repo`` was built with, otherwise
    ``ValueError`` is raised before anything is written.
    """
    status = _validate(listing_id, new_status)
    mode = AuthMode.parse(auth_mode)
    repo_mode = getattr(repo, "auth_mode", None)
    if repo_mode is not None and repo_mode is not mode:
        raise ValueError(f"repository uses {repo_mode.value} auth, caller asked for {mode.value}")

    log_prefix = f"[Listing: {listing_id}]"

    try:
        await repo.update("Listing", {"id": listing_id, "status": status.value})
    except Exception as e:
        log.error(f"{log_prefix} Listing update to {status.value} rejected: {e}")
        raise StatusSyncError("listing") from e

    result = SyncResult(listing_id=listing_id, status=status.value)

    try:
        related = await repo.list_all("OrderItem", {"listingId": listing_id})
        ids = [item["id"] for item in related]
    except Exception as e:
        log.error(f"{log_prefix} Could not query related order items: {e!r}")
        raise StatusSyncError("query", result) from e

    if not ids:
        log.info(f"{log_prefix} Updated status to {status.value} (no related order items)")
        return result

    outcomes = await asyncio.gather(
        *(repo.update("OrderItem", {"id": item_id, "status": status.value}) for item_id in ids),
        return_exceptions=True,
    )
    first_error: Optional[BaseException] = None
    for item_id, outcome in zip(ids, outcomes):
        if isinstance(outcome, BaseException):
            result.failed_items[item_id] = str(outcome) or type(outcome).__name__
            first_error = first_error or outcome
        else:
            result.updated_item_ids.append(item_id)

    if first_error is not None:
        log.error(
            f"{log_prefix} {len(result.failed_items)} of {len(ids)} order item updates failed: "
            f"{sorted(result.failed_items)}"
        )
        raise StatusSyncError("order_items", result) from first_error

    log.info(f"{log_prefix} Updated status to {status.value} and {len(ids)} related order items")
    return result
