from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from shared.models import Listing, ListingStatus
from shared.repository import Repository

log = logging.getLogger(__name__)

CONDITIONS = ("new", "used")

async def create_listing(
    repo: Repository,
    seller_id: str,
    fragrance_id: str,
    bottle_size: str,
    condition: str,
    asking_price: float,
    image_key: str,
    percent_remaining: Optional[int] = None,
    has_original_box: Optional[bool] = None,
) -> Dict[str, Any]:
    if not seller_id:
        raise ValueError("seller_id is required")
    if not fragrance_id or not bottle_size or not image_key:
        raise ValueError("fragrance_id, bottle_size and image_key are required")
    if condition not in CONDITIONS:
        raise ValueError(f"condition must be one of {CONDITIONS}")
    if asking_price is None or asking_price <= 0:
        raise ValueError("asking_price must be positive")

    if condition == "used":
        if percent_remaining is None or not 1 <= percent_remaining <= 100:
            raise ValueError("percent_remaining must be between 1 and 100 for a used bottle")
    else:
        # only meaningful for used bottles
        percent_remaining = None

    now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    listing = Listing(
        id="",
        seller_id=seller_id,
        fragrance_id=fragrance_id,
        bottle_size=bottle_size,
        condition=condition,
        asking_price=float(asking_price),
        image_key=image_key,
        status=ListingStatus.ACTIVE.value,
        percent_remaining=percent_remaining,
        has_original_box=has_original_box,
        created_at=now,
        updated_at=now,
    )
    fields = listing.to_record()
    fields.pop("id")
    record = await repo.create("Listing", fields)
    log.info(f"[Listing: {record.get('id')}] Created for seller {seller_id} ({fragrance_id}, {bottle_size})")
    return record
