# tests/test_listing_publish.py
import pytest

from marketplace.listing_publish import create_listing


def base_args(**overrides):
    args = dict(
        seller_id="seller-1",
        fragrance_id="F-001",
        bottle_size="100ml",
        condition="new",
        asking_price=145.0,
        image_key="listings/seller-1/photo.jpg",
    )
    args.update(overrides)
    return args


@pytest.mark.asyncio
async def test_new_listing_starts_active(repo):
    record = await create_listing(repo, **base_args(percent_remaining=40))

    stored = repo.record("Listing", record["id"])
    assert stored["status"] == "active"
    assert stored["sellerId"] == "seller-1"
    assert stored["askingPrice"] == 145.0
    # percent remaining is dropped for new bottles
    assert "percentRemaining" not in stored
    assert stored["createdAt"] == stored["updatedAt"]
    assert "id" not in repo.calls[0][2]


@pytest.mark.asyncio
async def test_used_listing_keeps_percent_remaining(repo):
    record = await create_listing(repo, **base_args(condition="used", percent_remaining=75, has_original_box=True))
    assert record["percentRemaining"] == 75
    assert record["hasOriginalBox"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"condition": "used"},
    {"condition": "used", "percent_remaining": 0},
    {"condition": "used", "percent_remaining": 101},
    {"condition": "refurbished"},
    {"asking_price": 0},
    {"asking_price": -5},
    {"seller_id": ""},
    {"image_key": ""},
])
async def test_invalid_listing_is_rejected(repo, overrides):
    with pytest.raises(ValueError):
        await create_listing(repo, **base_args(**overrides))
    assert repo.calls == []
