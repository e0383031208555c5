from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Query, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from shared.appsync import build_repository
from shared.config import settings
from shared.logging_config import setup_logging
from shared.models import AuthMode, ListingStatus, allowed_transitions
from shared.repository import Repository, RecordNotFound, AuthorizationError, DataAccessError
from marketplace.listing_publish import create_listing
from marketplace.orders import OrderNotCancellable, cancel_order, change_order_status
from marketplace.status_sync import StatusSyncError, sync_listing_status
from marketplace.users import get_user_attributes, is_admin
from .auth import CurrentUser, get_current_user

setup_logging()
log = logging.getLogger(__name__)
app = FastAPI(title="Scentra Marketplace API", version="1.0.0")

def request_auth_mode(user: CurrentUser = Depends(get_current_user)) -> AuthMode:
    # Signed-in callers act under their own session; otherwise the configured default.
    if user.id_token:
        return AuthMode.USER_POOL
    return AuthMode.parse(settings.default_auth_mode)

async def get_repository(
    user: CurrentUser = Depends(get_current_user),
    mode: AuthMode = Depends(request_auth_mode),
) -> AsyncIterator[Repository]:
    repo = build_repository(settings.backend(mode), mode, id_token=user.id_token)
    try:
        yield repo
    finally:
        await repo.aclose()

def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not is_admin(user.claims):
        log.warning(f"[User: {user.user_id}] Not in {settings.admin_group}, denying admin access")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user

def _data_error(e: DataAccessError) -> HTTPException:
    if isinstance(e, RecordNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, AuthorizationError):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


class UploadLog(BaseModel):
    success: bool
    key: str
    url: Optional[str] = None
    error: Optional[str] = None

class NewListing(BaseModel):
    fragranceId: str
    bottleSize: str
    condition: str
    askingPrice: float
    imageKey: str
    percentRemaining: Optional[int] = None
    hasOriginalBox: Optional[bool] = None

class StatusChange(BaseModel):
    status: str = Field(..., description="Target status")


@app.post("/api/log")
async def log_upload(request: Request):
    """
    Server-side record of a listing image upload, as reported by the storefront.
    Always answers ``{"logged": true}`` unless the body itself cannot be handled.
    """
    try:
        entry = UploadLog(**(await request.json()))
        stamp = datetime.now(timezone.utc).isoformat()
        if entry.success:
            log.info(f"[S3 UPLOAD][{stamp}] Image upload successful. Key: {entry.key} URL: {entry.url}")
        else:
            log.warning(f"[S3 UPLOAD][{stamp}] Error getting S3 URL. Key: {entry.key} Error: {entry.error}")
        return {"logged": True}
    except Exception as e:
        log.error(f"Error in log API route: {e}")
        return JSONResponse({"logged": False}, status_code=500)

@app.get("/ping")
def ping():
    return {
        "ok": True,
        "region": settings.aws_region,
        "stage": settings.stage,
        "auth_mode": settings.default_auth_mode,
    }

@app.get("/listings")
async def listings_feed(
    status: Optional[str] = Query(ListingStatus.ACTIVE.value, description="Filter by listing status"),
    seller: Optional[str] = Query(None, description="Only this seller's listings"),
    limit: int = Query(20, ge=1, le=100),
    page_token: Optional[str] = Query(None, description="Opaque cursor from a previous page"),
    repo: Repository = Depends(get_repository),
):
    filt = {}
    if status:
        filt["status"] = status
    if seller:
        filt["sellerId"] = seller
    try:
        page = await repo.list("Listing", filt, limit=limit, next_token=page_token)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataAccessError as e:
        raise _data_error(e)

    return {
        "items": page.items,
        "count": len(page.items),
        "has_more": bool(page.next_token),
        "next_page_token": page.next_token,
        "applied_filters": {"status": status, "seller": seller, "limit": limit},
    }

@app.post("/listings", status_code=201)
async def new_listing(
    body: NewListing,
    user: CurrentUser = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    try:
        return await create_listing(
            repo,
            seller_id=user.user_id,
            fragrance_id=body.fragranceId,
            bottle_size=body.bottleSize,
            condition=body.condition,
            asking_price=body.askingPrice,
            image_key=body.imageKey,
            percent_remaining=body.percentRemaining,
            has_original_box=body.hasOriginalBox,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DataAccessError as e:
        raise _data_error(e)

@app.post("/admin/listings/{listing_id}/status")
async def change_listing_status(
    listing_id: str,
    body: StatusChange,
    _admin: CurrentUser = Depends(require_admin),
    repo: Repository = Depends(get_repository),
    mode: AuthMode = Depends(request_auth_mode),
):
    """
    Moves a listing to ``body.status`` and cascades it to its order items.

    502 responses carry the structured failure: which stage broke and, for
    partial failures, which order items did and did not change.
    """
    try:
        target = ListingStatus(body.status)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown listing status: {body.status}")

    try:
        listing = await repo.get("Listing", listing_id)
    except DataAccessError as e:
        raise _data_error(e)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    if target not in allowed_transitions(listing.get("status")):
        raise HTTPException(status_code=409, detail=f"Cannot change from {listing.get('status')} to {target.value}")

    try:
        result = await sync_listing_status(repo, listing_id, target, mode)
    except StatusSyncError as e:
        return JSONResponse(e.to_dict(), status_code=502)
    return result.to_dict()

@app.post("/orders/{order_id}/cancel")
async def cancel_my_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
    mode: AuthMode = Depends(request_auth_mode),
):
    try:
        result = await cancel_order(repo, order_id, buyer_id=user.user_id, auth_mode=mode)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except OrderNotCancellable as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DataAccessError as e:
        raise _data_error(e)
    return result.to_dict()

@app.post("/admin/orders/{order_id}/status")
async def admin_order_status(
    order_id: str,
    body: StatusChange,
    _admin: CurrentUser = Depends(require_admin),
    repo: Repository = Depends(get_repository),
):
    try:
        return await change_order_status(repo, order_id, body.status)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DataAccessError as e:
        raise _data_error(e)

@app.get("/admin/users/{user_id}")
def admin_user(user_id: str, _admin: CurrentUser = Depends(require_admin)):
    return get_user_attributes(user_id)
