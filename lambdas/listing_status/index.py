from __future__ import annotations
import asyncio, json
from typing import Any, Dict

from shared.config import settings
from shared.dynamo import DynamoRepository
from shared.logging_config import setup_logging
from shared.models import AuthMode
from marketplace.status_sync import StatusSyncError, sync_listing_status
from marketplace.users import is_admin

setup_logging()

def _ok(b, c=200):
    return {"statusCode": c, "headers": {"Content-Type": "application/json"},
            "body": json.dumps(b, ensure_ascii=False)}

def _payload(event: Dict[str, Any]) -> Dict[str, Any]:
    # API Gateway proxy events carry a JSON string body; direct invokes pass the fields.
    body = event.get("body")
    if body is None:
        return event
    try:
        return json.loads(body) or {}
    except (TypeError, ValueError):
        return {}

async def _run(listing_id: str, status: str):
    repo = DynamoRepository(settings.backend(AuthMode.IAM))
    return await sync_listing_status(repo, listing_id, status, AuthMode.IAM)

def handler(event, _ctx):
    event = event or {}
    claims = ((event.get("requestContext") or {}).get("authorizer") or {}).get("claims")
    if claims is not None and not is_admin(claims):
        return _ok({"error": "Admin access required"}, 403)

    payload = _payload(event)
    listing_id = payload.get("listingId") or ""
    status = payload.get("status") or ""

    try:
        result = asyncio.run(_run(listing_id, status))
    except ValueError as e:
        return _ok({"error": str(e)}, 400)
    except StatusSyncError as e:
        return _ok(e.to_dict(), 502)
    return _ok(result.to_dict())
