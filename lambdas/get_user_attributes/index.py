from __future__ import annotations
import json

from shared.logging_config import setup_logging
from marketplace.users import get_user_attributes, is_admin

setup_logging()

def handler(event, _ctx):
    """Resolves ``getUserAttributes(userId)``.

    As a data-API resolver the event carries ``arguments`` and the result is a
    JSON string (or None). Behind API Gateway the userId comes in the body and
    a proxy response is returned.
    """
    event = event or {}
    if "arguments" in event:
        user = get_user_attributes((event.get("arguments") or {}).get("userId"))
        return json.dumps(user) if user is not None else None

    claims = ((event.get("requestContext") or {}).get("authorizer") or {}).get("claims")
    if claims is not None and not is_admin(claims):
        return {"statusCode": 403, "headers": {"Content-Type": "application/json"},
                "body": json.dumps({"error": "Admin access required"})}

    try:
        payload = json.loads(event.get("body") or "{}")
    except (TypeError, ValueError):
        payload = {}
    user = get_user_attributes(payload.get("userId"))
    if user is None:
        return {"statusCode": 400, "headers": {"Content-Type": "application/json"},
                "body": json.dumps({"error": "missing userId"})}
    return {"statusCode": 200, "headers": {"Content-Type": "application/json"},
            "body": json.dumps(user, ensure_ascii=False)}
