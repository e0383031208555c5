from __future__ import annotations
import logging
from typing import Dict, Any, Iterable, Optional

from botocore.exceptions import ClientError, BotoCoreError

from shared.aws import cognito_idp_client
from shared.config import settings

log = logging.getLogger(__name__)

def fallback_user(user_id: str) -> Dict[str, str]:
    short = user_id[:6].upper()
    return {
        "userId": user_id,
        "username": f"Seller {short}",
        "email": f"seller-{short.lower()}@example.com",
        "firstName": "Seller",
        "lastName": f"#{short}",
        "phone": "",
    }

def get_user_attributes(
    user_id: Optional[str],
    *,
    user_pool_id: Optional[str] = None,
    client=None,
) -> Optional[Dict[str, str]]:
    """Public profile of a Cognito user.

    Unknown users and Cognito errors yield a placeholder seller identity, so
    order and sales screens can always show someone.
    """
    if not user_id:
        log.error("get_user_attributes called without a userId")
        return None

    pool_id = user_pool_id or settings.cognito_user_pool_id
    idp = client or cognito_idp_client()
    try:
        resp = idp.admin_get_user(UserPoolId=pool_id, Username=user_id)
    except (ClientError, BotoCoreError) as e:
        log.warning(f"[User: {user_id}] Cognito lookup failed, using fallback: {e}")
        return fallback_user(user_id)

    attrs = {a["Name"]: a["Value"] for a in resp.get("UserAttributes", []) if a.get("Name") and a.get("Value")}
    return {
        "userId": user_id,
        "username": resp.get("Username") or "User",
        "email": attrs.get("email", ""),
        "firstName": attrs.get("given_name", ""),
        "lastName": attrs.get("family_name", ""),
        "phone": attrs.get("phone_number", ""),
    }

def is_admin(claims: Dict[str, Any], admin_group: Optional[str] = None) -> bool:
    groups: Iterable[str] = claims.get("cognito:groups") or []
    if isinstance(groups, str):
        # API Gateway flattens list claims to "[A, B]" or "A,B"
        groups = [g.strip() for g in groups.strip("[]").split(",")]
    return (admin_group or settings.admin_group) in groups
