from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from fastapi import Header, HTTPException
from jose import JWTError, jwt

from shared.config import settings

DEV_USER_ID = "user_dev_001"

_jwks: Optional[Dict[str, Any]] = None

@dataclass
class CurrentUser:
    user_id: str
    claims: Dict[str, Any] = field(default_factory=dict)
    id_token: Optional[str] = None

def _issuer() -> str:
    return f"https://cognito-idp.{settings.aws_region}.amazonaws.com/{settings.cognito_user_pool_id}"

def _get_jwks() -> Dict[str, Any]:
    global _jwks
    if _jwks is None:
        resp = httpx.get(f"{_issuer()}/.well-known/jwks.json", timeout=5.0)
        resp.raise_for_status()
        _jwks = resp.json()
    return _jwks

def verify_id_token(token: str) -> Dict[str, Any]:
    claims = jwt.decode(
        token, _get_jwks(), algorithms=["RS256"],
        audience=settings.cognito_client_id, issuer=_issuer(),
        options={"verify_at_hash": False},
    )
    if claims.get("token_use") != "id":
        raise JWTError("not an ID token")
    return claims

def get_current_user(authorization: Optional[str] = Header(None)) -> CurrentUser:
    # Local development: no Cognito, a fixed admin user
    if settings.auth_bypass:
        return CurrentUser(DEV_USER_ID, {"sub": DEV_USER_ID, "cognito:groups": [settings.admin_group]})

    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    token = authorization[7:] if authorization.lower().startswith("bearer ") else authorization
    try:
        claims = verify_id_token(token.strip())
    except (JWTError, httpx.HTTPError) as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")
    return CurrentUser(claims.get("cognito:username") or claims["sub"], claims, token.strip())
