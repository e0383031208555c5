"""GraphQL client for the hosted data API (AppSync).

Speaks the query/mutation shapes the managed backend generates for each
model: ``getListing``, ``listListings(filter, limit, nextToken)``,
``updateListing(input)``, ``createListing(input)`` and so on.

Three authorization modes are supported:

    userPool  the caller's Cognito ID token in ``Authorization``
    apiKey    the static key in ``x-api-key``
    iam       a SigV4 signature made with the process' AWS credentials
"""
from __future__ import annotations
import json
from typing import Dict, Any, List, Optional

import httpx
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest

from .aws import session
from .config import BackendConfig
from .models import AuthMode, Page
from .repository import Repository, DataAccessError, RecordNotFound, AuthorizationError, check_entity

FIELDS: Dict[str, List[str]] = {
    "Listing": [
        "id", "sellerId", "fragranceId", "bottleSize", "condition", "percentRemaining",
        "hasOriginalBox", "askingPrice", "imageKey", "status", "createdAt", "updatedAt",
    ],
    "OrderItem": ["id", "orderId", "listingId", "sellerId", "price", "status", "createdAt", "updatedAt"],
    "Order": ["id", "buyerId", "orderStatus", "paymentStatus", "createdAt", "updatedAt"],
    "Todo": ["id", "content", "createdAt", "updatedAt"],
}

def _selection(entity: str) -> str:
    return " ".join(FIELDS[entity])

def _plural(entity: str) -> str:
    return entity + "s"

def _gql_filter(filter: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not filter:
        return None
    return {k: {"eq": v} for k, v in filter.items()}

class AppSyncRepository(Repository):
    def __init__(
        self,
        config: BackendConfig,
        auth_mode: AuthMode | str | None = None,
        *,
        id_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        credentials=None,
    ):
        if not config.graphql_url:
            raise ValueError("BackendConfig.graphql_url is not set")
        self.config = config
        self.auth_mode = AuthMode.parse(auth_mode or config.default_auth_mode)
        self._id_token = id_token
        self._credentials = credentials
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(config.http_timeout))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _auth_headers(self, body: bytes) -> Dict[str, str]:
        if self.auth_mode is AuthMode.API_KEY:
            if not self.config.api_key:
                raise AuthorizationError("apiKey mode requires an API key")
            return {"x-api-key": self.config.api_key}
        if self.auth_mode is AuthMode.USER_POOL:
            if not self._id_token:
                raise AuthorizationError("userPool mode requires a signed-in user's ID token")
            return {"Authorization": self._id_token}

        creds = self._credentials or session().get_credentials()
        if creds is None:
            raise AuthorizationError("iam mode requires AWS credentials")
        req = AWSRequest(
            method="POST", url=self.config.graphql_url, data=body,
            headers={"Content-Type": "application/json"},
        )
        SigV4Auth(creds, "appsync", self.config.region).add_auth(req)
        return {k: v for k, v in req.headers.items() if k.lower() != "content-type"}

    async def execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        body = json.dumps({"query": query, "variables": variables}).encode()
        headers = {"Content-Type": "application/json", **self._auth_headers(body)}
        try:
            resp = await self._client.post(self.config.graphql_url, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise DataAccessError(f"data API unreachable: {e}") from e

        if resp.status_code in (401, 403):
            raise AuthorizationError(f"data API refused {self.auth_mode.value} credentials (HTTP {resp.status_code})")
        if resp.status_code >= 400:
            raise DataAccessError(f"data API returned HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise DataAccessError(f"data API returned a non-JSON body (HTTP {resp.status_code})") from e
        errors = payload.get("errors") or []
        if errors:
            first = errors[0]
            kind = first.get("errorType") or ""
            message = first.get("message") or kind or "unknown error"
            if kind.startswith("Unauthorized"):
                raise AuthorizationError(message)
            err = DataAccessError(message)
            err.error_type = kind
            raise err
        return payload.get("data") or {}

    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        check_entity(entity)
        q = f"query Get($id: ID!) {{ get{entity}(id: $id) {{ {_selection(entity)} }} }}"
        data = await self.execute(q, {"id": record_id})
        return data.get(f"get{entity}")

    async def list(self, entity, filter=None, *, limit=None, next_token=None) -> Page:
        check_entity(entity)
        name = f"list{_plural(entity)}"
        q = (
            f"query List($filter: Model{entity}FilterInput, $limit: Int, $nextToken: String) "
            f"{{ {name}(filter: $filter, limit: $limit, nextToken: $nextToken) "
            f"{{ items {{ {_selection(entity)} }} nextToken }} }}"
        )
        data = await self.execute(q, {"filter": _gql_filter(filter), "limit": limit, "nextToken": next_token})
        conn = data.get(name) or {}
        return Page(items=[i for i in conn.get("items") or [] if i], next_token=conn.get("nextToken"))

    async def update(self, entity: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        check_entity(entity)
        if not fields.get("id"):
            raise ValueError("update requires an id")
        q = (
            f"mutation Update($input: Update{entity}Input!) "
            f"{{ update{entity}(input: $input) {{ {_selection(entity)} }} }}"
        )
        try:
            data = await self.execute(q, {"input": fields})
        except DataAccessError as e:
            if "ConditionalCheckFailed" in getattr(e, "error_type", ""):
                raise RecordNotFound(entity, fields["id"]) from e
            raise
        record = data.get(f"update{entity}")
        if record is None:
            raise RecordNotFound(entity, fields["id"])
        return record

    async def create(self, entity: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        check_entity(entity)
        q = (
            f"mutation Create($input: Create{entity}Input!) "
            f"{{ create{entity}(input: $input) {{ {_selection(entity)} }} }}"
        )
        data = await self.execute(q, {"input": fields})
        record = data.get(f"create{entity}")
        if record is None:
            raise DataAccessError(f"create{entity} returned no data")
        return record

def build_repository(
    config: BackendConfig,
    auth_mode: AuthMode | str | None = None,
    *,
    id_token: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Repository:
    """Repository for ``auth_mode``.

    Without a GraphQL endpoint, ``iam`` falls back to direct table access.
    """
    mode = AuthMode.parse(auth_mode or config.default_auth_mode)
    if mode is AuthMode.IAM and not config.graphql_url:
        from .dynamo import DynamoRepository
        return DynamoRepository(config)
    return AppSyncRepository(config, mode, id_token=id_token, client=client)
