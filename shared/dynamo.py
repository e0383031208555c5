from __future__ import annotations
import asyncio, base64, json, uuid
from datetime import datetime, timezone
from decimal import Decimal
from functools import partial
from typing import Dict, Any, Optional

from boto3.dynamodb.conditions import Attr, Key, ConditionExpressionBuilder
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError, BotoCoreError

from .aws import dynamodb_client
from .config import BackendConfig
from .models import AuthMode, Page
from .repository import Repository, DataAccessError, RecordNotFound, AuthorizationError, check_entity

_DENIED = {"AccessDeniedException", "UnrecognizedClientException"}
_ser = TypeSerializer()
_deser = TypeDeserializer()

# (entity, attribute) -> GSI that can answer an equality filter on it
INDEXES = {("OrderItem", "listingId"): "byListing"}

def new_id() -> str:
    return str(uuid.uuid4())

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

def _to_jsonable(x):
    if isinstance(x, list):  return [_to_jsonable(v) for v in x]
    if isinstance(x, dict):  return {k: _to_jsonable(v) for k, v in x.items()}
    if isinstance(x, Decimal):
        return int(x) if x == x.to_integral_value() else float(x)
    return x

def _to_dynamo(x):
    if isinstance(x, float): return Decimal(str(x))
    if isinstance(x, dict):  return {k: _to_dynamo(v) for k, v in x.items()}
    if isinstance(x, list):  return [_to_dynamo(v) for v in x]
    return x

def _wire(value) -> Dict[str, Any]:
    return _ser.serialize(_to_dynamo(value))

def _item(record: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _wire(v) for k, v in record.items()}

def _plain(item: Dict[str, Any]) -> Dict[str, Any]:
    return _to_jsonable({k: _deser.deserialize(v) for k, v in item.items()})

def encode_token(d: Optional[Dict[str, Any]]) -> Optional[str]:
    if not d: return None
    return base64.urlsafe_b64encode(json.dumps(_to_jsonable(d)).encode()).decode()

def decode_token(s: Optional[str]) -> Optional[Dict[str, Any]]:
    if not s: return None
    try:
        return json.loads(base64.urlsafe_b64decode(s.encode()).decode())
    except (ValueError, UnicodeDecodeError):
        raise ValueError("invalid page token") from None

def _filter_condition(filter: Optional[Dict[str, Any]]):
    fe = None
    for name, value in (filter or {}).items():
        cond = Attr(name).eq(value)
        fe = cond if fe is None else fe & cond
    return fe

def _translate(entity: str, e: Exception) -> DataAccessError:
    if isinstance(e, ClientError):
        code = e.response.get("Error", {}).get("Code", "")
        if code in _DENIED:
            return AuthorizationError(f"{entity}: {code}")
        return DataAccessError(f"{entity}: {code or e}")
    return DataAccessError(f"{entity}: {e}")

class DynamoRepository(Repository):
    """Direct table access with the process' own AWS credentials (IAM).

    boto3 is blocking, so every call is pushed to the default executor. All
    threads share one low-level client; items go over the wire in DynamoDB's
    typed JSON and are converted at this boundary.
    """
    auth_mode = AuthMode.IAM

    def __init__(self, config: BackendConfig, client=None):
        self.config = config
        self._client = client or dynamodb_client(config.region)

    def _table_name(self, entity: str) -> str:
        check_entity(entity)
        return self.config.table_for(entity)

    async def _call(self, entity: str, fn, **kwargs):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, **kwargs))
        except (ClientError, BotoCoreError) as e:
            raise _translate(entity, e) from e

    async def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        table = self._table_name(entity)
        r = await self._call(entity, self._client.get_item, TableName=table, Key={"id": _wire(record_id)})
        item = r.get("Item")
        return _plain(item) if item else None

    async def list(self, entity, filter=None, *, limit=None, next_token=None) -> Page:
        table = self._table_name(entity)
        filt = dict(filter or {})
        kwargs: Dict[str, Any] = {"TableName": table}
        op = self._client.scan
        builder = ConditionExpressionBuilder()
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}

        def add(param: str, cond, is_key: bool):
            built = builder.build_expression(cond, is_key_condition=is_key)
            kwargs[param] = built.condition_expression
            names.update(built.attribute_name_placeholders)
            values.update({k: _wire(v) for k, v in built.attribute_value_placeholders.items()})

        index = next(((k, INDEXES[(entity, k)]) for k in filt if (entity, k) in INDEXES), None)
        if index:
            key, index_name = index
            op = self._client.query
            kwargs["IndexName"] = index_name
            add("KeyConditionExpression", Key(key).eq(filt.pop(key)), True)

        fe = _filter_condition(filt)
        if fe is not None:
            add("FilterExpression", fe, False)
        if names:
            kwargs["ExpressionAttributeNames"] = names
            kwargs["ExpressionAttributeValues"] = values
        if limit:
            kwargs["Limit"] = limit
        cursor = decode_token(next_token)
        if cursor:
            kwargs["ExclusiveStartKey"] = cursor

        resp = await self._call(entity, op, **kwargs)
        return Page(
            items=[_plain(i) for i in resp.get("Items", [])],
            next_token=encode_token(resp.get("LastEvaluatedKey")),
        )

    async def update(self, entity: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        table = self._table_name(entity)
        values = dict(fields)
        record_id = values.pop("id", None)
        if not record_id:
            raise ValueError("update requires an id")
        values.setdefault("updatedAt", _now_iso())

        names = {f"#f{i}": k for i, k in enumerate(values)}
        expr = ", ".join(f"#f{i} = :v{i}" for i in range(len(values)))
        try:
            r = await self._call(
                entity, self._client.update_item,
                TableName=table,
                Key={"id": _wire(record_id)},
                UpdateExpression=f"SET {expr}",
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues={f":v{i}": _wire(v) for i, v in enumerate(values.values())},
                ReturnValues="ALL_NEW",
            )
        except DataAccessError as e:
            cause = e.__cause__
            if isinstance(cause, ClientError) and \
                    cause.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise RecordNotFound(entity, record_id) from cause
            raise
        return _plain(r.get("Attributes", {}))

    async def create(self, entity: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        table = self._table_name(entity)
        now = _now_iso()
        item = {"id": new_id(), "createdAt": now, "updatedAt": now, **fields}
        await self._call(entity, self._client.put_item, TableName=table, Item=_item(item))
        return item
