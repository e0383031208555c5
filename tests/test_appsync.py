# tests/test_appsync.py
import json

import httpx
import pytest
from botocore.credentials import Credentials

from shared.appsync import AppSyncRepository, build_repository
from shared.dynamo import DynamoRepository
from shared.models import AuthMode
from shared.repository import AuthorizationError, DataAccessError, RecordNotFound


def make_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def graphql(data=None, errors=None, status=200):
    body = {"data": data}
    if errors:
        body["errors"] = errors
    return httpx.Response(status, json=body)


@pytest.mark.asyncio
async def test_api_key_mode_sends_key_header(backend_config):
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return graphql({"getListing": {"id": "L1", "status": "active"}})

    repo = AppSyncRepository(backend_config, AuthMode.API_KEY, client=make_client(handler))
    listing = await repo.get("Listing", "L1")

    assert listing == {"id": "L1", "status": "active"}
    assert seen["headers"]["x-api-key"] == "da2-testkey"
    assert "getListing(id: $id)" in seen["body"]["query"]
    assert seen["body"]["variables"] == {"id": "L1"}


@pytest.mark.asyncio
async def test_user_pool_mode_sends_id_token(backend_config):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        return graphql({"getListing": None})

    repo = AppSyncRepository(backend_config, AuthMode.USER_POOL, id_token="eyJ.token", client=make_client(handler))
    assert await repo.get("Listing", "missing") is None
    assert seen["auth"] == "eyJ.token"


@pytest.mark.asyncio
async def test_user_pool_mode_without_token_sends_nothing(backend_config):
    calls = []
    repo = AppSyncRepository(backend_config, AuthMode.USER_POOL,
                             client=make_client(lambda r: calls.append(r) or graphql({})))
    with pytest.raises(AuthorizationError):
        await repo.get("Listing", "L1")
    assert calls == []


@pytest.mark.asyncio
async def test_iam_mode_signs_request(backend_config):
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        return graphql({"getTodo": {"id": "T1", "content": "hi"}})

    creds = Credentials("AKIDEXAMPLE", "secret")
    repo = AppSyncRepository(backend_config, AuthMode.IAM, credentials=creds, client=make_client(handler))
    await repo.get("Todo", "T1")

    assert seen["headers"]["authorization"].startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
    assert "/appsync/aws4_request" in seen["headers"]["authorization"]
    assert "x-amz-date" in seen["headers"]


@pytest.mark.asyncio
async def test_list_renders_eq_filter_and_returns_token(backend_config):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return graphql({"listOrderItems": {"items": [{"id": "O1"}, None], "nextToken": "abc"}})

    repo = AppSyncRepository(backend_config, AuthMode.API_KEY, client=make_client(handler))
    page = await repo.list("OrderItem", {"listingId": "L1"}, limit=50)

    assert page.items == [{"id": "O1"}]
    assert page.next_token == "abc"
    assert seen["body"]["variables"] == {"filter": {"listingId": {"eq": "L1"}}, "limit": 50, "nextToken": None}
    assert "listOrderItems(" in seen["body"]["query"]


@pytest.mark.asyncio
async def test_list_all_walks_every_page(backend_config):
    pages = {
        None: {"items": [{"id": "O1"}], "nextToken": "t1"},
        "t1": {"items": [], "nextToken": "t2"},
        "t2": {"items": [{"id": "O2"}], "nextToken": None},
    }
    tokens = []

    def handler(request):
        token = json.loads(request.content)["variables"]["nextToken"]
        tokens.append(token)
        return graphql({"listOrderItems": pages[token]})

    repo = AppSyncRepository(backend_config, AuthMode.API_KEY, client=make_client(handler))
    items = await repo.list_all("OrderItem", {"listingId": "L1"})

    assert [i["id"] for i in items] == ["O1", "O2"]
    assert tokens == [None, "t1", "t2"]


@pytest.mark.asyncio
async def test_update_conditional_failure_is_not_found(backend_config):
    def handler(request):
        return graphql(
            {"updateListing": None},
            errors=[{"errorType": "DynamoDB:ConditionalCheckFailedException", "message": "The conditional request failed"}],
        )

    repo = AppSyncRepository(backend_config, AuthMode.API_KEY, client=make_client(handler))
    with pytest.raises(RecordNotFound):
        await repo.update("Listing", {"id": "nope", "status": "sold"})


@pytest.mark.asyncio
async def test_unauthorized_error_type(backend_config):
    def handler(request):
        return graphql(None, errors=[{"errorType": "Unauthorized", "message": "Not Authorized to access updateListing"}])

    repo = AppSyncRepository(backend_config, AuthMode.API_KEY, client=make_client(handler))
    with pytest.raises(AuthorizationError, match="Not Authorized"):
        await repo.update("Listing", {"id": "L1", "status": "sold"})


@pytest.mark.asyncio
@pytest.mark.parametrize("status, exc", [(401, AuthorizationError), (403, AuthorizationError), (500, DataAccessError)])
async def test_http_errors(backend_config, status, exc):
    repo = AppSyncRepository(backend_config, AuthMode.API_KEY,
                             client=make_client(lambda r: httpx.Response(status, json={})))
    with pytest.raises(exc):
        await repo.get("Listing", "L1")


@pytest.mark.asyncio
async def test_transport_error_becomes_data_access_error(backend_config):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    repo = AppSyncRepository(backend_config, AuthMode.API_KEY, client=make_client(handler))
    with pytest.raises(DataAccessError, match="unreachable"):
        await repo.list("Listing")


@pytest.mark.asyncio
async def test_non_json_body_becomes_data_access_error(backend_config):
    repo = AppSyncRepository(backend_config, AuthMode.API_KEY,
                             client=make_client(lambda r: httpx.Response(200, text="<html>Bad Gateway</html>")))
    with pytest.raises(DataAccessError, match="non-JSON") as excinfo:
        await repo.list("Listing", {"status": "active"})
    assert not isinstance(excinfo.value, ValueError)


@pytest.mark.asyncio
async def test_unknown_entity_rejected(backend_config):
    repo = AppSyncRepository(backend_config, AuthMode.API_KEY, client=make_client(lambda r: graphql({})))
    with pytest.raises(ValueError):
        await repo.get("Fragrance", "x")


def test_build_repository_picks_backend(backend_config):
    repo = build_repository(backend_config, "apiKey")
    assert isinstance(repo, AppSyncRepository)
    assert repo.auth_mode is AuthMode.API_KEY

    no_api = type(backend_config)(tables=backend_config.tables)
    assert isinstance(build_repository(no_api, AuthMode.IAM), DynamoRepository)


def test_unknown_auth_mode(backend_config):
    with pytest.raises(ValueError, match="unknown auth mode"):
        build_repository(backend_config, "oauth")
