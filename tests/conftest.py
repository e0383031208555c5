# tests/conftest.py
import pytest

from shared.config import BackendConfig
from shared.models import AuthMode
from mocks.memory_repository import InMemoryRepository


@pytest.fixture
def backend_config():
    """Backend configuration pointing at a fake data API endpoint"""
    return BackendConfig(
        region="us-west-2",
        graphql_url="https://example.appsync-api.us-west-2.amazonaws.com/graphql",
        api_key="da2-testkey",
        default_auth_mode=AuthMode.USER_POOL,
        tables={
            "Listing": "test_listing",
            "OrderItem": "test_order_item",
            "Order": "test_order",
            "Todo": "test_todo",
        },
    )


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def marketplace(repo):
    """Listing L1 with two order items, listing L2 with one, and an unpaid order"""
    repo.seed(
        "Listing",
        {"id": "L1", "sellerId": "seller-1", "status": "active"},
        {"id": "L2", "sellerId": "seller-2", "status": "active"},
        {"id": "L3", "sellerId": "seller-1", "status": "active"},
    )
    repo.seed(
        "OrderItem",
        {"id": "O1", "orderId": "ORD1", "listingId": "L1", "status": "unconfirmed"},
        {"id": "O2", "orderId": "ORD2", "listingId": "L2", "status": "unconfirmed"},
        {"id": "O3", "orderId": "ORD3", "listingId": "L1", "status": "unconfirmed"},
    )
    repo.seed(
        "Order",
        {"id": "ORD1", "buyerId": "buyer-1", "orderStatus": "pending", "paymentStatus": "awaiting_payment"},
        {"id": "ORD2", "buyerId": "buyer-2", "orderStatus": "pending", "paymentStatus": "paid"},
    )
    return repo
