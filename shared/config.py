from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Dict, Optional
from dotenv import load_dotenv

from .models import AuthMode

load_dotenv()

@dataclass(frozen=True)
class BackendConfig:
    """Everything a repository needs to reach the managed data backend.

    Built from ``Settings`` in the app, or directly in tests so several
    configurations can live side by side.
    """
    region: str = "us-west-2"
    graphql_url: str = ""
    api_key: str = ""
    default_auth_mode: AuthMode = AuthMode.USER_POOL
    tables: Dict[str, str] = field(default_factory=dict)
    http_timeout: float = 10.0

    def table_for(self, entity: str) -> str:
        try:
            return self.tables[entity]
        except KeyError:
            raise KeyError(f"no table configured for entity {entity!r}") from None

@dataclass(frozen=True)
class Settings:
    aws_region: str = os.getenv("AWS_REGION", "us-west-2")
    account_id: str = os.getenv("AWS_ACCOUNT_ID", "")
    stage: str = os.getenv("STAGE", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Data API (AppSync)
    appsync_url: str = os.getenv("APPSYNC_URL", "")
    appsync_api_key: str = os.getenv("APPSYNC_API_KEY", "")
    default_auth_mode: str = os.getenv("DEFAULT_AUTH_MODE", AuthMode.API_KEY.value)
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "10"))

    # DynamoDB
    ddb_listing: str = os.getenv("DDB_TABLE_LISTING", "scentra_listing_dev")
    ddb_order_item: str = os.getenv("DDB_TABLE_ORDER_ITEM", "scentra_order_item_dev")
    ddb_order: str = os.getenv("DDB_TABLE_ORDER", "scentra_order_dev")
    ddb_todo: str = os.getenv("DDB_TABLE_TODO", "scentra_todo_dev")

    # Auth
    auth_bypass: bool = os.getenv("AUTH_BYPASS", "true").lower() == "true"
    cognito_user_pool_id: str = os.getenv("COGNITO_USER_POOL_ID", "")
    cognito_client_id: str = os.getenv("COGNITO_CLIENT_ID", "")
    admin_group: str = os.getenv("ADMIN_GROUP", "ADMINS")

    def __post_init__(self):
        # bypassed users carry no ID token
        if self.auth_bypass and AuthMode.parse(self.default_auth_mode) is AuthMode.USER_POOL:
            raise ValueError("AUTH_BYPASS=true needs DEFAULT_AUTH_MODE apiKey or iam, not userPool")

    def backend(self, auth_mode: Optional[AuthMode] = None) -> BackendConfig:
        return BackendConfig(
            region=self.aws_region,
            graphql_url=self.appsync_url,
            api_key=self.appsync_api_key,
            default_auth_mode=auth_mode or AuthMode.parse(self.default_auth_mode),
            tables={
                "Listing": self.ddb_listing,
                "OrderItem": self.ddb_order_item,
                "Order": self.ddb_order,
                "Todo": self.ddb_todo,
            },
            http_timeout=self.http_timeout,
        )

settings = Settings()
