from __future__ import annotations
import boto3
from botocore.config import Config
from .config import settings

_session = None

def session() -> boto3.session.Session:
    global _session
    if _session is None:
        _session = boto3.session.Session(region_name=settings.aws_region)
    return _session

def dynamodb_client(region: str | None = None):
    # low-level client: safe to share across executor threads, unlike resources
    return boto3.client(
        "dynamodb",
        region_name=region or settings.aws_region,
        config=Config(retries={"max_attempts": 1, "mode": "standard"}),
    )

def cognito_idp_client(region: str | None = None):
    return boto3.client("cognito-idp", region_name=region or settings.aws_region)
