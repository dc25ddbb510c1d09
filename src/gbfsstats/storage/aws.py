"""
boto3 client factories.

Every AWS client is built here with the same botocore `Config` so store and gateway calls
carry the timeouts from `storage.*_timeout_seconds`. Callers construct clients once per
process and pass them into component constructors.
"""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from gbfsstats.config.settings import Settings


def boto_config(settings: Settings) -> Config:
    return Config(
        region_name=settings.storage.region,
        connect_timeout=settings.storage.connect_timeout_seconds,
        read_timeout=settings.storage.read_timeout_seconds,
        retries={"max_attempts": 3, "mode": "standard"},
    )


def dynamodb_resource(settings: Settings) -> Any:
    return boto3.resource("dynamodb", config=boto_config(settings))


def s3_client(settings: Settings) -> Any:
    return boto3.client("s3", config=boto_config(settings))


def management_api_client(settings: Settings, endpoint_url: str) -> Any:
    """API Gateway management client for pushing to WebSocket connections."""
    return boto3.client("apigatewaymanagementapi", endpoint_url=endpoint_url, config=boto_config(settings))


def management_endpoint(domain_name: str, stage: str) -> str:
    return f"https://{domain_name}/{stage}"
