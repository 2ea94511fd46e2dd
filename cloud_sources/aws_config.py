"""
AWS configuration for the relay.

Single source of truth for AWS credentials, region, client timeouts
and session creation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import aioboto3
from aiobotocore.config import AioConfig


DEFAULT_REGION = "ap-northeast-1"


@dataclass(frozen=True)
class AWSConfig:
    """AWS configuration.

    Attributes:
        region: AWS region
        access_key_id: AWS access key ID (optional if using IAM roles)
        secret_access_key: AWS secret access key (optional if using IAM roles)
        endpoint_url: Custom endpoint for LocalStack/testing
        connect_timeout: Per-request connect timeout in seconds
        read_timeout: Per-request read timeout in seconds
    """

    region: str = DEFAULT_REGION
    access_key_id: str | None = None
    secret_access_key: str | None = None
    endpoint_url: str | None = None
    connect_timeout: float = 10.0
    read_timeout: float = 30.0

    def to_boto3_kwargs(self) -> dict[str, Any]:
        """Build kwargs dict suitable for session creation."""
        kwargs: dict[str, Any] = {"region_name": self.region}
        if self.access_key_id:
            kwargs["aws_access_key_id"] = self.access_key_id
        if self.secret_access_key:
            kwargs["aws_secret_access_key"] = self.secret_access_key
        return kwargs

    def client_kwargs(self) -> dict[str, Any]:
        """Build kwargs for session.client(): endpoint and timeouts."""
        kwargs: dict[str, Any] = {
            "config": AioConfig(
                connect_timeout=self.connect_timeout,
                read_timeout=self.read_timeout,
                retries={"total_max_attempts": 1},
            ),
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs


def aws_config_from_env() -> AWSConfig:
    """Load AWS configuration from environment variables.

    Environment variables (checked in order):
        - AWS_REGION / AWS_DEFAULT_REGION → region
        - AWS_ACCESS_KEY_ID → access_key_id
        - AWS_SECRET_ACCESS_KEY → secret_access_key
        - AWS_ENDPOINT_URL → endpoint_url (for LocalStack)
    """
    return AWSConfig(
        region=os.environ.get("AWS_REGION")
        or os.environ.get("AWS_DEFAULT_REGION")
        or DEFAULT_REGION,
        access_key_id=os.environ.get("AWS_ACCESS_KEY_ID"),
        secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY"),
        endpoint_url=os.environ.get("AWS_ENDPOINT_URL"),
    )


def get_aioboto3_session(config: AWSConfig | None = None) -> aioboto3.Session:
    """Create an aioboto3 Session with credentials from config."""
    if config is None:
        config = aws_config_from_env()
    return aioboto3.Session(**config.to_boto3_kwargs())
