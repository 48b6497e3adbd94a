"""boto3 client factory."""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

logger = logging.getLogger(__name__)

# Control-plane calls are retried by the lifecycle layer with its own deadline,
# so botocore only gets a small number of standard retries.
DEFAULT_BOTO_CONFIG = BotoConfig(retries={"max_attempts": 3, "mode": "standard"})


def create_boto_client(
    service_name: str,
    region_name: Optional[str] = None,
    profile_name: Optional[str] = None,
    config: Optional[BotoConfig] = None,
) -> Any:
    """Create a boto3 client for a service.

    Args:
        service_name: AWS service name (e.g., "s3vectors", "bedrock-agent")
        region_name: AWS region (optional, falls back to session default)
        profile_name: AWS profile name (optional)
        config: botocore client config (default: standard retry mode)

    Returns:
        boto3 client instance
    """
    session = boto3.Session(profile_name=profile_name, region_name=region_name)
    logger.debug(f"Creating {service_name} client (region={session.region_name}, profile={profile_name})")
    return session.client(service_name, config=config or DEFAULT_BOTO_CONFIG)
