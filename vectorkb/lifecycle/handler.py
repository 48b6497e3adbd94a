"""Finalizer invocation entry point.

Invoked once at creation time with a no-op warm-up event, and once at
teardown time with the knowledge base to clean up.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from ..aws.client import create_boto_client
from ..models.cleanup import CleanupRequest
from .finalizer import DeletionOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
RAISE_ON_FAILURE_ENV = "VECTORKB_RAISE_ON_CLEANUP_FAILURE"


def resolve_region(request: CleanupRequest) -> str:
    return request.region or os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION


def handler(event: Optional[dict[str, Any]], context: Any = None) -> dict[str, bool]:
    """Handle a cleanup invocation.

    Args:
        event: Invocation event (knowledgeBaseId, dataSourceNamePrefix, region,
            pollSeconds, maxMinutes, or {"noop": true})
        context: Invocation context (unused)

    Returns:
        {"ok": bool}

    Raises:
        ValueError: If knowledgeBaseId is missing
    """
    logger.info(f"Cleanup event: {json.dumps(event or {}, default=str)}")
    request = CleanupRequest.from_event(event or {})

    if request.noop:
        logger.info("No-op warm-up invocation")
        return {"ok": True}

    region = resolve_region(request)
    orchestrator = DeletionOrchestrator(
        bedrock_agent=create_boto_client("bedrock-agent", region_name=region),
        raise_on_failure=os.environ.get(RAISE_ON_FAILURE_ENV, "").lower() in ("1", "true", "yes"),
    )
    report = orchestrator.run(request)
    return {"ok": report.ok}
