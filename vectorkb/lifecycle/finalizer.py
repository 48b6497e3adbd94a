"""Deletion finalizer for knowledge bases and their data sources.

Knowledge base and data source deletion is asynchronous, and the data source
identity is not stored: it is resolved by name prefix against a live listing.
The finalizer runs a fixed state machine under one absolute deadline:

    START → RESOLVE_CHILD → AWAIT_CHILD_JOBS_IDLE → DELETE_CHILD →
    CONFIRM_CHILD_GONE → DELETE_PARENT → CONFIRM_PARENT_GONE → DONE

When the child does not resolve to exactly one data source, the child phases
are skipped and the parent is deleted directly. Any failure ends in FAILED;
by default the failure is logged and the caller still sees success.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..aws.errors import error_code, is_not_found, is_throttling
from ..models.cleanup import (
    AmbiguousMatch,
    CleanupContext,
    CleanupPhase,
    CleanupReport,
    CleanupRequest,
    MatchResult,
    NotFound,
    SingleMatch,
)
from .errors import CleanupFailedError
from .poll import DEFAULT_MAX_DELAY, PollLoop

logger = logging.getLogger(__name__)

ACTIVE_INGESTION_STATUSES = frozenset({"STARTING", "IN_PROGRESS", "STOPPING"})


class DeletionOrchestrator:
    """Teardown state machine for one knowledge base.

    Each call to run() owns its own CleanupContext and deadline; nothing is
    shared between invocations, so concurrent or repeated invocations only
    repeat idempotent calls.

    Attributes:
        bedrock_agent: boto3 "bedrock-agent" client
        raise_on_failure: Re-raise internal failures instead of reporting success
    """

    def __init__(
        self,
        bedrock_agent: Any,
        raise_on_failure: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Optional[Callable[[], float]] = None,
        max_delay: float = DEFAULT_MAX_DELAY,
    ) -> None:
        self.bedrock_agent = bedrock_agent
        self.raise_on_failure = raise_on_failure
        self.clock = clock
        self.sleep = sleep
        self.jitter = jitter
        self.max_delay = max_delay

    def run(self, request: CleanupRequest) -> CleanupReport:
        """Run the teardown sequence.

        Args:
            request: Cleanup request (knowledge base id, prefix, timing)

        Returns:
            CleanupReport; `ok` is True even when the sequence failed, unless
            raise_on_failure is set

        Raises:
            CleanupFailedError: If the sequence failed and raise_on_failure is set
        """
        report = CleanupReport(knowledge_base_id=request.knowledge_base_id)
        context = CleanupContext.create(request, self.clock)
        poll = PollLoop(
            base_delay=context.poll_interval_seconds,
            max_delay=self.max_delay,
            clock=self.clock,
            sleep=self.sleep,
            jitter=self.jitter,
        )

        logger.info(
            f"Starting cleanup for knowledge base {context.knowledge_base_id} "
            f"(prefix={context.data_source_name_prefix!r}, budget={request.max_minutes}m)"
        )
        self._enter(report, context, CleanupPhase.START)

        try:
            self._run_sequence(context, poll, report)
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            self._enter(report, context, CleanupPhase.FAILED)
            logger.error(f"Cleanup of knowledge base {context.knowledge_base_id} failed: {report.error}")
            if self.raise_on_failure:
                report.ok = False
                report.finished_at = datetime.utcnow()
                raise CleanupFailedError(context.knowledge_base_id, report.error, report=report) from e
        report.finished_at = datetime.utcnow()

        if report.completed:
            logger.info(f"Cleanup of knowledge base {context.knowledge_base_id} completed")
        return report

    def resolve_child(self, context: CleanupContext) -> MatchResult:
        """Find the data source to delete.

        With a prefix, candidates are data sources whose name starts with it;
        without one, every data source is a candidate. Only a single candidate
        is a match. A knowledge base that no longer exists has no children.
        """
        try:
            paginator = self.bedrock_agent.get_paginator("list_data_sources")
            summaries: list[dict] = []
            for page in paginator.paginate(knowledgeBaseId=context.knowledge_base_id):
                summaries.extend(page.get("dataSourceSummaries", []))
        except ClientError as e:
            if is_not_found(e):
                logger.info(f"Knowledge base {context.knowledge_base_id} not found during data source resolution")
                return NotFound()
            raise

        prefix = context.data_source_name_prefix
        if prefix:
            candidates = [s for s in summaries if (s.get("name") or "").startswith(prefix)]
        else:
            candidates = summaries

        if len(candidates) == 1:
            return SingleMatch(data_source_id=candidates[0]["dataSourceId"])
        if len(candidates) > 1:
            logger.warning(
                f"{len(candidates)} data sources match prefix {prefix!r}, skipping data source deletion"
            )
            return AmbiguousMatch(candidates=tuple(s["dataSourceId"] for s in candidates))

        logger.info(f"No data source found matching prefix {prefix!r}")
        return NotFound()

    def _run_sequence(self, context: CleanupContext, poll: PollLoop, report: CleanupReport) -> None:
        self._enter(report, context, CleanupPhase.RESOLVE_CHILD)
        match = self.resolve_child(context)
        report.match = match
        logger.info(f"Data source resolution: {match.describe()}")

        if isinstance(match, SingleMatch):
            data_source_id = match.data_source_id
            report.data_source_id = data_source_id

            self._enter(report, context, CleanupPhase.AWAIT_CHILD_JOBS_IDLE)
            poll.run(
                lambda: self._has_active_jobs(context, data_source_id),
                lambda active: not active,
                context.deadline,
                "ingestion jobs to complete",
                retry_if=is_throttling,
            )

            self._enter(report, context, CleanupPhase.DELETE_CHILD)
            self._tolerant_delete(
                "data source",
                self.bedrock_agent.delete_data_source,
                knowledgeBaseId=context.knowledge_base_id,
                dataSourceId=data_source_id,
            )

            self._enter(report, context, CleanupPhase.CONFIRM_CHILD_GONE)
            poll.run(
                lambda: self._is_gone(
                    self.bedrock_agent.get_data_source,
                    knowledgeBaseId=context.knowledge_base_id,
                    dataSourceId=data_source_id,
                ),
                bool,
                context.deadline,
                "data source deletion",
            )

        self._enter(report, context, CleanupPhase.DELETE_PARENT)
        self._tolerant_delete(
            "knowledge base",
            self.bedrock_agent.delete_knowledge_base,
            knowledgeBaseId=context.knowledge_base_id,
        )

        self._enter(report, context, CleanupPhase.CONFIRM_PARENT_GONE)
        poll.run(
            lambda: self._is_gone(self.bedrock_agent.get_knowledge_base, knowledgeBaseId=context.knowledge_base_id),
            bool,
            context.deadline,
            "knowledge base deletion",
        )

        self._enter(report, context, CleanupPhase.DONE)
        report.completed = True

    def _has_active_jobs(self, context: CleanupContext, data_source_id: str) -> bool:
        params: dict[str, Any] = {"knowledgeBaseId": context.knowledge_base_id, "dataSourceId": data_source_id}
        while True:
            try:
                response = self.bedrock_agent.list_ingestion_jobs(**params)
            except ClientError as e:
                if is_not_found(e):
                    return False
                raise

            for job in response.get("ingestionJobSummaries", []):
                if job.get("status") in ACTIVE_INGESTION_STATUSES:
                    logger.debug(f"Ingestion job {job.get('ingestionJobId')} is {job.get('status')}")
                    return True

            next_token = response.get("nextToken")
            if not next_token:
                return False
            params["nextToken"] = next_token

    def _tolerant_delete(self, label: str, method: Callable[..., Any], **params: Any) -> None:
        try:
            method(**params)
        except ClientError as e:
            if not is_not_found(e):
                raise
            logger.info(f"{label.capitalize()} deletion tolerated error: {error_code(e)}")

    def _is_gone(self, method: Callable[..., Any], **params: Any) -> bool:
        try:
            method(**params)
        except ClientError as e:
            if is_not_found(e):
                return True
            logger.info(f"Still waiting, transient error: {error_code(e)}")
            return False
        except BotoCoreError as e:
            logger.info(f"Still waiting, transient error: {e}")
            return False
        return False

    def _enter(self, report: CleanupReport, context: CleanupContext, phase: CleanupPhase) -> None:
        report.phases.append(phase)
        remaining = context.remaining(self.clock)
        logger.info(
            f"Cleanup phase: {phase.value} ({remaining:.0f}s remaining)",
            extra={
                "phase": phase.value,
                "knowledge_base_id": report.knowledge_base_id,
                "remaining_seconds": remaining,
            },
        )
