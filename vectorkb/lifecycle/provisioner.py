"""Stack provisioner.

Creates the graph's nodes in creation order, waiting for each to become ready
before its dependents start, and tears them down in the exact reverse order.
The knowledge base and data source are handed to the deletion finalizer;
vector indexes and buckets are deleted directly.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Optional

from botocore.exceptions import ClientError

from ..aws.errors import error_code, is_throttling
from ..models.cleanup import DEFAULT_MAX_MINUTES, DEFAULT_POLL_SECONDS, CleanupReport, CleanupRequest, SingleMatch
from ..models.operation import (
    DeletionBehavior,
    DeletionStatus,
    OperationStatus,
    ProvisionRecord,
    ProvisionReport,
    TeardownRecord,
    TeardownReport,
)
from ..models.resource import ResourceKind, ResourceNode
from .client import NOT_FOUND, RemoteResourceClient, RemoteState
from .errors import CleanupFailedError, ProvisioningError
from .finalizer import DeletionOrchestrator
from .graph import DependencyGraph
from .poll import PollLoop

logger = logging.getLogger(__name__)

# Kinds whose deletion is asynchronous and handled by the finalizer
FINALIZER_KINDS = frozenset({ResourceKind.KNOWLEDGE_BASE, ResourceKind.DATA_SOURCE})

READY_STATUSES = {
    ResourceKind.KNOWLEDGE_BASE: frozenset({"ACTIVE"}),
    ResourceKind.DATA_SOURCE: frozenset({"AVAILABLE"}),
}

FAILED_STATUSES = {
    ResourceKind.KNOWLEDGE_BASE: frozenset({"FAILED", "DELETE_UNSUCCESSFUL"}),
    ResourceKind.DATA_SOURCE: frozenset({"DELETE_UNSUCCESSFUL"}),
}


class StackProvisioner:
    """Runs creation and teardown over a dependency graph.

    Attributes:
        graph: Dependency graph of the stack's resource nodes
        client: Remote resource client
        orchestrator: Deletion finalizer for knowledge base and data source
        stack_id: Stack identifier used in reports
        deletion_behavior: DELETE or RETAIN
        poll_seconds: Base polling interval in seconds
        max_minutes: Time budget for a provisioning or teardown run
    """

    def __init__(
        self,
        graph: DependencyGraph,
        client: RemoteResourceClient,
        orchestrator: DeletionOrchestrator,
        stack_id: str = "",
        deletion_behavior: DeletionBehavior = DeletionBehavior.DELETE,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
        max_minutes: float = DEFAULT_MAX_MINUTES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Optional[Callable[[], float]] = None,
    ) -> None:
        self.graph = graph
        self.client = client
        self.orchestrator = orchestrator
        self.stack_id = stack_id
        self.deletion_behavior = deletion_behavior
        self.poll_seconds = poll_seconds
        self.max_minutes = max_minutes
        self.clock = clock
        self.sleep = sleep
        self.jitter = jitter

    def provision(self) -> ProvisionReport:
        """Create every node in creation order.

        Returns:
            ProvisionReport with one record per node and the teardown request

        Raises:
            CycleError: If the graph is cyclic (before any remote call)
            ProvisioningError: If a resource reaches a failed state
            PollTimeoutError: If a resource is not ready before the deadline
            ClientError: For non-tolerated remote errors
        """
        order = self.graph.creation_order()
        poll = self._poll_loop()
        deadline = self.clock() + self.max_minutes * 60
        report = ProvisionReport(stack_id=self.stack_id)

        for node in order:
            logger.info(f"Creating {node.kind.value} '{node.name}'")
            physical_id = self.client.create(node)
            state = poll.run(
                lambda: self.client.get(node),
                lambda result: self._is_ready(node, result),
                deadline,
                f"{node.kind.value} '{node.name}' to become ready",
                retry_if=is_throttling,
            )
            report.records.append(
                ProvisionRecord(
                    node_name=node.name,
                    kind=node.kind,
                    physical_id=physical_id,
                    status=state.get("status") if isinstance(state, dict) else None,
                )
            )

        report.cleanup_request = self.cleanup_request()
        logger.info(f"Provisioned {len(report.records)} resource(s) for stack {self.stack_id}")
        return report

    def teardown(self) -> TeardownReport:
        """Delete every node in the exact reverse of creation order.

        Once a node cannot be confirmed deleted, the nodes after it are skipped,
        since they are what it depends on. A finalizer told to raise on failure
        still yields a full report; its failure shows up as FAILED records.

        Raises:
            CycleError: If the graph is cyclic (before any remote call)
            CleanupFailedError: If the finalizer raised without a report
        """
        order = self.graph.deletion_order()
        report = TeardownReport(
            operation_id=f"td_{uuid.uuid4()}",
            stack_id=self.stack_id,
            timestamp=datetime.utcnow(),
        )

        if self.deletion_behavior == DeletionBehavior.RETAIN:
            logger.warning(f"Deletion behavior is RETAIN, leaving all resources of stack {self.stack_id} in place")
            for node in order:
                report.records.append(
                    TeardownRecord(
                        node_name=node.name,
                        kind=node.kind,
                        status=DeletionStatus.SKIPPED,
                        physical_id=node.physical_id,
                        skip_reason="deletion behavior RETAIN",
                    )
                )
            report.status = OperationStatus.RETAINED
            return report

        poll = self._poll_loop()
        deadline = self.clock() + self.max_minutes * 60
        blocked_by: Optional[str] = None
        finalized = False

        for node in order:
            if blocked_by is not None and node.kind not in FINALIZER_KINDS:
                record = TeardownRecord(
                    node_name=node.name,
                    kind=node.kind,
                    status=DeletionStatus.SKIPPED,
                    physical_id=node.physical_id,
                    skip_reason=f"blocked by {blocked_by}",
                )
            elif node.kind in FINALIZER_KINDS:
                if not finalized:
                    try:
                        report.cleanup = self._run_finalizer()
                    except CleanupFailedError as e:
                        logger.error(f"Finalizer for stack {self.stack_id} failed: {e}")
                        report.cleanup = e.report
                        if report.cleanup is None:
                            raise
                    finalized = True
                record = self._finalizer_record(node, report.cleanup)
            else:
                record = self._delete_node(node, poll, deadline)

            if record.status == DeletionStatus.FAILED and blocked_by is None:
                blocked_by = node.name
            report.records.append(record)

        report.finalize()
        logger.info(
            f"Teardown {report.operation_id}: {report.status.value} "
            f"({report.succeeded_count} deleted, {report.failed_count} failed, {report.skipped_count} skipped)"
        )
        return report

    def cleanup_request(self) -> Optional[CleanupRequest]:
        """Finalizer request for this stack, or None before the knowledge base has an id."""
        knowledge_base = self._first_of_kind(ResourceKind.KNOWLEDGE_BASE)
        if knowledge_base is None or knowledge_base.physical_id is None:
            return None
        data_source = self._first_of_kind(ResourceKind.DATA_SOURCE)
        return CleanupRequest(
            knowledge_base_id=knowledge_base.physical_id,
            data_source_name_prefix=data_source.spec.name if data_source else None,  # type: ignore[union-attr]
            poll_seconds=self.poll_seconds,
            max_minutes=self.max_minutes,
        )

    def _run_finalizer(self) -> Optional[CleanupReport]:
        knowledge_base = self._first_of_kind(ResourceKind.KNOWLEDGE_BASE)
        if knowledge_base is None:
            return None

        knowledge_base_id = self.client.lookup(knowledge_base)
        if knowledge_base_id is None:
            logger.info(f"Knowledge base '{knowledge_base.name}' not found, nothing to finalize")
            return None
        knowledge_base.assign_physical_id(knowledge_base_id)

        request = self.cleanup_request()
        assert request is not None
        return self.orchestrator.run(request)

    def _finalizer_record(self, node: ResourceNode, cleanup: Optional[CleanupReport]) -> TeardownRecord:
        if cleanup is None:
            return TeardownRecord(
                node_name=node.name,
                kind=node.kind,
                status=DeletionStatus.SKIPPED,
                skip_reason="not found",
            )

        if node.kind == ResourceKind.DATA_SOURCE:
            physical_id = cleanup.data_source_id
            skipped = cleanup.match is not None and not isinstance(cleanup.match, SingleMatch)
        else:
            physical_id = cleanup.knowledge_base_id
            skipped = False

        if skipped:
            return TeardownRecord(
                node_name=node.name,
                kind=node.kind,
                status=DeletionStatus.SKIPPED,
                physical_id=physical_id,
                skip_reason=cleanup.match.describe() if cleanup.match else "unresolved",
            )
        if cleanup.completed:
            return TeardownRecord(
                node_name=node.name,
                kind=node.kind,
                status=DeletionStatus.SUCCEEDED,
                physical_id=physical_id,
            )
        return TeardownRecord(
            node_name=node.name,
            kind=node.kind,
            status=DeletionStatus.FAILED,
            physical_id=physical_id,
            error_message=cleanup.error or "cleanup did not complete",
        )

    def _delete_node(self, node: ResourceNode, poll: PollLoop, deadline: float) -> TeardownRecord:
        physical_id = self.client.lookup(node)
        if physical_id is None:
            return TeardownRecord(
                node_name=node.name,
                kind=node.kind,
                status=DeletionStatus.SKIPPED,
                skip_reason="not found",
            )
        node.assign_physical_id(physical_id)

        try:
            self.client.delete(node)
            poll.run(
                lambda: self.client.get(node),
                lambda state: state is NOT_FOUND,
                deadline,
                f"{node.kind.value} '{node.name}' deletion",
                retry_if=is_throttling,
            )
        except (ClientError, TimeoutError) as e:
            message = f"{error_code(e)}: {e}" if isinstance(e, ClientError) else str(e)
            logger.error(f"Failed to delete {node.kind.value} '{node.name}': {message}")
            return TeardownRecord(
                node_name=node.name,
                kind=node.kind,
                status=DeletionStatus.FAILED,
                physical_id=physical_id,
                error_message=message,
            )

        logger.info(f"Deleted {node.kind.value} '{node.name}'")
        return TeardownRecord(
            node_name=node.name,
            kind=node.kind,
            status=DeletionStatus.SUCCEEDED,
            physical_id=physical_id,
        )

    def _is_ready(self, node: ResourceNode, state: RemoteState) -> bool:
        if state is NOT_FOUND:
            return False
        status = state.get("status")  # type: ignore[union-attr]
        if status in FAILED_STATUSES.get(node.kind, frozenset()):
            reasons = "; ".join(state.get("failureReasons", []))  # type: ignore[union-attr]
            raise ProvisioningError(f"{node.kind.value} '{node.name}' is {status}: {reasons or 'no reason given'}")
        ready = READY_STATUSES.get(node.kind)
        return ready is None or status in ready

    def _first_of_kind(self, kind: ResourceKind) -> Optional[ResourceNode]:
        for node in self.graph.nodes:
            if node.kind == kind:
                return node
        return None

    def _poll_loop(self) -> PollLoop:
        return PollLoop(base_delay=self.poll_seconds, clock=self.clock, sleep=self.sleep, jitter=self.jitter)
