"""Provision and teardown operation models.

Records the outcome of each node during a provisioning or teardown run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .cleanup import CleanupReport, CleanupRequest
from .resource import ResourceKind


class DeletionBehavior(Enum):
    """What teardown does with the stack's resources."""

    DELETE = "DELETE"
    RETAIN = "RETAIN"


class OperationStatus(Enum):
    """Overall operation status."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    RETAINED = "retained"


class DeletionStatus(Enum):
    """Individual node deletion status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ProvisionRecord:
    """Creation outcome for one node.

    Attributes:
        node_name: Graph node name
        kind: Resource kind
        physical_id: Resolved physical id
        status: Remote status once ready, for kinds that report one (optional)
        timestamp: When the node became ready (UTC)
    """

    node_name: str
    kind: ResourceKind
    physical_id: str
    status: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ProvisionReport:
    """Outcome of a provisioning run, records in creation order.

    Attributes:
        stack_id: Stack the resources belong to
        records: Per-node outcomes
        cleanup_request: Request to hand to the finalizer at teardown time (optional)
    """

    stack_id: str
    records: list[ProvisionRecord] = field(default_factory=list)
    cleanup_request: Optional[CleanupRequest] = None

    def physical_ids(self) -> dict[str, str]:
        return {record.node_name: record.physical_id for record in self.records}


@dataclass
class TeardownRecord:
    """Deletion outcome for one node.

    Validation rules:
        - status=failed: requires error_message
        - status=skipped: requires skip_reason
    """

    node_name: str
    kind: ResourceKind
    status: DeletionStatus
    physical_id: Optional[str] = None
    error_message: Optional[str] = None
    skip_reason: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def validate(self) -> bool:
        """Validate record invariants.

        Raises:
            ValueError: If any validation rule fails
        """
        if self.status == DeletionStatus.FAILED and not self.error_message:
            raise ValueError("Failed status requires error_message")
        if self.status == DeletionStatus.SKIPPED and not self.skip_reason:
            raise ValueError("Skipped status requires skip_reason")
        return True


@dataclass
class TeardownReport:
    """Outcome of a teardown run, records in deletion order.

    Attributes:
        operation_id: Unique identifier for the run
        stack_id: Stack the resources belong to
        timestamp: When teardown started (UTC)
        records: Per-node outcomes
        cleanup: Finalizer report for the knowledge base and data source (optional)
        status: Overall status, set by finalize()
    """

    operation_id: str
    stack_id: str
    timestamp: datetime
    records: list[TeardownRecord] = field(default_factory=list)
    cleanup: Optional[CleanupReport] = None
    status: OperationStatus = OperationStatus.COMPLETED

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.SUCCEEDED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.SKIPPED)

    def finalize(self) -> OperationStatus:
        """Derive the overall status from the records."""
        if self.status == OperationStatus.RETAINED:
            return self.status
        if self.failed_count > 0:
            self.status = OperationStatus.PARTIAL if self.succeeded_count > 0 else OperationStatus.FAILED
        else:
            self.status = OperationStatus.COMPLETED
        return self.status
