"""Exceptions raised by the resource lifecycle layer."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from ..models.cleanup import CleanupReport


class LifecycleError(Exception):
    """Base class for provisioning and teardown errors."""


class GraphError(LifecycleError, ValueError):
    """Structural problem in the dependency graph, raised before any remote call."""


class CycleError(GraphError):
    """Dependency graph contains a cycle."""

    def __init__(self, nodes: Sequence[str]) -> None:
        self.nodes = list(nodes)
        super().__init__(f"Circular dependency detected between: {', '.join(self.nodes)}")


class IdentityError(LifecycleError):
    """Physical identity of a resource could not be resolved or was reassigned."""


class ProvisioningError(LifecycleError):
    """A resource reached a terminal failure state during creation."""


class PollTimeoutError(LifecycleError, TimeoutError):
    """A poll loop reached its deadline before its condition held."""

    def __init__(self, description: str) -> None:
        self.description = description
        super().__init__(f"Timeout waiting for {description}")


class CleanupFailedError(LifecycleError):
    """Teardown sequence failed and the caller asked for the failure to surface."""

    def __init__(
        self,
        knowledge_base_id: str,
        reason: Optional[str] = None,
        report: Optional[CleanupReport] = None,
    ) -> None:
        self.knowledge_base_id = knowledge_base_id
        self.reason = reason
        self.report = report
        message = f"Cleanup of knowledge base {knowledge_base_id} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
