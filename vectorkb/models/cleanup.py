"""Cleanup (teardown finalizer) models.

The finalizer receives a CleanupRequest, builds one CleanupContext per
invocation, resolves the data source into a MatchResult and reports the
states it visited in a CleanupReport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Union

DEFAULT_POLL_SECONDS = 5.0
DEFAULT_MAX_MINUTES = 15.0


class CleanupPhase(Enum):
    """States of the deletion finalizer.

    State transitions:
        start → resolve-child → await-child-jobs-idle → delete-child →
        confirm-child-gone → delete-parent → confirm-parent-gone → done
        resolve-child → delete-parent (no unique child)
        any → failed (deadline exhausted or non-tolerated error)
    """

    START = "start"
    RESOLVE_CHILD = "resolve-child"
    AWAIT_CHILD_JOBS_IDLE = "await-child-jobs-idle"
    DELETE_CHILD = "delete-child"
    CONFIRM_CHILD_GONE = "confirm-child-gone"
    DELETE_PARENT = "delete-parent"
    CONFIRM_PARENT_GONE = "confirm-parent-gone"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CleanupRequest:
    """Inbound finalizer invocation.

    Attributes:
        knowledge_base_id: Knowledge base to delete (required unless noop)
        data_source_name_prefix: Prefix used to find the data source (optional)
        region: AWS region (optional, defaults from environment)
        poll_seconds: Base polling interval in seconds (default: 5)
        max_minutes: Total time budget for the teardown in minutes (default: 15)
        noop: Creation-time warm-up invocation, does nothing
    """

    knowledge_base_id: str = ""
    data_source_name_prefix: Optional[str] = None
    region: Optional[str] = None
    poll_seconds: float = DEFAULT_POLL_SECONDS
    max_minutes: float = DEFAULT_MAX_MINUTES
    noop: bool = False

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> CleanupRequest:
        """Parse an invocation event.

        Args:
            event: Event dictionary (camelCase keys)

        Returns:
            CleanupRequest

        Raises:
            ValueError: If knowledgeBaseId is missing on a non-noop event,
                or pollSeconds/maxMinutes are not positive
        """
        noop = bool(event.get("noop", False))
        knowledge_base_id = event.get("knowledgeBaseId") or ""
        if not noop and not knowledge_base_id:
            raise ValueError("knowledgeBaseId is required")

        poll_seconds = float(event.get("pollSeconds") or DEFAULT_POLL_SECONDS)
        max_minutes = float(event.get("maxMinutes") or DEFAULT_MAX_MINUTES)
        if poll_seconds <= 0 or max_minutes <= 0:
            raise ValueError("pollSeconds and maxMinutes must be positive")

        return cls(
            knowledge_base_id=knowledge_base_id,
            data_source_name_prefix=event.get("dataSourceNamePrefix") or None,
            region=event.get("region") or None,
            poll_seconds=poll_seconds,
            max_minutes=max_minutes,
            noop=noop,
        )

    def to_event(self) -> dict[str, Any]:
        """Serialize back to the invocation event shape."""
        if self.noop:
            return {"noop": True}
        event: dict[str, Any] = {
            "knowledgeBaseId": self.knowledge_base_id,
            "pollSeconds": self.poll_seconds,
            "maxMinutes": self.max_minutes,
        }
        if self.data_source_name_prefix:
            event["dataSourceNamePrefix"] = self.data_source_name_prefix
        if self.region:
            event["region"] = self.region
        return event


@dataclass(frozen=True)
class CleanupContext:
    """Per-invocation teardown context.

    The deadline is absolute (on the orchestrator's monotonic clock) and is
    shared by every wait in the invocation.
    """

    knowledge_base_id: str
    data_source_name_prefix: Optional[str]
    poll_interval_seconds: float
    deadline: float

    @classmethod
    def create(cls, request: CleanupRequest, clock: Callable[[], float]) -> CleanupContext:
        return cls(
            knowledge_base_id=request.knowledge_base_id,
            data_source_name_prefix=request.data_source_name_prefix,
            poll_interval_seconds=request.poll_seconds,
            deadline=clock() + request.max_minutes * 60,
        )

    def remaining(self, clock: Callable[[], float]) -> float:
        return max(0.0, self.deadline - clock())


@dataclass(frozen=True)
class NotFound:
    """No data source matched."""

    def describe(self) -> str:
        return "not-found"


@dataclass(frozen=True)
class SingleMatch:
    """Exactly one data source matched; the only outcome that authorizes a delete."""

    data_source_id: str

    def describe(self) -> str:
        return f"single-match:{self.data_source_id}"


@dataclass(frozen=True)
class AmbiguousMatch:
    """More than one data source matched; none is deleted."""

    candidates: tuple[str, ...]

    def describe(self) -> str:
        return f"ambiguous-match:{len(self.candidates)}"


MatchResult = Union[NotFound, SingleMatch, AmbiguousMatch]


@dataclass
class CleanupReport:
    """Outcome of one finalizer invocation.

    Attributes:
        knowledge_base_id: Knowledge base that was cleaned up
        ok: Caller-visible success indicator
        completed: True only if the sequence reached DONE
        phases: States visited, in order
        match: Data source resolution outcome (optional)
        data_source_id: Resolved data source id (optional)
        error: Failure detail when the sequence ended in FAILED (optional)
        started_at: Invocation start time (UTC)
        finished_at: Invocation end time (UTC, optional)
    """

    knowledge_base_id: str
    ok: bool = True
    completed: bool = False
    phases: list[CleanupPhase] = field(default_factory=list)
    match: Optional[MatchResult] = None
    data_source_id: Optional[str] = None
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def final_phase(self) -> CleanupPhase:
        return self.phases[-1] if self.phases else CleanupPhase.START

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "knowledge_base_id": self.knowledge_base_id,
            "ok": self.ok,
            "completed": self.completed,
            "phases": [phase.value for phase in self.phases],
            "match": self.match.describe() if self.match else None,
            "data_source_id": self.data_source_id,
            "error": self.error,
            "started_at": self.started_at.isoformat() + "Z",
            "finished_at": self.finished_at.isoformat() + "Z" if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
        }
