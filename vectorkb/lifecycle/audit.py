"""Audit storage for teardown operations.

Stores and retrieves teardown audit logs in YAML format for troubleshooting.
Because the finalizer reports success even when its sequence failed, the
audit log is where a stuck cleanup shows up.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from ..models.operation import TeardownReport

logger = logging.getLogger(__name__)


class AuditStorage:
    """Teardown audit log storage and retrieval.

    Storage structure:
        ~/.vectorkb/audit-logs/
            2026/
                10/
                    teardown-td_123.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.vectorkb/audit-logs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".vectorkb" / "audit-logs")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_teardown(self, report: TeardownReport) -> Path:
        """Write a teardown report as YAML.

        Overwrites an existing log with the same operation id.

        Returns:
            Path of the written file
        """
        year_month_dir = self.storage_dir / str(report.timestamp.year) / f"{report.timestamp.month:02d}"
        year_month_dir.mkdir(parents=True, exist_ok=True)

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "stack_teardown",
                "created_at": datetime.utcnow().isoformat() + "Z",
            },
            "operation": {
                "operation_id": report.operation_id,
                "stack_id": report.stack_id,
                "timestamp": report.timestamp.isoformat() + "Z",
                "status": report.status.value,
                "succeeded_count": report.succeeded_count,
                "failed_count": report.failed_count,
                "skipped_count": report.skipped_count,
            },
            "cleanup": report.cleanup.to_dict() if report.cleanup else None,
            "records": [
                {
                    "node_name": record.node_name,
                    "kind": record.kind.value,
                    "physical_id": record.physical_id,
                    "status": record.status.value,
                    "error_message": record.error_message,
                    "skip_reason": record.skip_reason,
                    "timestamp": record.timestamp.isoformat() + "Z",
                }
                for record in report.records
            ],
        }

        audit_file = year_month_dir / f"teardown-{report.operation_id}.yaml"
        with open(audit_file, "w") as f:
            yaml.safe_dump(audit_data, f, default_flow_style=False, sort_keys=False)

        logger.debug(f"Wrote teardown audit log {audit_file}")
        return audit_file

    def get_operation(self, operation_id: str) -> Optional[dict]:
        """Retrieve a teardown audit log by operation id.

        Returns:
            Audit log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.rglob(f"teardown-{operation_id}.yaml"):
            with open(audit_file) as f:
                return yaml.safe_load(f)
        return None

    def list_operations(self, limit: Optional[int] = None) -> list[dict]:
        """List teardown operation summaries, newest first.

        Args:
            limit: Maximum number of operations to return (optional)

        Returns:
            List of "operation" sections of the audit logs
        """
        operations = []
        for audit_file in self.storage_dir.rglob("teardown-*.yaml"):
            try:
                with open(audit_file) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                logger.warning(f"Skipping unreadable audit log {audit_file}: {e}")
                continue
            if "operation" in data:
                operations.append(data["operation"])

        operations.sort(key=lambda op: str(op.get("timestamp", "")), reverse=True)
        if limit is not None:
            operations = operations[:limit]
        return operations
