"""Tests for teardown audit storage."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import yaml

from vectorkb.lifecycle.audit import AuditStorage
from vectorkb.models.cleanup import CleanupPhase, CleanupReport, SingleMatch
from vectorkb.models.operation import DeletionStatus, OperationStatus, TeardownRecord, TeardownReport
from vectorkb.models.resource import ResourceKind


def make_report(operation_id: str, timestamp: datetime) -> TeardownReport:
    report = TeardownReport(operation_id=operation_id, stack_id="stack-1", timestamp=timestamp)
    report.records = [
        TeardownRecord("data-source", ResourceKind.DATA_SOURCE, DeletionStatus.SUCCEEDED, physical_id="DS1"),
        TeardownRecord(
            "vector-index",
            ResourceKind.VECTOR_INDEX,
            DeletionStatus.FAILED,
            physical_id="arn:index",
            error_message="AccessDeniedException: denied",
        ),
    ]
    report.cleanup = CleanupReport(
        knowledge_base_id="KB1",
        completed=True,
        phases=[CleanupPhase.START, CleanupPhase.DONE],
        match=SingleMatch("DS1"),
        data_source_id="DS1",
    )
    report.finalize()
    return report


class TestAuditStorage:
    """Test suite for AuditStorage."""

    def test_log_teardown_writes_year_month_layout(self, tmp_path: Path) -> None:
        """Test audit logs land under year/month directories."""
        storage = AuditStorage(str(tmp_path))

        audit_file = storage.log_teardown(make_report("td_1", datetime(2026, 3, 4, 12, 0, 0)))

        assert audit_file == tmp_path / "2026" / "03" / "teardown-td_1.yaml"
        data = yaml.safe_load(audit_file.read_text())
        assert data["metadata"]["log_type"] == "stack_teardown"
        assert data["operation"]["status"] == OperationStatus.PARTIAL.value
        assert data["operation"]["failed_count"] == 1
        assert data["cleanup"]["phases"] == ["start", "done"]
        assert data["cleanup"]["match"] == "single-match:DS1"
        assert data["records"][1]["error_message"] == "AccessDeniedException: denied"

    def test_get_operation(self, tmp_path: Path) -> None:
        """Test retrieving an audit log by operation id."""
        storage = AuditStorage(str(tmp_path))
        storage.log_teardown(make_report("td_2", datetime(2026, 1, 1)))

        data = storage.get_operation("td_2")

        assert data is not None
        assert data["operation"]["stack_id"] == "stack-1"
        assert storage.get_operation("missing") is None

    def test_list_operations_newest_first(self, tmp_path: Path) -> None:
        """Test operations are listed newest first and limited."""
        storage = AuditStorage(str(tmp_path))
        storage.log_teardown(make_report("td_old", datetime(2025, 12, 31)))
        storage.log_teardown(make_report("td_new", datetime(2026, 2, 1)))
        storage.log_teardown(make_report("td_mid", datetime(2026, 1, 15)))

        operations = storage.list_operations()

        assert [op["operation_id"] for op in operations] == ["td_new", "td_mid", "td_old"]
        assert len(storage.list_operations(limit=1)) == 1

    def test_list_operations_skips_unreadable_files(self, tmp_path: Path) -> None:
        """Test a corrupt audit log does not break listing."""
        storage = AuditStorage(str(tmp_path))
        storage.log_teardown(make_report("td_ok", datetime(2026, 1, 1)))
        (tmp_path / "teardown-broken.yaml").write_text("operation: [unclosed")

        operations = storage.list_operations()

        assert [op["operation_id"] for op in operations] == ["td_ok"]

    def test_creates_storage_dir(self, tmp_path: Path) -> None:
        """Test the storage directory is created on init."""
        target = tmp_path / "nested" / "audit"

        AuditStorage(str(target))

        assert target.is_dir()
