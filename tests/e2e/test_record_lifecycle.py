"""
End-to-end tests for the record lifecycle.

Tests the complete flow: upload → analyze → review flags → reset → re-analyze → delete
against PostgreSQL and a local blob directory.
"""

from datetime import datetime

import pytest

from finaudit.core.errors import ExtractionError, PreconditionError
from finaudit.core.rules import RuleConfigBuilder
from finaudit.services.analysis_service import AnalysisService
from finaudit.store.audit import TransitionLog
from finaudit.store.blob_store import LocalBlobStore
from finaudit.store.record_store import RecordStore


@pytest.fixture
def service(db_pool, tmp_path) -> AnalysisService:
    """Create an AnalysisService backed by the test database."""
    return AnalysisService(
        records=RecordStore(db_pool),
        blobs=LocalBlobStore(tmp_path / "blobs"),
        transitions=TransitionLog(db_pool),
    )


@pytest.mark.e2e
@pytest.mark.integration
def test_excel_record_lifecycle(service, db_pool, tmp_path, workbook_factory):
    """
    Test a workbook from upload to deletion.

    Scenario:
    1. Upload a workbook with a high-value weekend row and a duplicate id
    2. Analyze it and review one flag
    3. Re-analysis without reset is rejected
    4. Reset and analyze again
    5. Delete the record and its file
    """
    workbook = workbook_factory([
        {"Transaction ID": "T1", "Amount": 15000, "Date": datetime(2024, 6, 8)},
        {"Transaction ID": "T2", "Amount": 120, "Date": datetime(2024, 6, 10)},
        {"Transaction ID": "T1", "Amount": 80, "Date": datetime(2024, 6, 11)},
    ])
    record = service.upload_record("user_1", "org_1", "ledger_q2.xlsx", workbook)
    assert record.file_type == "Excel"
    assert (tmp_path / "blobs" / record.file_path).exists()

    result = service.run_analysis(record.record_id)
    assert [(a.type, a.record_reference) for a in result.anomalies] == [
        ("High-Value Transaction", "Row 2"),
        ("Duplicate Transaction", "Row 4"),
        ("Weekend Activity", "Row 2"),
    ]
    assert result.overall_risk_level == "High"

    service.update_flag_status(record.record_id, f"{record.record_id}-anomaly-1", "Resolved", "org_1")
    stored = service.records.get_record(record.record_id)
    assert stored.analysis_results.anomalies[1].status == "Resolved"
    assert stored.risk_flags.overall == "High"

    with pytest.raises(PreconditionError):
        service.run_analysis(record.record_id)

    service.reset_record(record.record_id, actor="auditor", reason="re-run after review")
    rerun = service.run_analysis(record.record_id)
    # A fresh run starts with unreviewed flags
    assert all(a.status is None for a in rerun.anomalies)

    stats = service.records.get_record_statistics("org_1")
    assert stats["completed"] == 1
    assert stats["high_risk"] == 1

    service.delete_record(record.record_id)
    assert service.records.get_record(record.record_id) is None
    assert not (tmp_path / "blobs" / record.file_path).exists()


@pytest.mark.e2e
@pytest.mark.integration
def test_corrupt_file_fails_then_recovers(service, tmp_path, workbook_factory):
    """A failed record can be reset and analysed once its file is replaced."""
    record = service.upload_record("user_1", "org_1", "ledger.xlsx", b"not really a workbook")

    with pytest.raises(ExtractionError):
        service.run_analysis(record.record_id)
    assert service.records.get_record(record.record_id).status == "failed"

    service.blobs.remove(record.file_path)
    service.blobs.upload(record.file_path, workbook_factory([{"id": "T9", "amount": 20}]))
    service.reset_record(record.record_id, actor="auditor", reason="replaced corrupt upload")

    result = service.run_analysis(record.record_id)
    assert result.anomalies == []
    assert result.overall_risk_level == "Low"

    history = service.transitions.query_transitions_by_record(record.record_id)
    assert [t.to_status for t in history] == ["analyzing", "failed", "pending", "analyzing", "completed"]


@pytest.mark.e2e
@pytest.mark.integration
def test_configured_threshold_applies_end_to_end(db_pool, tmp_path):
    config = RuleConfigBuilder().with_threshold(100).disable("weekend_activity").build()
    service = AnalysisService.from_config(
        config,
        records=RecordStore(db_pool),
        blobs=LocalBlobStore(tmp_path),
    )
    record = service.upload_record("user_1", "org_1", "small.csv", b"id,amount,date\nA,150,2024-06-08\n")

    result = service.run_analysis(record.record_id)

    assert [a.description for a in result.anomalies] == [
        "Transaction amount of $150.00 exceeds the threshold of $100."
    ]
    assert result.overall_risk_level == "Medium"
