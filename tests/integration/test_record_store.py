"""
Integration tests for RecordStore against PostgreSQL.

Checks the conditional lifecycle updates, the stored result document and
dashboard statistics.
"""

import pytest
from concurrent.futures import ThreadPoolExecutor

from finaudit.core.errors import PersistenceError
from finaudit.core.models import AnalysisResult, Anomaly, FinancialRecord
from finaudit.core.rules import placeholder_result
from finaudit.store.record_store import RecordStore

pytestmark = pytest.mark.integration


def make_record(record_id="rec-1", org="org_1", file_type="CSV") -> FinancialRecord:
    return FinancialRecord(
        record_id=record_id,
        file_name="ledger.csv",
        file_path=f"{org}/{record_id}-ledger.csv",
        file_type=file_type,
        file_size=64,
        organization_id=org,
        uploaded_by="user_1",
    )


def high_risk_result() -> AnalysisResult:
    return AnalysisResult(
        summary="Rule-based analysis complete. Found 1 potential anomalies.",
        anomalies=[
            Anomaly(
                type="Duplicate Transaction",
                description="Duplicate Transaction ID #T1 found.",
                severity="High",
                record_reference="Row 3",
            )
        ],
        overall_risk_level="High",
    )


@pytest.fixture
def store(db_pool) -> RecordStore:
    return RecordStore(db_pool)


def test_insert_and_get(store):
    inserted = store.insert_record(make_record())
    fetched = store.get_record("rec-1")

    assert inserted.status == "pending"
    assert fetched.record_id == "rec-1"
    assert fetched.analysis_results is None
    assert store.get_record("missing") is None


def test_duplicate_insert_raises(store):
    store.insert_record(make_record())
    with pytest.raises(PersistenceError):
        store.insert_record(make_record())


def test_claim_only_from_pending(store):
    store.insert_record(make_record())

    assert store.claim_for_analysis("rec-1") is True
    assert store.claim_for_analysis("rec-1") is False
    assert store.get_record("rec-1").status == "analyzing"
    assert store.claim_for_analysis("missing") is False


def test_concurrent_claims_have_one_winner(store):
    store.insert_record(make_record())

    with ThreadPoolExecutor(max_workers=5) as executor:
        outcomes = list(executor.map(lambda _: store.claim_for_analysis("rec-1"), range(5)))

    assert outcomes.count(True) == 1


def test_complete_analysis_writes_results_and_flags(store, db_connection):
    store.insert_record(make_record())
    store.claim_for_analysis("rec-1")
    store.complete_analysis("rec-1", high_risk_result())

    record = store.get_record("rec-1")
    assert record.status == "completed"
    assert record.analysis_results == high_risk_result()
    assert record.risk_flags.overall == "High"

    with db_connection.cursor() as cur:
        cur.execute("SELECT analysis_results, risk_flags FROM financial_records WHERE id = %s", ("rec-1",))
        results, flags = cur.fetchone()
    assert flags == {"overall": "High"}
    assert results["overallRiskLevel"] == "High"
    assert results["anomalies"][0]["recordReference"] == "Row 3"


def test_complete_requires_analyzing(store):
    store.insert_record(make_record())

    with pytest.raises(PersistenceError):
        store.complete_analysis("rec-1", placeholder_result())
    assert store.get_record("rec-1").status == "pending"


def test_mark_failed(store):
    store.insert_record(make_record())
    assert store.mark_failed("rec-1") is False

    store.claim_for_analysis("rec-1")
    assert store.mark_failed("rec-1") is True
    assert store.get_record("rec-1").status == "failed"


def test_reset_for_reanalysis(store):
    store.insert_record(make_record())
    assert store.reset_for_reanalysis("rec-1") is None

    store.claim_for_analysis("rec-1")
    assert store.reset_for_reanalysis("rec-1") is None

    store.complete_analysis("rec-1", high_risk_result())
    assert store.reset_for_reanalysis("rec-1") == "completed"

    record = store.get_record("rec-1")
    assert record.status == "pending"
    assert record.analysis_results is None
    assert record.risk_flags is None


def test_save_analysis_results(store):
    store.insert_record(make_record())
    store.claim_for_analysis("rec-1")
    store.complete_analysis("rec-1", high_risk_result())

    reviewed = high_risk_result().with_flag_status("rec-1", "rec-1-anomaly-0", "Reviewed")
    store.save_analysis_results("rec-1", reviewed)

    assert store.get_record("rec-1").analysis_results.anomalies[0].status == "Reviewed"


def test_save_analysis_results_requires_completed(store):
    store.insert_record(make_record())
    with pytest.raises(PersistenceError):
        store.save_analysis_results("rec-1", placeholder_result())


def test_list_records(store):
    store.insert_record(make_record("a"))
    store.insert_record(make_record("b"))
    store.insert_record(make_record("c", org="org_2"))
    store.claim_for_analysis("b")

    assert {r.record_id for r in store.list_records("org_1")} == {"a", "b"}
    assert [r.record_id for r in store.list_records("org_1", status="analyzing")] == ["b"]
    assert len(store.list_records("org_1", limit=1)) == 1


def test_delete_record(store):
    store.insert_record(make_record())
    assert store.delete_record("rec-1") is True
    assert store.delete_record("rec-1") is False
    assert store.get_record("rec-1") is None


def test_record_statistics(store):
    for record_id in ("a", "b", "c", "d"):
        store.insert_record(make_record(record_id))
    store.insert_record(make_record("other", org="org_2"))

    store.claim_for_analysis("a")
    store.complete_analysis("a", high_risk_result())
    store.claim_for_analysis("b")
    store.complete_analysis("b", placeholder_result())
    store.claim_for_analysis("c")
    store.mark_failed("c")

    stats = store.get_record_statistics("org_1")

    assert stats["total_records"] == 4
    assert stats["completed"] == 2
    assert stats["in_progress"] == 1
    assert stats["failed"] == 1
    assert stats["high_risk"] == 1
    assert stats["by_status"] == {"completed": 2, "failed": 1, "pending": 1}

    assert store.get_record_statistics()["total_records"] == 5
