"""
Pytest configuration and fixtures for finaudit tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import io
import os
import pytest
from typing import Generator

import pandas as pd
import psycopg
from testcontainers.postgres import PostgresContainer

from finaudit.core.errors import BlobStoreError, PersistenceError
from finaudit.core.models import FinancialRecord, RiskFlags
from finaudit.core.rules import AnomalyEngine
from finaudit.extraction import TabularExtractor
from finaudit.services.analysis_service import AnalysisService
from finaudit.store.blob_store import BlobStore
from finaudit.store.connection import DatabaseConnectionPool


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that exercise the full record lifecycle"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# IN-MEMORY COLLABORATORS
# =======================

class InMemoryRecordStore:
    """Record store with the same conditional-update semantics as RecordStore."""

    def __init__(self):
        self.records: dict[str, FinancialRecord] = {}

    def _update(self, record_id: str, **changes) -> None:
        self.records[record_id] = self.records[record_id].model_copy(update=changes)

    def insert_record(self, record: FinancialRecord) -> FinancialRecord:
        if record.record_id in self.records:
            raise PersistenceError(f"Failed to insert record: duplicate id {record.record_id}")
        self.records[record.record_id] = record
        return record

    def get_record(self, record_id: str) -> FinancialRecord | None:
        return self.records.get(record_id)

    def list_records(self, organization_id: str, status: str | None = None, limit: int = 100):
        matches = [
            r for r in self.records.values()
            if r.organization_id == organization_id and (status is None or r.status == status)
        ]
        return sorted(matches, key=lambda r: r.created_at, reverse=True)[:limit]

    def claim_for_analysis(self, record_id: str) -> bool:
        record = self.records.get(record_id)
        if record is None or record.status != "pending":
            return False
        self._update(record_id, status="analyzing")
        return True

    def complete_analysis(self, record_id: str, result) -> None:
        record = self.records.get(record_id)
        if record is None or record.status != "analyzing":
            raise PersistenceError(f"Failed to save analysis results: record {record_id} is no longer analyzing")
        self._update(
            record_id,
            status="completed",
            analysis_results=result,
            risk_flags=RiskFlags.from_result(result),
        )

    def mark_failed(self, record_id: str) -> bool:
        record = self.records.get(record_id)
        if record is None or record.status != "analyzing":
            return False
        self._update(record_id, status="failed", analysis_results=None, risk_flags=None)
        return True

    def reset_for_reanalysis(self, record_id: str) -> str | None:
        record = self.records.get(record_id)
        if record is None or record.status not in ("completed", "failed"):
            return None
        self._update(record_id, status="pending", analysis_results=None, risk_flags=None)
        return record.status

    def save_analysis_results(self, record_id: str, result) -> None:
        record = self.records.get(record_id)
        if record is None or record.status != "completed":
            raise PersistenceError(f"Failed to update record {record_id}: record is not completed")
        self._update(record_id, analysis_results=result, risk_flags=RiskFlags.from_result(result))

    def delete_record(self, record_id: str) -> bool:
        return self.records.pop(record_id, None) is not None


class InMemoryBlobStore(BlobStore):
    """Blob store keeping bytes in a dict."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> None:
        if path in self.blobs:
            raise BlobStoreError(f"Storage upload failed: object already exists: {path}", path=path)
        self.blobs[path] = data

    def download(self, path: str) -> bytes:
        if path not in self.blobs:
            raise BlobStoreError(f"Failed to download file: {path} not found", path=path)
        return self.blobs[path]

    def remove(self, path: str) -> None:
        if path not in self.blobs:
            raise BlobStoreError(f"Failed to remove file: {path} not found", path=path)
        del self.blobs[path]


class InMemoryTransitionLog:
    """Collects StatusTransition entries in insertion order."""

    def __init__(self):
        self.entries = []

    def insert_status_transition(self, transition) -> int:
        self.entries.append(transition.model_copy(update={"transition_id": len(self.entries) + 1}))
        return len(self.entries)

    def query_transitions_by_record(self, record_id: str, limit: int = 100):
        return [t for t in self.entries if t.record_id == record_id][:limit]


@pytest.fixture(scope="function")
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture(scope="function")
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture(scope="function")
def transition_log() -> InMemoryTransitionLog:
    return InMemoryTransitionLog()


@pytest.fixture(scope="function")
def analysis_service(record_store, blob_store, transition_log) -> AnalysisService:
    """
    AnalysisService wired to in-memory collaborators and default rules

    Returns:
        AnalysisService instance
    """
    return AnalysisService(
        records=record_store,
        blobs=blob_store,
        engine=AnomalyEngine(),
        extractor=TabularExtractor(),
        transitions=transition_log,
    )


# =======================
# FILE FIXTURES
# =======================

def build_workbook(rows: list[dict], sheet_name: str = "Transactions") -> bytes:
    """Write rows to an in-memory .xlsx workbook using pandas + openpyxl."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def workbook_factory():
    """
    Factory producing .xlsx bytes from a list of row dicts

    Returns:
        Callable(rows, sheet_name="Transactions") -> bytes
    """
    return build_workbook


@pytest.fixture(scope="session")
def ledger_csv() -> bytes:
    """
    CSV ledger with one high-value weekend row and one duplicate id

    Returns:
        UTF-8 encoded CSV bytes
    """
    return (
        "Transaction ID,Amount,Date,Vendor\n"
        "T1,15000,2024-06-08,Acme\n"
        "T2,250.50,2024-06-10,Globex\n"
        "T1,90,2024-06-11,Initech\n"
    ).encode("utf-8")


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with initialized database
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_finaudit",
        password="test_password",
        dbname="test_finaudit",
        driver=None,
    ) as postgres:
        # Run init script
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path, 'r') as f:
            init_sql = f.read()

        conn_url = postgres.get_connection_url()
        with psycopg.connect(conn_url) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture(scope="function")
def db_connection(postgres_container) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database connection for a single test

    Args:
        postgres_container: PostgreSQL container fixture

    Yields:
        psycopg Connection object
    """
    conn_url = postgres_container.get_connection_url()
    with psycopg.connect(conn_url) as conn:
        yield conn
        # Rollback any uncommitted changes after test
        conn.rollback()


@pytest.fixture(scope="function")
def clean_db(db_connection) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a clean database by truncating all tables before each test

    Args:
        db_connection: Database connection fixture

    Yields:
        psycopg Connection object with clean database
    """
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE record_status_transitions RESTART IDENTITY")
        cur.execute("TRUNCATE TABLE financial_records")

        db_connection.commit()

    yield db_connection


@pytest.fixture(scope="function")
def db_pool(clean_db, postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open a DatabaseConnectionPool against the test container

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_finaudit",
        user="test_finaudit",
        password="test_password",
    )
    pool.open()

    try:
        yield pool
    finally:
        pool.close()


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
