"""
Record store: persistence of financial records and their analysis results.

Every status change is a single conditional UPDATE, so the status read and
the write cannot be interleaved by a second caller.
"""

from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from finaudit.core.errors import PersistenceError
from finaudit.core.models import AnalysisResult, FinancialRecord, RiskFlags
from finaudit.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

RECORD_COLUMNS = """
    id, file_name, file_path, file_type, file_size, organization_id,
    uploaded_by, status, analysis_results, risk_flags, created_at
"""


@contextmanager
def translate_errors(operation: str):
    """Surface database failures as PersistenceError."""
    try:
        yield
    except psycopg.Error as e:
        logger.error(f"Database error during {operation}: {e}", extra={"operation": operation})
        raise PersistenceError(f"Failed to {operation}: {e}") from e


def row_to_record(row: dict[str, Any]) -> FinancialRecord:
    """Build a FinancialRecord from a financial_records row."""
    results = row.get("analysis_results")
    flags = row.get("risk_flags")
    return FinancialRecord(
        record_id=row["id"],
        file_name=row["file_name"],
        file_path=row["file_path"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        organization_id=row["organization_id"],
        uploaded_by=row["uploaded_by"],
        status=row["status"],
        analysis_results=AnalysisResult.from_document(results) if results else None,
        risk_flags=RiskFlags.model_validate(flags) if flags else None,
        created_at=row["created_at"],
    )


class RecordStore:
    """
    PostgreSQL-backed store for FinancialRecord rows.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize record store.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def insert_record(self, record: FinancialRecord) -> FinancialRecord:
        """
        Insert a newly registered record.

        Raises:
            PersistenceError: If the insert fails (e.g. duplicate id)
        """
        query = f"""
            INSERT INTO financial_records (
                id, file_name, file_path, file_type, file_size,
                organization_id, uploaded_by, status, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {RECORD_COLUMNS}
        """
        with translate_errors("insert record"):
            rows = self.pool.execute_query(
                query,
                (
                    record.record_id,
                    record.file_name,
                    record.file_path,
                    record.file_type,
                    record.file_size,
                    record.organization_id,
                    record.uploaded_by,
                    record.status,
                    record.created_at,
                ),
            )
        return row_to_record(rows[0])

    def get_record(self, record_id: str) -> FinancialRecord | None:
        query = f"SELECT {RECORD_COLUMNS} FROM financial_records WHERE id = %s"
        with translate_errors("read record"):
            rows = self.pool.execute_query(query, (record_id,))
        return row_to_record(rows[0]) if rows else None

    def list_records(
        self,
        organization_id: str,
        status: str | None = None,
        limit: int = 100,
    ) -> list[FinancialRecord]:
        """
        List an organization's records, newest first.

        Args:
            organization_id: Owning organization
            status: Optional status filter
            limit: Maximum number of records
        """
        query = f"SELECT {RECORD_COLUMNS} FROM financial_records WHERE organization_id = %s"
        params: list[Any] = [organization_id]

        if status:
            query += " AND status = %s"
            params.append(status)

        query += " ORDER BY created_at DESC LIMIT %s"
        params.append(limit)

        with translate_errors("list records"):
            rows = self.pool.execute_query(query, tuple(params))
        return [row_to_record(row) for row in rows]

    def claim_for_analysis(self, record_id: str) -> bool:
        """
        Move a record from pending to analyzing.

        Returns:
            True if this caller won the claim, False if the record was not
            pending (or does not exist)
        """
        command = """
            UPDATE financial_records
            SET status = 'analyzing', updated_at = NOW()
            WHERE id = %s AND status = 'pending'
        """
        with translate_errors("claim record for analysis"):
            return self.pool.execute_command(command, (record_id,)) == 1

    def complete_analysis(self, record_id: str, result: AnalysisResult) -> None:
        """
        Write status, results and risk flags together.

        Raises:
            PersistenceError: If the write fails or the record is no longer analyzing
        """
        command = """
            UPDATE financial_records
            SET status = 'completed',
                analysis_results = %s,
                risk_flags = %s,
                updated_at = NOW()
            WHERE id = %s AND status = 'analyzing'
        """
        flags = RiskFlags.from_result(result)
        with translate_errors("save analysis results"):
            affected = self.pool.execute_command(
                command,
                (Jsonb(result.to_document()), Jsonb(flags.model_dump()), record_id),
            )
        if affected != 1:
            raise PersistenceError(
                f"Failed to save analysis results: record {record_id} is no longer analyzing"
            )

    def mark_failed(self, record_id: str) -> bool:
        """Move an analyzing record to failed; no results are kept."""
        command = """
            UPDATE financial_records
            SET status = 'failed', analysis_results = NULL, risk_flags = NULL, updated_at = NOW()
            WHERE id = %s AND status = 'analyzing'
        """
        with translate_errors("mark record failed"):
            return self.pool.execute_command(command, (record_id,)) == 1

    def reset_for_reanalysis(self, record_id: str) -> str | None:
        """
        Move a completed or failed record back to pending, clearing results.

        Returns:
            The status the record had before the reset, or None if the record
            was not in a resettable state
        """
        query = """
            UPDATE financial_records AS r
            SET status = 'pending', analysis_results = NULL, risk_flags = NULL, updated_at = NOW()
            FROM (SELECT id, status FROM financial_records WHERE id = %s FOR UPDATE) AS prev
            WHERE r.id = prev.id AND prev.status IN ('completed', 'failed')
            RETURNING prev.status AS previous_status
        """
        with translate_errors("reset record"):
            rows = self.pool.execute_query(query, (record_id,))
        return rows[0]["previous_status"] if rows else None

    def save_analysis_results(self, record_id: str, result: AnalysisResult) -> None:
        """
        Rewrite the results of a completed record (flag review updates).

        Raises:
            PersistenceError: If the record is not completed or the write fails
        """
        command = """
            UPDATE financial_records
            SET analysis_results = %s, risk_flags = %s, updated_at = NOW()
            WHERE id = %s AND status = 'completed'
        """
        flags = RiskFlags.from_result(result)
        with translate_errors("update analysis results"):
            affected = self.pool.execute_command(
                command,
                (Jsonb(result.to_document()), Jsonb(flags.model_dump()), record_id),
            )
        if affected != 1:
            raise PersistenceError(f"Failed to update record {record_id}: record is not completed")

    def delete_record(self, record_id: str) -> bool:
        with translate_errors("delete record"):
            return self.pool.execute_command(
                "DELETE FROM financial_records WHERE id = %s", (record_id,)
            ) == 1

    def get_record_statistics(self, organization_id: str | None = None) -> dict[str, Any]:
        """
        Get dashboard statistics.

        Args:
            organization_id: Optional organization filter

        Returns:
            Dictionary with:
            - total_records
            - completed
            - in_progress (pending, processing or analyzing)
            - failed
            - high_risk (completed with overall risk High)
            - by_status
        """
        where = "WHERE organization_id = %s" if organization_id else ""
        params = (organization_id,) if organization_id else None

        stats: dict[str, Any] = {
            "total_records": 0,
            "completed": 0,
            "in_progress": 0,
            "failed": 0,
            "high_risk": 0,
            "by_status": {},
        }

        with translate_errors("read record statistics"):
            with self.pool.get_cursor() as cur:
                cur.execute(
                    f"""
                    SELECT status, COUNT(*) AS count
                    FROM financial_records
                    {where}
                    GROUP BY status
                    """,
                    params,
                )
                stats["by_status"] = {row["status"]: row["count"] for row in cur.fetchall()}

                high_risk_where = f"{where} {'AND' if where else 'WHERE'} risk_flags->>'overall' = 'High'"
                cur.execute(
                    f"SELECT COUNT(*) AS count FROM financial_records {high_risk_where}",
                    params,
                )
                stats["high_risk"] = cur.fetchone()["count"]

        by_status = stats["by_status"]
        stats["total_records"] = sum(by_status.values())
        stats["completed"] = by_status.get("completed", 0)
        stats["failed"] = by_status.get("failed", 0)
        stats["in_progress"] = sum(by_status.get(s, 0) for s in ("pending", "processing", "analyzing"))
        return stats
