"""
Audit trail operations for record lifecycle transitions.

Every status change a record goes through (claim, completion, failure,
reset) is appended here so a record's history can be reconstructed.
"""

from typing import Any

from finaudit.core.models import StatusTransition
from finaudit.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .record_store import translate_errors

logger = get_logger(__name__)


class TransitionLog:
    """
    PostgreSQL-backed log of StatusTransition entries.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def insert_status_transition(self, transition: StatusTransition) -> int:
        """
        Insert a single transition entry.

        Args:
            transition: StatusTransition model instance

        Returns:
            transition_id: Generated id

        Raises:
            PersistenceError: If insert fails
        """
        insert_sql = """
            INSERT INTO record_status_transitions (
                record_id, from_status, to_status, actor, reason, created_at
            ) VALUES (
                %(record_id)s, %(from_status)s, %(to_status)s, %(actor)s, %(reason)s, %(created_at)s
            ) RETURNING transition_id
        """

        with translate_errors("insert status transition"):
            rows = self.pool.execute_query(
                insert_sql,
                {
                    "record_id": transition.record_id,
                    "from_status": transition.from_status,
                    "to_status": transition.to_status,
                    "actor": transition.actor,
                    "reason": transition.reason,
                    "created_at": transition.created_at,
                },
            )

        transition_id = rows[0]["transition_id"]
        logger.debug(
            f"Inserted status transition: transition_id={transition_id}, "
            f"record_id={transition.record_id}, "
            f"{transition.from_status} -> {transition.to_status}"
        )
        return transition_id

    def query_transitions_by_record(self, record_id: str, limit: int = 100) -> list[StatusTransition]:
        """
        Get the transitions of a record, oldest first.

        Args:
            record_id: Record identifier
            limit: Maximum number of entries
        """
        query = """
            SELECT transition_id, record_id, from_status, to_status, actor, reason, created_at
            FROM record_status_transitions
            WHERE record_id = %s
            ORDER BY created_at ASC, transition_id ASC
            LIMIT %s
        """
        with translate_errors("query status transitions"):
            rows = self.pool.execute_query(query, (record_id, limit))
        return [StatusTransition(**row) for row in rows]

    def get_transition_summary(self, record_ids: list[str] | None = None) -> dict[str, Any]:
        """
        Count transitions by (from_status, to_status) pair.

        Args:
            record_ids: Optional subset of records
        """
        query = """
            SELECT from_status, to_status, COUNT(*) AS count
            FROM record_status_transitions
        """
        params: tuple = ()
        if record_ids:
            query += " WHERE record_id = ANY(%s)"
            params = (record_ids,)
        query += " GROUP BY from_status, to_status ORDER BY count DESC"

        with translate_errors("summarise status transitions"):
            rows = self.pool.execute_query(query, params or None)

        return {
            "total_transitions": sum(row["count"] for row in rows),
            "by_transition": {f"{row['from_status']}->{row['to_status']}": row["count"] for row in rows},
        }
