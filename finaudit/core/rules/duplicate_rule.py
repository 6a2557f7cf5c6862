"""
DuplicateTransactionRule - flags repeated transaction identifiers.
"""

from collections.abc import Sequence

from finaudit.core.models import Anomaly, Row
from finaudit.core.models.column_mapping import TRANSACTION_ID

from .base_rule import BaseRule


class DuplicateTransactionRule(BaseRule):
    """
    Flags every occurrence of a transaction id after its first.

    Ids are compared as text, so the number 1001 and the text "1001" collide.
    The set of seen ids lives only for one scan.
    """

    anomaly_type = "Duplicate Transaction"
    severity = "High"

    def scan(self, rows: Sequence[Row]) -> list[Anomaly]:
        seen: set[str] = set()
        anomalies = []

        for row in rows:
            transaction_id = row.field(TRANSACTION_ID)
            if transaction_id.kind == "missing":
                continue

            id_text = transaction_id.as_text()
            if id_text in seen:
                anomalies.append(self.flag(row, f"Duplicate Transaction ID #{id_text} found."))
            seen.add(id_text)

        return anomalies

    def check(self, row: Row) -> Anomaly | None:
        # A single row cannot duplicate anything
        return None

    @property
    def rule_type(self) -> str:
        return "duplicate_transaction"
