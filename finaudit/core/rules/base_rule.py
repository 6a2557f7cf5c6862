"""
Base interface for anomaly detection rules.

Rules are independent: none reads another's output, and each one scans the
whole row sequence. A rule never raises on a missing or malformed field; the
row is simply skipped for that rule.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from finaudit.core.models import Anomaly, Row, Severity


class BaseRule(ABC):
    """
    Abstract base class for all anomaly rules.

    Stateless rules implement check(); rules that need to remember earlier
    rows (duplicate detection) override scan().
    """

    anomaly_type: str = ""
    severity: Severity = "Low"

    def __init__(self, parameters: dict[str, Any] | None = None):
        """
        Initialize rule.

        Args:
            parameters: Rule-specific parameters (e.g., threshold for high-value)
        """
        self.parameters = parameters or {}

    def scan(self, rows: Sequence[Row]) -> list[Anomaly]:
        """
        Apply the rule to every row in order.

        Args:
            rows: Extracted rows in file order

        Returns:
            One anomaly per triggering row, in row order
        """
        anomalies = []
        for row in rows:
            anomaly = self.check(row)
            if anomaly is not None:
                anomalies.append(anomaly)
        return anomalies

    @abstractmethod
    def check(self, row: Row) -> Anomaly | None:
        """Return an anomaly if the row triggers this rule, else None."""
        pass

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""
        pass

    def flag(self, row: Row, description: str) -> Anomaly:
        return Anomaly(
            type=self.anomaly_type,
            description=description,
            severity=self.severity,
            record_reference=row.reference,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(params={self.parameters})"
