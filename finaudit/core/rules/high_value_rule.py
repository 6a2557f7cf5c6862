"""
HighValueRule - flags transactions whose amount exceeds a threshold.
"""

from typing import Any

from finaudit.core.models import Anomaly, NumberValue, Row
from finaudit.core.models.cell_value import format_number
from finaudit.core.models.column_mapping import AMOUNT

from .base_rule import BaseRule

DEFAULT_HIGH_VALUE_THRESHOLD = 10000.0


class HighValueRule(BaseRule):
    """
    Flags a row whose numeric amount is strictly greater than the threshold.

    Parameters:
    - threshold: Monetary threshold (default 10000)

    Text or missing amounts never trigger the rule.
    """

    anomaly_type = "High-Value Transaction"
    severity = "Medium"

    def __init__(self, parameters: dict[str, Any] | None = None):
        super().__init__(parameters)

        self.threshold = float(self.parameters.get("threshold", DEFAULT_HIGH_VALUE_THRESHOLD))
        if self.threshold <= 0:
            raise ValueError(f"HighValueRule threshold must be positive, got {self.threshold}")

    def check(self, row: Row) -> Anomaly | None:
        amount = row.field(AMOUNT)
        if not isinstance(amount, NumberValue) or not amount.value > self.threshold:
            return None

        return self.flag(
            row,
            f"Transaction amount of ${amount.value:.2f} exceeds the threshold "
            f"of ${format_number(self.threshold)}.",
        )

    @property
    def rule_type(self) -> str:
        return "high_value"
