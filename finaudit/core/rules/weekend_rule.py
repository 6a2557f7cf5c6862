"""
WeekendActivityRule - flags transactions dated on a Saturday or Sunday.
"""

from finaudit.core.models import Anomaly, DateValue, Row
from finaudit.core.models.column_mapping import DATE

from .base_rule import BaseRule


class WeekendActivityRule(BaseRule):
    """
    Flags a row whose resolved date falls on a weekend.

    Date cells are normalised at extraction, so only DateValue fields are
    considered; unparseable text dates are ignored.
    """

    anomaly_type = "Weekend Activity"
    severity = "Low"

    def check(self, row: Row) -> Anomaly | None:
        value = row.field(DATE)
        if not isinstance(value, DateValue) or not value.is_weekend():
            return None

        return self.flag(row, f"Transaction occurred on a weekend ({value.localized()}).")

    @property
    def rule_type(self) -> str:
        return "weekend_activity"
