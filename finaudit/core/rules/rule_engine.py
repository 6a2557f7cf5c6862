"""
Rule engine for detecting anomalies in extracted rows.

The engine builds the configured rules, runs each of them over the full
row sequence and aggregates the findings into an AnalysisResult.
"""

from collections.abc import Sequence
from typing import Any

from finaudit.core.models import AnalysisResult, Anomaly, Row

from .base_rule import BaseRule
from .duplicate_rule import DuplicateTransactionRule
from .high_value_rule import HighValueRule
from .risk import aggregate_risk, rule_based_summary
from .rule_config import EngineConfig
from .weekend_rule import WeekendActivityRule


class AnomalyEngine:
    """
    Applies a fixed, ordered battery of independent rules to rows.

    Rules run unconditionally over the whole sequence and never disable or
    modify one another; a single row may trigger several anomalies.
    """

    # Insertion order is execution order
    RULE_REGISTRY: dict[str, type[BaseRule]] = {
        "high_value": HighValueRule,
        "duplicate_transaction": DuplicateTransactionRule,
        "weekend_activity": WeekendActivityRule,
    }

    def __init__(self, config: EngineConfig | None = None):
        """
        Initialize the engine.

        Args:
            config: Engine settings; defaults reproduce the stock thresholds
        """
        self.config = config or EngineConfig()
        self.rules: list[BaseRule] = []
        self._build_rules()

    def _build_rules(self) -> None:
        """Build rule instances from the configuration."""
        enabled = set(self.config.enabled_rules)
        for rule_name, rule_class in self.RULE_REGISTRY.items():
            if rule_name not in enabled:
                continue
            try:
                self.rules.append(rule_class(self.config.rule_parameters(rule_name)))
            except ValueError as e:
                raise ValueError(f"Failed to create rule '{rule_name}': {e}") from e

    def detect(self, rows: Sequence[Row]) -> list[Anomaly]:
        """
        Run every rule over the rows.

        Returns:
            Anomalies grouped by rule (registry order), each group in row order
        """
        anomalies: list[Anomaly] = []
        for rule in self.rules:
            anomalies.extend(rule.scan(rows))
        return anomalies

    def analyze(self, rows: Sequence[Row]) -> AnalysisResult:
        """
        Detect anomalies and aggregate them into a result.

        Args:
            rows: Extracted rows in file order

        Returns:
            AnalysisResult with an empty compliance list
        """
        anomalies = self.detect(rows)
        return AnalysisResult(
            summary=rule_based_summary(len(anomalies)),
            anomalies=anomalies,
            compliance_issues=[],
            overall_risk_level=aggregate_risk(anomalies),
        )

    def get_rule_summary(self) -> dict[str, Any]:
        """
        Get summary of loaded rules.

        Returns:
            Dictionary with rule counts, order and severities
        """
        return {
            "total_rules": len(self.rules),
            "rules": [rule.rule_type for rule in self.rules],
            "rules_by_severity": self._count_by_severity(),
            "high_value_threshold": self.config.high_value_threshold,
        }

    def _count_by_severity(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for rule in self.rules:
            counts[rule.severity] = counts.get(rule.severity, 0) + 1
        return counts
