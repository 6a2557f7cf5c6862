"""
Anomaly rules, rule engine and configuration management.
"""

from .base_rule import BaseRule
from .duplicate_rule import DuplicateTransactionRule
from .high_value_rule import HighValueRule
from .risk import aggregate_risk, placeholder_result
from .rule_config import EngineConfig, RuleConfigBuilder, RuleConfigLoader
from .rule_engine import AnomalyEngine
from .weekend_rule import WeekendActivityRule

__all__ = [
    "AnomalyEngine",
    "BaseRule",
    "DuplicateTransactionRule",
    "HighValueRule",
    "WeekendActivityRule",
    "EngineConfig",
    "RuleConfigLoader",
    "RuleConfigBuilder",
    "aggregate_risk",
    "placeholder_result",
]
