"""
Rule configuration management.

Loads anomaly rule settings from YAML files and provides utilities
for building engine configurations programmatically.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from finaudit.core.models import ColumnMapping, DateEncoding
from finaudit.core.models.column_mapping import coerce_date_encodings, default_date_encodings

from .high_value_rule import DEFAULT_HIGH_VALUE_THRESHOLD

RULE_NAMES = ("high_value", "duplicate_transaction", "weekend_activity")


class EngineConfig(BaseModel):
    """
    Settings for one anomaly engine instance.

    Attributes:
        high_value_threshold: Amount above which a transaction is flagged
        enabled_rules: Rule names to run; they always run in registry order
        column_mapping: Source column contract for logical fields
        date_encodings: Numeric date convention per file type
    """

    high_value_threshold: float = Field(DEFAULT_HIGH_VALUE_THRESHOLD, gt=0)
    enabled_rules: list[str] = Field(default_factory=lambda: list(RULE_NAMES))
    column_mapping: ColumnMapping = Field(default_factory=ColumnMapping)
    date_encodings: dict[str, DateEncoding] = Field(default_factory=default_date_encodings)

    @field_validator("enabled_rules")
    @classmethod
    def check_rule_names(cls, v):
        """Reject rule names the engine does not know."""
        unknown = [name for name in v if name not in RULE_NAMES]
        if unknown:
            raise ValueError(f"Unknown rule type(s): {', '.join(unknown)}")
        return v

    def date_encoding_for(self, file_type: str) -> DateEncoding:
        return self.date_encodings.get(file_type, DateEncoding.EXCEL_SERIAL)

    def rule_parameters(self, rule_name: str) -> dict[str, Any]:
        if rule_name == "high_value":
            return {"threshold": self.high_value_threshold}
        return {}


class RuleConfigLoader:
    """
    Loads engine settings from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      high_value:
        threshold: 10000
      duplicate_transaction: {}
      weekend_activity:
        enabled: false

    columns:
      amount: ["Amount", "amount"]
      transaction_id: ["Transaction ID", "transaction_id", "id"]
      date: ["Date", "date"]

    date_encodings:
      Excel: excel_serial
      CSV: unix_seconds
    ```
    Every section is optional; omitted settings keep their defaults.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")

    def load(self) -> EngineConfig:
        """
        Load and parse engine settings from the YAML file.

        Returns:
            EngineConfig

        Raises:
            ValueError: If YAML is invalid or a section is malformed
        """
        with open(self.config_path) as f:
            try:
                config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        builder = RuleConfigBuilder()

        rules = config.get("rules") or {}
        if not isinstance(rules, dict):
            raise ValueError("'rules' section must be a mapping of rule name to settings")
        for rule_name, rule_def in rules.items():
            self._apply_rule(builder, rule_name, rule_def or {})

        columns = config.get("columns")
        if columns is not None:
            if not isinstance(columns, dict):
                raise ValueError("'columns' section must map logical fields to column lists")
            builder.with_columns(**columns)

        encodings = config.get("date_encodings")
        if encodings is not None:
            if not isinstance(encodings, dict):
                raise ValueError("'date_encodings' section must map file types to encodings")
            for file_type, encoding in encodings.items():
                builder.with_date_encoding(file_type, encoding)

        return builder.build()

    def _apply_rule(self, builder: "RuleConfigBuilder", rule_name: str, rule_def: dict[str, Any]) -> None:
        """
        Apply a single rule definition.

        Raises:
            ValueError: If the rule name or its settings are invalid
        """
        if rule_name not in RULE_NAMES:
            raise ValueError(f"Unknown rule type: {rule_name}")
        if not isinstance(rule_def, dict):
            raise ValueError(f"Settings for rule '{rule_name}' must be a mapping")

        if not rule_def.get("enabled", True):
            builder.disable(rule_name)

        if rule_name == "high_value" and "threshold" in rule_def:
            builder.with_threshold(rule_def["threshold"])


class RuleConfigBuilder:
    """
    Programmatically build engine configurations (for testing or per-tenant tuning).
    """

    def __init__(self):
        """Initialize with default settings."""
        self.threshold: float = DEFAULT_HIGH_VALUE_THRESHOLD
        self.enabled: list[str] = list(RULE_NAMES)
        self.columns: dict[str, list[str]] = {}
        self.encodings: dict[str, Any] = {}

    def with_threshold(self, threshold: float) -> "RuleConfigBuilder":
        """Set the high-value threshold."""
        self.threshold = threshold
        return self

    def disable(self, rule_name: str) -> "RuleConfigBuilder":
        """Disable a rule by name."""
        self.enabled = [name for name in self.enabled if name != rule_name]
        return self

    def with_columns(self, **columns: list[str]) -> "RuleConfigBuilder":
        """Override candidate columns for one or more logical fields."""
        self.columns.update(columns)
        return self

    def with_date_encoding(self, file_type: str, encoding: str | DateEncoding) -> "RuleConfigBuilder":
        """Set the numeric date convention for a file type."""
        self.encodings[file_type] = encoding
        return self

    def build(self) -> EngineConfig:
        """Build and validate the engine configuration."""
        return EngineConfig(
            high_value_threshold=self.threshold,
            enabled_rules=self.enabled,
            column_mapping=ColumnMapping(**self.columns),
            date_encodings=coerce_date_encodings(self.encodings),
        )
