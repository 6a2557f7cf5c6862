"""
Core data models for financial record analysis.

All models use Pydantic for runtime validation and type safety.
"""

from .analysis_result import (
    AnalysisResult,
    Anomaly,
    ComplianceIssue,
    FlagStatus,
    RiskFlags,
    Severity,
)
from .cell_value import (
    MISSING,
    CellValue,
    DateValue,
    MissingValue,
    NumberValue,
    TextValue,
    to_cell_value,
)
from .column_mapping import ColumnMapping, DateEncoding
from .financial_record import FileType, FinancialRecord, RecordStatus, detect_file_type
from .row import Row
from .status_transition import StatusTransition

__all__ = [
    "AnalysisResult",
    "Anomaly",
    "ComplianceIssue",
    "FlagStatus",
    "RiskFlags",
    "Severity",
    "MISSING",
    "CellValue",
    "DateValue",
    "MissingValue",
    "NumberValue",
    "TextValue",
    "to_cell_value",
    "ColumnMapping",
    "DateEncoding",
    "FileType",
    "FinancialRecord",
    "RecordStatus",
    "detect_file_type",
    "Row",
    "StatusTransition",
]
