"""
ColumnMapping model declaring which source columns feed each logical field.
"""

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import pandas as pd
from pydantic import BaseModel, Field, field_validator

from .cell_value import MISSING, CellValue, DateValue, NumberValue, TextValue, to_naive_utc

AMOUNT = "amount"
TRANSACTION_ID = "transaction_id"
DATE = "date"

LOGICAL_FIELDS = (AMOUNT, TRANSACTION_ID, DATE)

_UNIX_EPOCH = datetime(1970, 1, 1)
# Days between the spreadsheet epoch (1899-12-30) and the Unix epoch
EXCEL_EPOCH_OFFSET_DAYS = 25569

RELATIVE_DATE_WORDS = frozenset({"now", "today"})


class DateEncoding(str, Enum):
    """How a numeric date cell is turned into a calendar date."""

    EXCEL_SERIAL = "excel_serial"
    UNIX_SECONDS = "unix_seconds"
    UNIX_MILLISECONDS = "unix_milliseconds"
    NONE = "none"


def numeric_to_date(value: float, encoding: DateEncoding) -> datetime | None:
    """
    Convert a numeric date cell using the given encoding.

    Returns None when the encoding is NONE or the value is not finite or out
    of range.
    """
    if encoding is DateEncoding.NONE or not math.isfinite(value):
        return None

    try:
        if encoding is DateEncoding.EXCEL_SERIAL:
            millis = round((value - EXCEL_EPOCH_OFFSET_DAYS) * 86400 * 1000)
        elif encoding is DateEncoding.UNIX_SECONDS:
            millis = round(value * 1000)
        else:
            millis = round(value)
        return _UNIX_EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return None


def parse_date_text(text: str) -> datetime | None:
    """Parse free-form calendar text; None when it is not a date."""
    stripped = text.strip()
    # pandas resolves these to the current clock time
    if stripped.lower() in RELATIVE_DATE_WORDS:
        return None
    parsed = pd.to_datetime(stripped, errors="coerce")
    if pd.isna(parsed):
        return None
    return to_naive_utc(parsed)


def normalize_date_cell(cell: CellValue, encoding: DateEncoding) -> CellValue:
    """
    Resolve a date field cell into a DateValue where possible.

    Numbers go through the date encoding, text is parsed as a calendar date.
    Anything that cannot be resolved is returned unchanged.
    """
    if isinstance(cell, NumberValue):
        converted = numeric_to_date(cell.value, encoding)
        return DateValue(value=converted) if converted is not None else cell
    if isinstance(cell, TextValue):
        parsed = parse_date_text(cell.value)
        return DateValue(value=parsed) if parsed is not None else cell
    return cell


class ColumnMapping(BaseModel):
    """
    Declared contract from logical field to candidate source columns.

    Candidates are tried in order and matched case-sensitively; the first
    column whose cell is not missing supplies the field.

    Attributes:
        amount: Candidate columns for the transaction amount
        transaction_id: Candidate columns for the transaction identifier
        date: Candidate columns for the transaction date
    """

    amount: list[str] = Field(default_factory=lambda: ["Amount", "amount"])
    transaction_id: list[str] = Field(
        default_factory=lambda: ["Transaction ID", "transaction_id", "id"]
    )
    date: list[str] = Field(default_factory=lambda: ["Date", "date"])

    @field_validator("amount", "transaction_id", "date")
    @classmethod
    def check_candidates(cls, v):
        """Each logical field needs at least one non-empty column name."""
        if not v or any(not isinstance(name, str) or not name for name in v):
            raise ValueError("candidate columns must be a non-empty list of column names")
        return v

    def candidates(self, field_name: str) -> list[str]:
        if field_name not in LOGICAL_FIELDS:
            raise KeyError(f"Unknown logical field: {field_name}")
        return getattr(self, field_name)

    def resolve(self, cells: dict[str, CellValue]) -> dict[str, CellValue]:
        """Pick, per logical field, the first candidate cell that is present."""
        resolved: dict[str, CellValue] = {}
        for field_name in LOGICAL_FIELDS:
            value: CellValue = MISSING
            for column in self.candidates(field_name):
                cell = cells.get(column, MISSING)
                if cell.kind != "missing":
                    value = cell
                    break
            resolved[field_name] = value
        return resolved

    def referenced_columns(self) -> set[str]:
        return {column for field_name in LOGICAL_FIELDS for column in self.candidates(field_name)}

    class Config:
        json_schema_extra = {
            "example": {
                "amount": ["Amount", "amount"],
                "transaction_id": ["Transaction ID", "transaction_id", "id"],
                "date": ["Date", "date"],
            }
        }


def default_date_encodings() -> dict[str, DateEncoding]:
    return {
        "Excel": DateEncoding.EXCEL_SERIAL,
        "CSV": DateEncoding.EXCEL_SERIAL,
    }


def coerce_date_encodings(raw: dict[str, Any] | None) -> dict[str, DateEncoding]:
    """Merge user supplied per-file-type encodings over the defaults."""
    encodings = default_date_encodings()
    for file_type, encoding in (raw or {}).items():
        if file_type not in encodings:
            raise ValueError(f"Date encoding given for unsupported file type: {file_type}")
        encodings[file_type] = DateEncoding(encoding)
    return encodings
