"""
Tagged cell values for extracted rows.

A parsed spreadsheet cell is one of number, text, date or missing. Rules
inspect the tag instead of probing runtime types of raw parser output.
"""

import math
import numbers
import re
from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Literal, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

_NUMERIC_TEXT = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def format_number(value: float) -> str:
    """Render a number the way a spreadsheet coerces it to text (1001.0 -> "1001")."""
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    value: float

    class Config:
        frozen = True

    def as_text(self) -> str:
        return format_number(self.value)


class TextValue(BaseModel):
    kind: Literal["text"] = "text"
    value: str

    class Config:
        frozen = True

    def as_text(self) -> str:
        return self.value


class DateValue(BaseModel):
    """A calendar timestamp, always naive and expressed in UTC."""

    kind: Literal["date"] = "date"
    value: datetime

    class Config:
        frozen = True

    def as_text(self) -> str:
        return self.value.isoformat()

    def localized(self) -> str:
        """Short US-style date, e.g. 6/8/2024."""
        return f"{self.value.month}/{self.value.day}/{self.value.year}"

    def is_weekend(self) -> bool:
        # Monday=0 ... Saturday=5, Sunday=6
        return self.value.weekday() >= 5


class MissingValue(BaseModel):
    kind: Literal["missing"] = "missing"

    class Config:
        frozen = True

    def as_text(self) -> str:
        return ""


CellValue = Annotated[
    Union[NumberValue, TextValue, DateValue, MissingValue],
    Field(discriminator="kind"),
]

MISSING = MissingValue()


def to_naive_utc(value: datetime) -> datetime:
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def to_cell_value(raw: Any, parse_numeric_text: bool = False) -> CellValue:
    """
    Convert a raw parser value into a tagged cell value.

    Args:
        raw: Value produced by the spreadsheet/CSV parser
        parse_numeric_text: Turn plain decimal literals in text into numbers

    Returns:
        NumberValue, TextValue, DateValue or MissingValue
    """
    if isinstance(raw, (NumberValue, TextValue, DateValue, MissingValue)):
        return raw

    # None, NaN and NaT all mean an empty cell
    if not isinstance(raw, str) and pd.api.types.is_scalar(raw) and pd.isna(raw):
        return MISSING

    if isinstance(raw, (bool, np.bool_)):
        return TextValue(value="true" if raw else "false")

    if isinstance(raw, datetime):
        return DateValue(value=to_naive_utc(raw))

    if isinstance(raw, date):
        return DateValue(value=datetime.combine(raw, time()))

    if isinstance(raw, numbers.Real):
        return NumberValue(value=float(raw))

    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped:
            return MISSING
        if parse_numeric_text and _NUMERIC_TEXT.fullmatch(stripped):
            return NumberValue(value=float(stripped))
        return TextValue(value=raw)

    return TextValue(value=str(raw))
