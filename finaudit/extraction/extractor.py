"""
Tabular extractor: raw file bytes -> ordered rows keyed by column name.

The first row of the first sheet supplies column names. Blank rows are
skipped and do not consume a row position, so "Row N" references count
data rows as they appear in the extracted sequence.
"""

from typing import Any

import pandas as pd

from finaudit.core.errors import ExtractionError
from finaudit.core.models import ColumnMapping, DateEncoding, Row
from finaudit.core.models.cell_value import to_cell_value
from finaudit.core.models.column_mapping import default_date_encodings
from finaudit.core.rules.rule_config import EngineConfig
from finaudit.observability import metrics
from finaudit.observability.logger import get_logger

from .readers import FileReader

logger = get_logger(__name__)

EMPTY_HEADER = "__EMPTY"


class TabularExtractor:
    """
    Converts Excel/CSV bytes into Row models.

    Logical fields (amount, transaction id, date) are resolved here, once per
    row, using the declared column mapping and the file type's date encoding.
    """

    def __init__(
        self,
        column_mapping: ColumnMapping | None = None,
        date_encodings: dict[str, DateEncoding] | None = None,
        reader: FileReader | None = None,
    ):
        """
        Initialize extractor.

        Args:
            column_mapping: Logical field contract (defaults if None)
            date_encodings: Numeric date convention per file type
            reader: File reader (defaults to pandas-backed FileReader)
        """
        self.column_mapping = column_mapping or ColumnMapping()
        self.date_encodings = date_encodings or default_date_encodings()
        self.reader = reader or FileReader()

    @classmethod
    def from_config(cls, config: EngineConfig) -> "TabularExtractor":
        return cls(column_mapping=config.column_mapping, date_encodings=config.date_encodings)

    def extract(self, data: bytes, file_type: str) -> list[Row]:
        """
        Extract rows from file bytes.

        Args:
            data: Raw file bytes
            file_type: Declared type (Excel or CSV)

        Returns:
            Rows in file order; empty list for an empty sheet

        Raises:
            ExtractionError: If the bytes cannot be parsed as a table
        """
        frame = self.reader.read(data, file_type)
        try:
            rows = self._rows_from_frame(frame, file_type)
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Could not build rows from {file_type} file: {e}", file_type=file_type) from e

        metrics.observe_histogram(metrics.rows_extracted, len(rows), file_type=file_type)
        logger.debug(
            f"Extracted {len(rows)} rows",
            extra={"file_type": file_type, "row_count": len(rows)},
        )
        return rows

    def _rows_from_frame(self, frame: pd.DataFrame, file_type: str) -> list[Row]:
        if frame.empty:
            return []

        header = self._header(frame.iloc[0].tolist())
        encoding = self.date_encodings.get(file_type, DateEncoding.EXCEL_SERIAL)
        # CSV carries no cell types, so numeric literals are recognised per cell
        parse_numeric_text = file_type == "CSV"

        rows: list[Row] = []
        for values in frame.iloc[1:].itertuples(index=False, name=None):
            mapping = self._row_mapping(header, values)
            if not mapping:
                continue
            rows.append(
                Row.from_mapping(
                    position=len(rows),
                    mapping=mapping,
                    column_mapping=self.column_mapping,
                    date_encoding=encoding,
                    parse_numeric_text=parse_numeric_text,
                )
            )
        return rows

    @staticmethod
    def _header(raw_header: list[Any]) -> list[str]:
        """Column names from the first row; blanks and repeats get suffixed names."""
        names: list[str] = []
        seen: dict[str, int] = {}
        for raw in raw_header:
            cell = to_cell_value(raw)
            name = cell.as_text().strip() if cell.kind != "missing" else EMPTY_HEADER
            if name in seen:
                seen[name] += 1
                name = f"{name}_{seen[name]}"
            else:
                seen[name] = 0
            names.append(name)
        return names

    @staticmethod
    def _row_mapping(header: list[str], values: tuple) -> dict[str, Any]:
        """Keep only non-empty cells, as a spreadsheet-to-JSON export would."""
        mapping: dict[str, Any] = {}
        for column, value in zip(header, values):
            if to_cell_value(value).kind == "missing":
                continue
            mapping[column] = value
        return mapping
