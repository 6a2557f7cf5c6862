"""
Row model representing one data line extracted from a tabular file (ephemeral).
"""

from typing import Any

from pydantic import BaseModel, Field

from .cell_value import MISSING, CellValue, to_cell_value
from .column_mapping import DATE, ColumnMapping, DateEncoding, normalize_date_cell


class Row(BaseModel):
    """
    One extracted data row.

    Attributes:
        position: 0-based index in the extracted sequence
        cells: Column name -> cell value, in file column order
        fields: Logical field -> cell value, resolved once at extraction
    """

    position: int = Field(..., ge=0)
    cells: dict[str, CellValue] = Field(default_factory=dict)
    fields: dict[str, CellValue] = Field(default_factory=dict)

    class Config:
        frozen = True

    @property
    def reference(self) -> str:
        # 1-based numbering plus the header row
        return f"Row {self.position + 2}"

    def field(self, name: str) -> CellValue:
        return self.fields.get(name, MISSING)

    @classmethod
    def from_mapping(
        cls,
        position: int,
        mapping: dict[str, Any],
        column_mapping: ColumnMapping | None = None,
        date_encoding: DateEncoding = DateEncoding.EXCEL_SERIAL,
        parse_numeric_text: bool = False,
    ) -> "Row":
        """
        Build a row from a plain column -> raw value mapping.

        Args:
            position: 0-based index of the row
            mapping: Column name -> raw parser value
            column_mapping: Logical field contract (defaults apply if None)
            date_encoding: Convention for numeric date cells
            parse_numeric_text: Treat numeric-looking text as numbers

        Returns:
            Row with cells converted and logical fields resolved
        """
        column_mapping = column_mapping or ColumnMapping()
        cells = {
            str(column): to_cell_value(value, parse_numeric_text=parse_numeric_text)
            for column, value in mapping.items()
        }
        fields = column_mapping.resolve(cells)
        fields[DATE] = normalize_date_cell(fields[DATE], date_encoding)
        return cls(position=position, cells=cells, fields=fields)
