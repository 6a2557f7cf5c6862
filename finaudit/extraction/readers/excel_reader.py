"""
Excel reader using pandas (openpyxl engine for .xlsx).
"""

import io

import pandas as pd

from finaudit.core.errors import ExtractionError


class ExcelReader:
    """
    Reads the first worksheet of an Excel workbook into a raw DataFrame.

    Other sheets are ignored. Cells keep the types the workbook stores
    (numbers, text, datetimes); empty cells are empty strings or NaN.
    """

    def read(self, data: bytes) -> pd.DataFrame:
        """
        Read workbook bytes into a DataFrame.

        Args:
            data: Raw file bytes

        Returns:
            DataFrame of the first sheet, header not applied

        Raises:
            ExtractionError: If the bytes are not a readable workbook
        """
        if not data:
            raise ExtractionError("Could not parse Excel file: empty content", file_type="Excel")

        try:
            with pd.ExcelFile(io.BytesIO(data)) as workbook:
                if not workbook.sheet_names:
                    return pd.DataFrame()
                # Text such as "NA" or "null" is data, only empty cells are missing
                return workbook.parse(workbook.sheet_names[0], header=None, keep_default_na=False)
        except ImportError as e:
            # Legacy .xls needs an engine that may not be installed
            raise ExtractionError(f"No reader available for this workbook format: {e}", file_type="Excel") from e
        except Exception as e:
            raise ExtractionError(f"Could not parse Excel file: {e}", file_type="Excel") from e
