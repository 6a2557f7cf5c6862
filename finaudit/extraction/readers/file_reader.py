"""
Generic file reader dispatching on declared file type.
"""

import pandas as pd

from finaudit.core.errors import UnsupportedFileTypeError

from .csv_reader import CSVReader
from .excel_reader import ExcelReader


class FileReader:
    """
    Generic file reader supporting Excel and CSV uploads.
    """

    def __init__(self, csv_reader: CSVReader | None = None, excel_reader: ExcelReader | None = None):
        self.csv_reader = csv_reader or CSVReader()
        self.excel_reader = excel_reader or ExcelReader()

    def read(self, data: bytes, file_type: str) -> pd.DataFrame:
        """
        Read file bytes into a raw DataFrame.

        Args:
            data: Raw file bytes
            file_type: Declared type (Excel, CSV)

        Returns:
            DataFrame with the header still in row 0

        Raises:
            UnsupportedFileTypeError: For PDF or unknown types
            ExtractionError: If the bytes cannot be parsed
        """
        if file_type == "Excel":
            return self.excel_reader.read(data)
        elif file_type == "CSV":
            return self.csv_reader.read(data)
        else:
            raise UnsupportedFileTypeError(
                f"Tabular extraction is not supported for file type: {file_type}",
                file_type=file_type,
            )
