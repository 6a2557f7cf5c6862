"""
Readers turning raw file bytes into a headerless pandas DataFrame.
"""

from .csv_reader import CSVReader
from .excel_reader import ExcelReader
from .file_reader import FileReader

__all__ = [
    "CSVReader",
    "ExcelReader",
    "FileReader",
]
