"""
Tabular data extraction for uploaded financial files.
"""

from .extractor import TabularExtractor
from .readers import CSVReader, ExcelReader, FileReader

__all__ = [
    "TabularExtractor",
    "CSVReader",
    "ExcelReader",
    "FileReader",
]
