"""
CSV reader using pandas.
"""

import csv
import io

import pandas as pd

from finaudit.core.errors import ExtractionError

# Tried in order; latin-1 decodes any byte sequence
ENCODINGS = ("utf-8-sig", "latin-1")


class CSVReader:
    """
    Reads CSV bytes into a raw DataFrame.

    Every cell is read as text and nothing is converted to NaN, so the caller
    sees exactly what the file holds (numbers are recognised later, per cell).
    The first line is returned as data row 0; header handling is the
    extractor's job. Ragged lines are accepted: the frame is as wide as the
    longest line and short lines are padded with NaN.
    """

    def __init__(self, delimiter: str = ","):
        """
        Initialize CSV reader.

        Args:
            delimiter: Field delimiter
        """
        self.delimiter = delimiter

    def read(self, data: bytes) -> pd.DataFrame:
        """
        Read CSV bytes into a DataFrame.

        Args:
            data: Raw file bytes

        Returns:
            DataFrame without header applied (empty for an empty file)

        Raises:
            ExtractionError: If the bytes are not a parseable CSV table
        """
        text = self._decode(data)
        if not text.strip():
            return pd.DataFrame()

        try:
            width = self._max_width(text)
            if width == 0:
                return pd.DataFrame()
            return pd.read_csv(
                io.StringIO(text),
                header=None,
                names=list(range(width)),
                dtype=str,
                keep_default_na=False,
                sep=self.delimiter,
                skip_blank_lines=True,
                quoting=csv.QUOTE_MINIMAL,
            )
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (pd.errors.ParserError, csv.Error, ValueError) as e:
            raise ExtractionError(f"Could not parse CSV file: {e}", file_type="CSV") from e

    def _max_width(self, text: str) -> int:
        """Field count of the longest line, with the same quoting as the parser."""
        reader = csv.reader(io.StringIO(text), delimiter=self.delimiter, quoting=csv.QUOTE_MINIMAL)
        return max((len(fields) for fields in reader), default=0)

    def _decode(self, data: bytes) -> str:
        if b"\x00" in data:
            raise ExtractionError("Could not parse CSV file: binary content", file_type="CSV")
        for encoding in ENCODINGS:
            try:
                return data.decode(encoding)
            except UnicodeDecodeError:
                continue
        raise ExtractionError("Could not decode CSV file", file_type="CSV")
