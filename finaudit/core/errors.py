"""
Error taxonomy for record analysis.

Every error propagates to the immediate caller; nothing here is retried.
"""


class FinauditError(Exception):
    """Base class for all finaudit errors."""


class ExtractionError(FinauditError):
    """Raised when source bytes cannot be parsed as a table."""

    def __init__(self, message: str, file_type: str | None = None):
        self.file_type = file_type
        super().__init__(message)


class UnsupportedFileTypeError(ExtractionError):
    """Raised when extraction is requested for a file type with no reader (PDF)."""


class PreconditionError(FinauditError):
    """Raised when an operation is requested on a record in the wrong state."""

    def __init__(self, message: str, record_id: str | None = None, status: str | None = None):
        self.record_id = record_id
        self.status = status
        super().__init__(message)


class PersistenceError(FinauditError):
    """Raised when a record store read or write fails."""


class RecordNotFoundError(FinauditError):
    """Raised when a record id does not exist."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class BlobStoreError(FinauditError):
    """Raised when file bytes cannot be stored, fetched or removed."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class AuthorizationError(FinauditError):
    """Raised when a caller acts on a record owned by another organization."""


class FlagNotFoundError(FinauditError):
    """Raised when a risk flag id does not match any anomaly or compliance issue."""

    def __init__(self, flag_id: str):
        self.flag_id = flag_id
        super().__init__(f"Specified risk flag not found in the record: {flag_id}")
