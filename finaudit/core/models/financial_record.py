"""
FinancialRecord model representing one uploaded file under audit.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .analysis_result import AnalysisResult, RiskFlags

RecordStatus = Literal["pending", "processing", "analyzing", "completed", "failed"]
FileType = Literal["PDF", "Excel", "CSV"]

RECORD_STATUSES: tuple[str, ...] = ("pending", "processing", "analyzing", "completed", "failed")
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})
IN_PROGRESS_STATUSES: frozenset[str] = frozenset({"pending", "processing", "analyzing"})


def detect_file_type(file_name: str) -> FileType:
    """Classify an upload by extension; anything not PDF or Excel is treated as CSV."""
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    if extension == "pdf":
        return "PDF"
    if extension in ("xls", "xlsx"):
        return "Excel"
    return "CSV"


class FinancialRecord(BaseModel):
    """
    A single uploaded file under audit.

    Attributes:
        record_id: Opaque unique identifier
        file_name: Original file name
        file_path: Blob store key of the file bytes
        file_type: PDF, Excel or CSV
        file_size: Size in bytes
        organization_id: Owning organization
        uploaded_by: Uploading user
        status: Lifecycle state
        analysis_results: Present iff status is "completed"
        risk_flags: Overall risk derived from analysis_results
        created_at: Registration timestamp
    """

    record_id: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_path: str
    file_type: FileType
    file_size: int = Field(..., ge=0)
    organization_id: str
    uploaded_by: str
    status: RecordStatus = "pending"
    analysis_results: AnalysisResult | None = None
    risk_flags: RiskFlags | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def check_result_consistency(self):
        """Results exist only on completed records and the risk flag mirrors them."""
        if self.status == "completed" and self.analysis_results is None:
            raise ValueError("completed record must carry analysis_results")
        if self.status != "completed" and self.analysis_results is not None:
            raise ValueError(f"analysis_results present on a record with status '{self.status}'")
        if self.analysis_results is None and self.risk_flags is not None:
            raise ValueError("risk_flags present without analysis_results")
        if (
            self.analysis_results is not None
            and self.risk_flags is not None
            and self.risk_flags.overall != self.analysis_results.overall_risk_level
        ):
            raise ValueError("risk_flags.overall does not match analysis_results.overall_risk_level")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    class Config:
        json_schema_extra = {
            "example": {
                "record_id": "5b0e4f8e-7c1e-4c59-9b39-1f0c0d5f3f7a",
                "file_name": "ledger_q2.xlsx",
                "file_path": "org_42/0c9a...-ledger_q2.xlsx",
                "file_type": "Excel",
                "file_size": 18234,
                "organization_id": "org_42",
                "uploaded_by": "user_7",
                "status": "completed",
                "risk_flags": {"overall": "Medium"},
            }
        }
