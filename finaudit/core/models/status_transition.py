"""
StatusTransition model: audit-trail entry for a record lifecycle change.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .financial_record import RecordStatus


class StatusTransition(BaseModel):
    """
    One lifecycle transition of a record.

    Attributes:
        transition_id: Auto-increment primary key
        record_id: Which record changed state
        from_status: Status before the transition
        to_status: Status after the transition
        actor: Who triggered it ("system" for the analysis run)
        reason: Free text, e.g. the failure message or reset justification
        created_at: When the transition happened
    """

    transition_id: int | None = None
    record_id: str = Field(..., min_length=1)
    from_status: RecordStatus
    to_status: RecordStatus
    actor: str = "system"
    reason: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "transition_id": 1,
                "record_id": "5b0e4f8e-7c1e-4c59-9b39-1f0c0d5f3f7a",
                "from_status": "failed",
                "to_status": "pending",
                "actor": "auditor@example.com",
                "reason": "Re-uploaded corrected workbook",
            }
        }
