"""
AnalysisResult model: the aggregate output of analysing one record.

Persisted as a JSON document with camelCase keys, the shape read by the
reporting layer (summary, anomalies, complianceIssues, overallRiskLevel).
"""

from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

Severity = Literal["Low", "Medium", "High"]
FlagStatus = Literal["Reviewed", "Resolved"]

SEVERITY_ORDER: dict[str, int] = {"Low": 0, "Medium": 1, "High": 2}


class _Document(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_document(cls, document: dict[str, Any]):
        return cls.model_validate(document)


class Anomaly(_Document):
    """
    A single rule-triggered irregularity.

    Attributes:
        type: Category, e.g. "High-Value Transaction"
        description: Text fully determined by the triggering row
        severity: Low, Medium or High
        record_reference: Positional reference ("Row N")
        status: Review state set by staff after analysis
    """

    type: str = Field(..., min_length=1)
    description: str
    severity: Severity
    record_reference: str
    status: FlagStatus | None = None


class ComplianceIssue(_Document):
    """Compliance finding; kept for schema compatibility, never produced by the rule engine."""

    type: str = Field(..., min_length=1)
    description: str
    severity: Severity
    recommendation: str
    status: FlagStatus | None = None


class AnalysisResult(_Document):
    """
    Aggregate output for one record.

    Attributes:
        summary: Human-readable summary including the anomaly count
        anomalies: Findings in rule order, then row order
        compliance_issues: Always empty for rule-based analysis
        overall_risk_level: Worst severity among the anomalies
    """

    summary: str
    anomalies: list[Anomaly] = Field(default_factory=list)
    compliance_issues: list[ComplianceIssue] = Field(default_factory=list)
    overall_risk_level: Severity = "Low"

    def flag_ids(self, record_id: str) -> list[str]:
        ids = [anomaly_flag_id(record_id, i) for i in range(len(self.anomalies))]
        ids.extend(compliance_flag_id(record_id, i) for i in range(len(self.compliance_issues)))
        return ids

    def with_flag_status(self, record_id: str, flag_id: str, status: FlagStatus) -> "AnalysisResult | None":
        """
        Return a copy with one flag's review status set.

        Returns None if no anomaly or compliance issue carries flag_id.
        """
        for index, anomaly in enumerate(self.anomalies):
            if anomaly_flag_id(record_id, index) == flag_id:
                anomalies = list(self.anomalies)
                anomalies[index] = anomaly.model_copy(update={"status": status})
                return self.model_copy(update={"anomalies": anomalies})

        for index, issue in enumerate(self.compliance_issues):
            if compliance_flag_id(record_id, index) == flag_id:
                issues = list(self.compliance_issues)
                issues[index] = issue.model_copy(update={"status": status})
                return self.model_copy(update={"compliance_issues": issues})

        return None

    class Config:
        json_schema_extra = {
            "example": {
                "summary": "Rule-based analysis complete. Found 2 potential anomalies.",
                "anomalies": [
                    {
                        "type": "High-Value Transaction",
                        "description": "Transaction amount of $15000.00 exceeds the threshold of $10000.",
                        "severity": "Medium",
                        "recordReference": "Row 2",
                    },
                    {
                        "type": "Weekend Activity",
                        "description": "Transaction occurred on a weekend (6/8/2024).",
                        "severity": "Low",
                        "recordReference": "Row 2",
                    },
                ],
                "complianceIssues": [],
                "overallRiskLevel": "Medium",
            }
        }


class RiskFlags(BaseModel):
    """Risk summary stored beside the analysis result ({"overall": level})."""

    overall: Severity

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "RiskFlags":
        return cls(overall=result.overall_risk_level)


def anomaly_flag_id(record_id: str, index: int) -> str:
    return f"{record_id}-anomaly-{index}"


def compliance_flag_id(record_id: str, index: int) -> str:
    return f"{record_id}-compliance-{index}"
