"""
Risk aggregation: reduce findings to one overall severity.
"""

from collections.abc import Iterable

from finaudit.core.models import AnalysisResult, Anomaly, Severity

PDF_PLACEHOLDER_SUMMARY = (
    "Automated analysis for PDF files is not supported in this version. "
    "The record has been marked as complete."
)


def aggregate_risk(anomalies: Iterable[Anomaly]) -> Severity:
    """
    Strict precedence, not a weighted score: one High among any number of
    Low findings is still High. No findings is Low.
    """
    severities = {anomaly.severity for anomaly in anomalies}
    if "High" in severities:
        return "High"
    if "Medium" in severities:
        return "Medium"
    return "Low"


def rule_based_summary(anomaly_count: int) -> str:
    return f"Rule-based analysis complete. Found {anomaly_count} potential anomalies."


def placeholder_result() -> AnalysisResult:
    """Result for file types the engine cannot read (PDF)."""
    return AnalysisResult(
        summary=PDF_PLACEHOLDER_SUMMARY,
        anomalies=[],
        compliance_issues=[],
        overall_risk_level="Low",
    )
