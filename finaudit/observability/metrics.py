"""
Prometheus metrics collection for finaudit

This module provides metrics instrumentation for monitoring analysis runs,
anomaly findings and the record lifecycle.
"""
import os

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# ANALYSIS METRICS
# =======================

analyses_total = Counter(
    name="finaudit_analyses_total",
    documentation="Total number of analysis runs by outcome",
    labelnames=["file_type", "outcome"],  # outcome: completed, failed, rejected
    registry=REGISTRY,
)

analysis_duration_seconds = Histogram(
    name="finaudit_analysis_duration_seconds",
    documentation="Time spent analysing one record in seconds",
    labelnames=["file_type"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

rows_extracted = Histogram(
    name="finaudit_rows_extracted",
    documentation="Number of rows extracted per file",
    labelnames=["file_type"],
    buckets=[0, 10, 100, 1000, 10000, 100000, 1000000],
    registry=REGISTRY,
)

# =======================
# FINDINGS METRICS
# =======================

anomalies_total = Counter(
    name="finaudit_anomalies_total",
    documentation="Total number of anomalies found",
    labelnames=["anomaly_type", "severity"],
    registry=REGISTRY,
)

overall_risk_total = Counter(
    name="finaudit_overall_risk_total",
    documentation="Completed analyses by overall risk level",
    labelnames=["risk_level"],
    registry=REGISTRY,
)

# =======================
# LIFECYCLE METRICS
# =======================

status_transitions_total = Counter(
    name="finaudit_status_transitions_total",
    documentation="Record status transitions",
    labelnames=["from_status", "to_status"],
    registry=REGISTRY,
)

errors_total = Counter(
    name="finaudit_errors_total",
    documentation="Total number of errors",
    labelnames=["error_type", "component"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: int | None = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(analysis_duration_seconds, file_type="CSV"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    histogram.labels(**labels).observe(value)


# =======================
# ANALYSIS-SPECIFIC HELPERS
# =======================

def record_analysis_result(file_type: str, anomalies: list, overall_risk_level: str) -> None:
    """
    Record the findings of a completed analysis.

    Args:
        file_type: PDF, Excel or CSV
        anomalies: Anomaly models produced by the engine
        overall_risk_level: Aggregated risk level
    """
    increment_counter(analyses_total, 1, file_type=file_type, outcome="completed")
    increment_counter(overall_risk_total, 1, risk_level=overall_risk_level)
    for anomaly in anomalies:
        increment_counter(anomalies_total, 1, anomaly_type=anomaly.type, severity=anomaly.severity)


def record_analysis_failure(file_type: str, error_type: str) -> None:
    increment_counter(analyses_total, 1, file_type=file_type, outcome="failed")
    increment_counter(errors_total, 1, error_type=error_type, component="analysis")


def record_transition(from_status: str, to_status: str) -> None:
    increment_counter(status_transitions_total, 1, from_status=from_status, to_status=to_status)
