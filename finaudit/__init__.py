"""
finaudit - rule-based anomaly analysis for uploaded financial records.
"""

__version__ = "0.1.0"
