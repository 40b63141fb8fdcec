"""Anomaly detection over extracted placement fields."""

from .detector import RULES, AnomalyRule, detect_anomalies, format_anomaly_report, is_valid_url

__all__ = ["RULES", "AnomalyRule", "detect_anomalies", "format_anomaly_report", "is_valid_url"]
