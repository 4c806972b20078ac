"""Security event ingestion, alerting, and aggregation."""

from compliance_pipeline.security.alerts import AlertDispatcher
from compliance_pipeline.security.bruteforce import BruteForceAggregator, group_by_source
from compliance_pipeline.security.ingestor import EventIngestor
from compliance_pipeline.security.monitor import SecurityMonitor

__all__ = [
    "AlertDispatcher",
    "BruteForceAggregator",
    "EventIngestor",
    "SecurityMonitor",
    "group_by_source",
]
