"""Scan orchestration and its collaborators."""

from .collaborators import (
    Alert,
    AlertSink,
    AlertType,
    InMemoryAlertSink,
    InMemoryRepository,
    LoggingAlertSink,
    ScanRepository,
    WebhookAlertSink,
)
from .pipeline import ScanOrchestrator, scan_file

__all__ = [
    "Alert",
    "AlertSink",
    "AlertType",
    "InMemoryAlertSink",
    "InMemoryRepository",
    "LoggingAlertSink",
    "ScanOrchestrator",
    "ScanRepository",
    "WebhookAlertSink",
    "scan_file",
]
