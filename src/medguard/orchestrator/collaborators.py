# SPDX-License-Identifier: MIT
"""
Persistence and alerting collaborators for the scan orchestrator.

The orchestrator only depends on the two protocols below. Storage engines
and alert transports live behind them; the in-memory versions back the CLI
and the tests.
"""
from __future__ import annotations

import json
import logging
import threading
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, TYPE_CHECKING

from medguard.core.findings import Severity
from medguard.core.results import (
    FileFingerprintLink,
    FileScanResult,
    FolderAggregate,
    ScanRecord,
)

if TYPE_CHECKING:
    from medguard.fingerprint import FingerprintRecord
    from medguard.orchestrator.snapshots import RiskSnapshot

logger = logging.getLogger(__name__)


# -- persistence ------------------------------------------------------------


class ScanRepository(Protocol):
    """Storage for scans, files, findings, folder rollups and fingerprints."""

    def save_scan(self, record: ScanRecord) -> None:
        """Insert or update a scan record."""
        ...

    def save_file_result(self, org_id: str, scan_id: str, result: FileScanResult) -> None:
        """Insert a scanned file together with its findings."""
        ...

    def save_folder_aggregates(
        self, org_id: str, scan_id: str, aggregates: Sequence[FolderAggregate]
    ) -> None:
        ...

    def save_fingerprint(self, org_id: str, record: "FingerprintRecord") -> None:
        """Insert or update an organisation-wide fingerprint."""
        ...

    def save_fingerprint_link(self, org_id: str, link: FileFingerprintLink) -> None:
        ...

    def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        ...

    def get_file(self, file_id: str) -> Optional[FileScanResult]:
        ...

    def list_file_results(self, scan_id: str) -> List[FileScanResult]:
        ...

    def list_folder_aggregates(self, scan_id: str) -> List[FolderAggregate]:
        ...

    def list_fingerprint_links(self, file_id: str) -> List[FileFingerprintLink]:
        ...

    def get_risk_snapshot(self, org_id: str, snapshot_date: date) -> Optional["RiskSnapshot"]:
        ...

    def save_risk_snapshot(self, snapshot: "RiskSnapshot") -> None:
        ...


class InMemoryRepository:
    """Dictionary-backed :class:`ScanRepository`."""

    def __init__(self) -> None:
        self.scans: Dict[str, ScanRecord] = {}
        self.files: Dict[str, FileScanResult] = {}
        self.files_by_scan: Dict[str, List[str]] = {}
        self.folders: Dict[str, List[FolderAggregate]] = {}
        self.fingerprints: Dict[tuple, "FingerprintRecord"] = {}
        self.links: Dict[str, List[FileFingerprintLink]] = {}
        self.snapshots: Dict[tuple, "RiskSnapshot"] = {}
        self._lock = threading.Lock()

    def save_scan(self, record: ScanRecord) -> None:
        with self._lock:
            self.scans[record.scan_id] = record

    def save_file_result(self, org_id: str, scan_id: str, result: FileScanResult) -> None:
        with self._lock:
            if result.file_id not in self.files:
                self.files_by_scan.setdefault(scan_id, []).append(result.file_id)
            self.files[result.file_id] = result

    def save_folder_aggregates(
        self, org_id: str, scan_id: str, aggregates: Sequence[FolderAggregate]
    ) -> None:
        with self._lock:
            self.folders[scan_id] = list(aggregates)

    def save_fingerprint(self, org_id: str, record: "FingerprintRecord") -> None:
        with self._lock:
            self.fingerprints[(org_id, record.hash)] = record

    def save_fingerprint_link(self, org_id: str, link: FileFingerprintLink) -> None:
        with self._lock:
            self.links.setdefault(link.file_id, []).append(link)

    def get_scan(self, scan_id: str) -> Optional[ScanRecord]:
        return self.scans.get(scan_id)

    def get_file(self, file_id: str) -> Optional[FileScanResult]:
        return self.files.get(file_id)

    def list_file_results(self, scan_id: str) -> List[FileScanResult]:
        """Files of a scan, highest risk first."""
        results = [self.files[fid] for fid in self.files_by_scan.get(scan_id, [])]
        return sorted(results, key=lambda r: r.risk_score, reverse=True)

    def list_folder_aggregates(self, scan_id: str) -> List[FolderAggregate]:
        """Folder rollups of a scan, highest average risk first."""
        return sorted(self.folders.get(scan_id, []), key=lambda a: a.avg_risk_score, reverse=True)

    def list_fingerprint_links(self, file_id: str) -> List[FileFingerprintLink]:
        return list(self.links.get(file_id, []))

    def get_risk_snapshot(self, org_id: str, snapshot_date: date) -> Optional["RiskSnapshot"]:
        return self.snapshots.get((org_id, snapshot_date))

    def save_risk_snapshot(self, snapshot: "RiskSnapshot") -> None:
        with self._lock:
            self.snapshots[(snapshot.org_id, snapshot.snapshot_date)] = snapshot


# -- alerting ---------------------------------------------------------------


class AlertType(Enum):
    HIGH_FILE_RISK = "HIGH_FILE_RISK"
    DUPLICATE_PHI = "DUPLICATE_PHI"


@dataclass(frozen=True)
class Alert:
    """Notification handed to the alerting collaborator."""

    org_id: str
    alert_type: AlertType
    severity: Severity
    title: str
    description: str
    related_scan_id: Optional[str] = None
    related_file_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "org_id": self.org_id,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "related_scan_id": self.related_scan_id,
            "related_file_id": self.related_file_id,
        }


class AlertSink(Protocol):
    """Fire-and-forget alert delivery."""

    def send(self, alert: Alert) -> None:
        ...


class LoggingAlertSink:
    """Writes alerts to the log. Default sink for local runs."""

    def send(self, alert: Alert) -> None:
        logger.warning(
            "[%s] %s: %s",
            alert.severity.value,
            alert.alert_type.value,
            alert.title,
            extra={"alert": alert.to_dict()},
        )


class InMemoryAlertSink:
    """Collects alerts in a list."""

    def __init__(self) -> None:
        self.alerts: List[Alert] = []

    def send(self, alert: Alert) -> None:
        self.alerts.append(alert)


class WebhookAlertSink:
    """
    POSTs alerts as JSON to a webhook from a background thread.

    ``send`` only queues the delivery; failures are logged by the worker and
    never reach the scan.
    """

    def __init__(self, url: str, token: str = "", timeout: float = 15.0) -> None:
        self.url = url
        self.token = token
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="medguard-alerts")

    def send(self, alert: Alert) -> None:
        self._executor.submit(self._deliver, alert)

    def _deliver(self, alert: Alert) -> None:
        data = json.dumps(alert.to_dict()).encode("utf-8")
        req = urllib.request.Request(
            self.url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "X-Agent-Token": self.token or "",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                logger.debug("Alert webhook HTTP %s", resp.getcode())
        except Exception as e:
            logger.error("Alert webhook delivery failed for %s: %s", alert.alert_type.value, e)

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
