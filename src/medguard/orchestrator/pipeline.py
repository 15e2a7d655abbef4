# SPDX-License-Identifier: MIT
"""
Scan orchestration.

Coordinates scanner, scorer, fingerprint engine and folder aggregator for a
single-file or batch scan, then hands the results to the persistence and
alerting collaborators. Per-file work is independent and runs in a bounded
worker pool; everything that combines files happens after the pool drains.
"""
from __future__ import annotations

import logging
import os
import uuid
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from medguard.aggregate.folders import aggregate_folders
from medguard.core.exceptions import ScanFailedError
from medguard.core.findings import RiskLevel, Severity
from medguard.core.requests import (
    FileDescriptor,
    FileScanRequest,
    FolderScanRequest,
    parse_request,
)
from medguard.core.results import (
    FileFingerprintLink,
    FileScanResult,
    FileStatus,
    ScanRecord,
    ScanStatus,
    ScanSummary,
    ScanType,
)
from medguard.detectors import build_registry
from medguard.fingerprint import FingerprintEngine, FingerprintIndex, FingerprintRecord
from medguard.risk.score import max_risk_level, mean_risk_score, score_findings
from medguard.scanner import ContentScanner
from medguard.scanner.config import apply_scanner_defaults

from .collaborators import (
    Alert,
    AlertSink,
    AlertType,
    InMemoryRepository,
    LoggingAlertSink,
    ScanRepository,
)

logger = logging.getLogger(__name__)


def scan_file(
    scanner: ContentScanner,
    engine: FingerprintEngine,
    file_id: str,
    descriptor: FileDescriptor,
) -> FileScanResult:
    """Scanner -> scorer -> fingerprint for one file. Pure; safe in any worker."""
    findings = scanner.scan(descriptor.content, descriptor.file_name)
    risk_score, risk_level = score_findings(findings)
    # Metadata-only files are scored from placeholder text; never fingerprint that.
    fingerprint = engine.fingerprint(findings, descriptor.content) if descriptor.content else None
    return FileScanResult(
        file_id=file_id,
        file_name=descriptor.file_name,
        logical_path=descriptor.path,
        risk_score=risk_score,
        risk_level=risk_level,
        phi_count=sum(f.occurrences for f in findings),
        findings=tuple(findings),
        fingerprint=fingerprint,
        size_bytes=descriptor.size_bytes,
        mime_type=descriptor.mime_type,
    )


class ScanOrchestrator:
    """Runs scans end to end and reports to the collaborators."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        repository: Optional[ScanRepository] = None,
        alert_sink: Optional[AlertSink] = None,
        scanner: Optional[ContentScanner] = None,
        engine: Optional[FingerprintEngine] = None,
    ) -> None:
        self.config = apply_scanner_defaults(config or {})
        self.scanner = scanner or ContentScanner(
            build_registry(self.config), confidence=self.config["confidence"]
        )
        self.engine = engine or FingerprintEngine(self.config["fingerprint"]["buckets"])
        self.repository = repository if repository is not None else InMemoryRepository()
        self.alert_sink = alert_sink if alert_sink is not None else LoggingAlertSink()
        self._indexes: Dict[str, FingerprintIndex] = {}

    # -- public API ----------------------------------------------------

    def run_single_file_scan(self, request) -> ScanSummary:
        """
        Scan one file.

        Args:
            request: FileScanRequest or an equivalent mapping

        Returns:
            ScanSummary whose overall score equals the file's score

        Raises:
            ScanInputError: If the request lacks required fields
            ScanFailedError: If no summary could be produced
        """
        req = parse_request(FileScanRequest, request)
        record = ScanRecord(
            scan_id=str(uuid.uuid4()),
            org_id=req.org_id,
            scan_type=ScanType.FILE,
            total_files=1,
            user_id=req.user_id,
            source_label=req.source_label,
        )
        return self._run(record, [req.file], root_path="")

    def run_batch_scan(self, request) -> ScanSummary:
        """
        Scan a folder's worth of files.

        Args:
            request: FolderScanRequest or an equivalent mapping

        Returns:
            ScanSummary with per-file results and folder rollups

        Raises:
            ScanInputError: If the request lacks required fields or has no files
            ScanFailedError: If no summary could be produced
        """
        req = parse_request(FolderScanRequest, request)
        record = ScanRecord(
            scan_id=str(uuid.uuid4()),
            org_id=req.org_id,
            scan_type=ScanType.FOLDER,
            total_files=len(req.files),
            user_id=req.user_id,
            source_label=req.source_label,
            source_type=req.source_type.value if req.source_type else None,
            root_path=req.root_path,
        )
        return self._run(record, req.files, root_path=req.root_path)

    def fingerprint_index(self, org_id: str) -> FingerprintIndex:
        index = self._indexes.get(org_id)
        return index if index is not None else FingerprintIndex()

    def duplicates_of(self, org_id: str, file_id: str) -> List[str]:
        """Files of *org_id* sharing a fingerprint with *file_id*."""
        index = self._indexes.get(org_id)
        if index is None:
            return []
        return index.duplicates_of(file_id)

    # -- pipeline ------------------------------------------------------

    def _run(
        self, record: ScanRecord, descriptors: Sequence[FileDescriptor], root_path: str
    ) -> ScanSummary:
        failures: List[str] = []
        self._persist(failures, "scan", self.repository.save_scan, record)

        try:
            results = self._scan_files(record, descriptors, failures)
            links, proliferated = self._link_fingerprints(record.org_id, results)
            aggregates = aggregate_folders(results, root_path)
            scanned = [r for r in results if r.scanned]
            record.overall_risk_score = mean_risk_score(r.risk_score for r in scanned)
            record.overall_risk_level = max_risk_level(r.risk_level for r in scanned)
            record.total_phi_count = sum(r.phi_count for r in results)
            record.transition(ScanStatus.COMPLETED)
        except Exception as e:
            logger.exception("Scan %s could not be completed", record.scan_id)
            record.error_message = str(e)
            if record.status not in (ScanStatus.COMPLETED, ScanStatus.FAILED):
                record.transition(ScanStatus.FAILED)
            self._persist(failures, "scan", self.repository.save_scan, record)
            raise ScanFailedError(f"Scan could not be completed: {e}", scan_id=record.scan_id) from e

        self._persist(failures, "scan", self.repository.save_scan, record)
        for result in results:
            self._persist(
                failures, result.file_id, self.repository.save_file_result,
                record.org_id, record.scan_id, result,
            )
        self._persist(
            failures, "folders", self.repository.save_folder_aggregates,
            record.org_id, record.scan_id, aggregates,
        )
        index = self._indexes.setdefault(record.org_id, FingerprintIndex())
        for link in links:
            self._persist(
                failures, link.file_id, self.repository.save_fingerprint,
                record.org_id, index.record(link.fingerprint_hash),
            )
            self._persist(
                failures, link.file_id, self.repository.save_fingerprint_link,
                record.org_id, link,
            )

        alert_failures = self._raise_alerts(record, results, proliferated)

        summary = ScanSummary(
            scan_id=record.scan_id,
            org_id=record.org_id,
            scan_type=record.scan_type,
            status=record.status,
            file_count=len(results),
            total_phi_count=record.total_phi_count,
            overall_risk_score=record.overall_risk_score,
            overall_risk_level=record.overall_risk_level,
            file_results=tuple(results),
            folder_aggregates=tuple(aggregates),
            links=tuple(links),
            source_label=record.source_label,
            source_type=record.source_type,
            root_path=record.root_path,
            started_at=record.started_at,
            completed_at=record.completed_at,
            persistence_failures=tuple(dict.fromkeys(failures)),
            alert_failures=alert_failures,
        )
        logger.info(
            "Scan %s completed: %d files, %d PHI, overall %s (%d)",
            summary.scan_id,
            summary.file_count,
            summary.total_phi_count,
            summary.overall_risk_level.value,
            summary.overall_risk_score,
        )
        if summary.partial:
            logger.warning(
                "Scan %s completed with collaborator failures: %d persistence, %d alerts",
                summary.scan_id,
                len(summary.persistence_failures),
                summary.alert_failures,
            )
        return summary

    def _scan_files(
        self, record: ScanRecord, descriptors: Sequence[FileDescriptor], failures: List[str]
    ) -> List[FileScanResult]:
        """Run every file through the pool; results come back in input order."""
        file_ids = [d.file_id or str(uuid.uuid4()) for d in descriptors]
        workers = self.config["max_workers"] or os.cpu_count() or 1
        workers = max(1, min(workers, len(descriptors)))
        pool_cls = ProcessPoolExecutor if self.config["executor"] == "process" else ThreadPoolExecutor
        timeout = self.config["batch_timeout_seconds"]

        pool = pool_cls(max_workers=workers)
        try:
            futures = [
                pool.submit(scan_file, self.scanner, self.engine, file_id, descriptor)
                for file_id, descriptor in zip(file_ids, descriptors)
            ]
            record.transition(ScanStatus.RUNNING)
            self._persist(failures, "scan", self.repository.save_scan, record)
            done, _ = wait(futures, timeout=timeout)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        results = []
        for file_id, descriptor, future in zip(file_ids, descriptors, futures):
            if future not in done:
                logger.warning("File %s not scanned before batch timeout", descriptor.file_name)
                results.append(self._unscanned(file_id, descriptor, FileStatus.NOT_SCANNED, "batch timeout"))
                continue
            error = future.exception()
            if error is not None:
                logger.error("Scanning %s failed: %s", descriptor.file_name, error)
                results.append(self._unscanned(file_id, descriptor, FileStatus.FAILED, str(error)))
                continue
            results.append(future.result())
        return results

    @staticmethod
    def _unscanned(
        file_id: str, descriptor: FileDescriptor, status: FileStatus, error: str
    ) -> FileScanResult:
        return FileScanResult.unscanned(
            file_id=file_id,
            file_name=descriptor.file_name,
            logical_path=descriptor.path,
            status=status,
            error=error,
            size_bytes=descriptor.size_bytes,
            mime_type=descriptor.mime_type,
        )

    def _link_fingerprints(
        self, org_id: str, results: Sequence[FileScanResult]
    ) -> Tuple[List[FileFingerprintLink], List[Tuple[FingerprintRecord, str]]]:
        """Register fingerprints; also report those reaching the proliferation threshold."""
        index = self._indexes.setdefault(org_id, FingerprintIndex())
        threshold = self.config["alerts"]["proliferation_threshold"]
        links = []
        proliferated = []
        for result in results:
            if result.fingerprint is None:
                continue
            link = index.link(result.file_id, result.fingerprint, result.findings)
            links.append(link)
            fp_record = index.record(link.fingerprint_hash)
            if threshold and result.findings and fp_record.occurrence_count == threshold:
                proliferated.append((fp_record, result.file_id))
        return links, proliferated

    def _raise_alerts(
        self,
        record: ScanRecord,
        results: Sequence[FileScanResult],
        proliferated: Sequence[Tuple[FingerprintRecord, str]],
    ) -> int:
        """Hand alerts to the sink; returns how many hand-offs failed."""
        failed = 0
        for result in results:
            if not (result.scanned and result.risk_level.is_high_risk):
                continue
            alert = Alert(
                org_id=record.org_id,
                alert_type=AlertType.HIGH_FILE_RISK,
                severity=Severity.CRITICAL if result.risk_level is RiskLevel.CRITICAL else Severity.HIGH,
                title=f"High-risk file detected: {result.file_name}",
                description=(
                    f"File contains {result.phi_count} PHI instances "
                    f"with risk score {result.risk_score}"
                ),
                related_scan_id=record.scan_id,
                related_file_id=result.file_id,
            )
            failed += self._notify(alert)

        for fp_record, file_id in proliferated:
            categories = ", ".join(sorted(c.value for c in fp_record.fingerprint.categories))
            alert = Alert(
                org_id=record.org_id,
                alert_type=AlertType.DUPLICATE_PHI,
                severity=Severity.HIGH,
                title="Same PHI pattern found across multiple files",
                description=(
                    f"Fingerprint {fp_record.hash[:12]} ({categories}) "
                    f"now appears in {fp_record.occurrence_count} files"
                ),
                related_scan_id=record.scan_id,
                related_file_id=file_id,
            )
            failed += self._notify(alert)
        return failed

    def _notify(self, alert: Alert) -> int:
        try:
            self.alert_sink.send(alert)
            return 0
        except Exception:
            logger.exception(
                "Alert hand-off failed for %s (file %s)",
                alert.alert_type.value,
                alert.related_file_id,
            )
            return 1

    @staticmethod
    def _persist(failures: List[str], key: str, operation: Callable[..., None], *args) -> None:
        try:
            operation(*args)
        except Exception:
            logger.exception("Persistence hand-off %s failed for %s", operation.__name__, key)
            failures.append(key)
