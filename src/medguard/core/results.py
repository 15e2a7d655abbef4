"""Scan result structures produced by the MedGuard pipeline."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple, FrozenSet

from medguard.core.findings import Finding, PhiCategory, RiskLevel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FileStatus(Enum):
    """Outcome of one file's pipeline within a scan."""

    SCANNED = "scanned"
    NOT_SCANNED = "not_scanned"  # batch timeout hit before the file finished
    FAILED = "failed"


class ScanStatus(Enum):
    """Scan lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ScanType(Enum):
    FILE = "file"
    FOLDER = "folder"


_TRANSITIONS = {
    ScanStatus.PENDING: {ScanStatus.RUNNING, ScanStatus.FAILED},
    ScanStatus.RUNNING: {ScanStatus.COMPLETED, ScanStatus.FAILED},
    ScanStatus.COMPLETED: set(),
    ScanStatus.FAILED: set(),
}


@dataclass(frozen=True)
class Fingerprint:
    """Content-shape signature shared by files with the same PHI composition."""

    hash: str
    categories: FrozenSet[PhiCategory]
    representative_sample: Optional[str]
    # category -> share of occurrences, from the file that first produced it
    profile: Tuple[Tuple[PhiCategory, float], ...] = ()

    def profile_dict(self) -> Dict[PhiCategory, float]:
        return dict(self.profile)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fingerprint_hash": self.hash,
            "phi_types": sorted(c.value for c in self.categories),
            "representative_snippet": self.representative_sample,
        }


@dataclass(frozen=True)
class FileFingerprintLink:
    """Relates a file to a fingerprint it matches."""

    file_id: str
    fingerprint_hash: str
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "fingerprint_hash": self.fingerprint_hash,
            "similarity_score": self.similarity,
        }


@dataclass(frozen=True)
class FileScanResult:
    """Result of running the detection pipeline over one file."""

    file_id: str
    file_name: str
    logical_path: str
    risk_score: int
    risk_level: RiskLevel
    phi_count: int
    findings: Tuple[Finding, ...] = ()
    status: FileStatus = FileStatus.SCANNED
    error: Optional[str] = None
    fingerprint: Optional[Fingerprint] = None
    size_bytes: Optional[int] = None
    mime_type: Optional[str] = None

    @classmethod
    def unscanned(
        cls,
        file_id: str,
        file_name: str,
        logical_path: str,
        status: FileStatus,
        error: Optional[str] = None,
        size_bytes: Optional[int] = None,
        mime_type: Optional[str] = None,
    ) -> "FileScanResult":
        """Placeholder for a file whose pipeline did not complete."""
        return cls(
            file_id=file_id,
            file_name=file_name,
            logical_path=logical_path,
            risk_score=0,
            risk_level=RiskLevel.LOW,
            phi_count=0,
            status=status,
            error=error,
            size_bytes=size_bytes,
            mime_type=mime_type,
        )

    @property
    def scanned(self) -> bool:
        return self.status is FileStatus.SCANNED

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.file_id,
            "file_name": self.file_name,
            "file_path": self.logical_path,
            "file_size_bytes": self.size_bytes,
            "mime_type": self.mime_type,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "phi_count": self.phi_count,
            "status": self.status.value,
            "findings": [f.to_dict() for f in self.findings],
        }
        if self.error:
            result["error"] = self.error
        if self.fingerprint is not None:
            result["fingerprint_hash"] = self.fingerprint.hash
        return result


@dataclass(frozen=True)
class FolderAggregate:
    """Rollup of all files sharing a logical parent folder within one scan."""

    folder_path: str
    total_files: int
    total_phi_count: int
    avg_risk_score: int
    max_risk_level: RiskLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folder_path": self.folder_path,
            "total_files": self.total_files,
            "total_phi_count": self.total_phi_count,
            "avg_risk_score": self.avg_risk_score,
            "max_risk_level": self.max_risk_level.value,
        }


@dataclass
class ScanRecord:
    """Mutable scan bookkeeping handed to the persistence collaborator."""

    scan_id: str
    org_id: str
    scan_type: ScanType
    total_files: int
    user_id: Optional[str] = None
    source_label: Optional[str] = None
    source_type: Optional[str] = None
    root_path: Optional[str] = None
    status: ScanStatus = ScanStatus.PENDING
    overall_risk_score: Optional[int] = None
    overall_risk_level: Optional[RiskLevel] = None
    total_phi_count: int = 0
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def transition(self, new_status: ScanStatus) -> None:
        """Move the scan to *new_status*, rejecting illegal transitions."""
        if new_status not in _TRANSITIONS[self.status]:
            raise ValueError(
                f"Illegal scan transition {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        if new_status in (ScanStatus.COMPLETED, ScanStatus.FAILED):
            self.completed_at = utc_now()


@dataclass(frozen=True)
class ScanSummary:
    """Terminal output of one orchestrator invocation."""

    scan_id: str
    org_id: str
    scan_type: ScanType
    status: ScanStatus
    file_count: int
    total_phi_count: int
    overall_risk_score: int
    overall_risk_level: RiskLevel
    file_results: Tuple[FileScanResult, ...]
    folder_aggregates: Tuple[FolderAggregate, ...]
    links: Tuple[FileFingerprintLink, ...] = ()
    source_label: Optional[str] = None
    source_type: Optional[str] = None
    root_path: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    # file ids (or "scan"/"folders") whose hand-off to persistence failed
    persistence_failures: Tuple[str, ...] = ()
    alert_failures: int = 0

    @property
    def partial(self) -> bool:
        """True when results were computed but a collaborator hand-off failed."""
        return bool(self.persistence_failures) or self.alert_failures > 0

    @property
    def high_risk_files(self) -> List[FileScanResult]:
        return [f for f in self.file_results if f.risk_level.is_high_risk]

    def phi_summary(self) -> List[Tuple[PhiCategory, int]]:
        """Total occurrences per PHI category, largest first."""
        totals: Counter = Counter()
        for result in self.file_results:
            for finding in result.findings:
                totals[finding.category] += finding.occurrences
        return sorted(totals.items(), key=lambda item: (-item[1], item[0].value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "org_id": self.org_id,
            "scan_type": self.scan_type.value,
            "status": self.status.value,
            "source_label": self.source_label,
            "source_type": self.source_type,
            "root_path": self.root_path,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_files": self.file_count,
            "total_phi_count": self.total_phi_count,
            "overall_risk_score": self.overall_risk_score,
            "overall_risk_level": self.overall_risk_level.value,
            "files": [f.to_dict() for f in self.file_results],
            "folder_risks": [a.to_dict() for a in self.folder_aggregates],
            "fingerprint_links": [link.to_dict() for link in self.links],
            "phi_summary": [
                {"phi_type": category.value, "total_count": count}
                for category, count in self.phi_summary()
            ],
            "partial": self.partial,
            "persistence_failures": list(self.persistence_failures),
            "alert_failures": self.alert_failures,
        }
