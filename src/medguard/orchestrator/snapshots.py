"""Daily organisation risk snapshots.

Creating a snapshot may fail in the store; callers get a tagged result
instead of an exception so dashboards can degrade gracefully.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Union

from medguard.core.findings import RiskLevel
from medguard.core.results import ScanSummary
from medguard.risk.score import get_risk_level, mean_risk_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskSnapshot:
    org_id: str
    snapshot_date: date
    total_files: int
    total_phi_count: int
    overall_risk_score: int
    overall_risk_level: RiskLevel
    high_risk_file_count: int
    critical_risk_file_count: int


@dataclass(frozen=True)
class SnapshotCreationFailed:
    org_id: str
    snapshot_date: date
    reason: str


SnapshotResult = Union[RiskSnapshot, SnapshotCreationFailed]


def build_risk_snapshot(
    org_id: str, summaries: Iterable[ScanSummary], snapshot_date: Optional[date] = None
) -> RiskSnapshot:
    """Roll the scanned files of *summaries* up into one snapshot."""
    files = [f for summary in summaries for f in summary.file_results if f.scanned]
    score = mean_risk_score(f.risk_score for f in files)
    return RiskSnapshot(
        org_id=org_id,
        snapshot_date=snapshot_date or date.today(),
        total_files=len(files),
        total_phi_count=sum(f.phi_count for f in files),
        overall_risk_score=score,
        overall_risk_level=get_risk_level(score),
        high_risk_file_count=sum(1 for f in files if f.risk_level is RiskLevel.HIGH),
        critical_risk_file_count=sum(1 for f in files if f.risk_level is RiskLevel.CRITICAL),
    )


def ensure_risk_snapshot(
    repository,
    org_id: str,
    summaries: Iterable[ScanSummary],
    snapshot_date: Optional[date] = None,
) -> SnapshotResult:
    """
    Return today's snapshot, creating it when the store has none.

    Args:
        repository: A ScanRepository
        org_id: Organisation the snapshot belongs to
        summaries: Scans to roll up if a snapshot has to be created
        snapshot_date: Defaults to today

    Returns:
        The stored or newly created RiskSnapshot, or SnapshotCreationFailed
        when the store could not be read or written
    """
    snapshot_date = snapshot_date or date.today()
    try:
        existing = repository.get_risk_snapshot(org_id, snapshot_date)
        if existing is not None:
            return existing
        snapshot = build_risk_snapshot(org_id, summaries, snapshot_date)
        repository.save_risk_snapshot(snapshot)
        return snapshot
    except Exception as e:
        logger.warning("Risk snapshot for %s on %s not created: %s", org_id, snapshot_date, e)
        return SnapshotCreationFailed(org_id=org_id, snapshot_date=snapshot_date, reason=str(e))
