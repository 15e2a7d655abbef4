"""
Folder-level risk rollups.

Files are grouped by the parent of their logical path. Per-folder totals are
kept in accumulators whose merge is associative and commutative, so partial
results can be combined in whatever order workers finish.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from medguard.core.findings import RiskLevel
from medguard.core.results import FileScanResult, FolderAggregate
from medguard.risk.score import round_half_up


def parent_folder(path: str, root_path: str) -> str:
    """
    Folder key for a logical path.

    ``"reports/2024/a.txt"`` -> ``"reports/2024"``; a bare file name belongs to
    *root_path* (``"/"`` when that is empty as well).
    """
    fallback = root_path or "/"
    parts = path.replace("\\", "/").split("/")
    if len(parts) <= 1:
        return fallback
    parts.pop()
    return "/".join(parts) or fallback


@dataclass(frozen=True)
class FolderAccumulator:
    """Partial rollup for one folder."""

    total_files: int = 0
    total_phi_count: int = 0
    total_risk_score: int = 0
    max_risk_level: RiskLevel = RiskLevel.LOW

    @classmethod
    def of(cls, result: FileScanResult) -> "FolderAccumulator":
        return cls(1, result.phi_count, result.risk_score, result.risk_level)

    def merge(self, other: "FolderAccumulator") -> "FolderAccumulator":
        return FolderAccumulator(
            total_files=self.total_files + other.total_files,
            total_phi_count=self.total_phi_count + other.total_phi_count,
            total_risk_score=self.total_risk_score + other.total_risk_score,
            max_risk_level=max(
                self.max_risk_level, other.max_risk_level, key=lambda level: level.rank
            ),
        )

    def finish(self, folder_path: str) -> FolderAggregate:
        avg = round_half_up(self.total_risk_score / self.total_files) if self.total_files else 0
        return FolderAggregate(
            folder_path=folder_path,
            total_files=self.total_files,
            total_phi_count=self.total_phi_count,
            avg_risk_score=avg,
            max_risk_level=self.max_risk_level,
        )


def accumulate(
    file_results: Iterable[FileScanResult], root_path: str
) -> Dict[str, FolderAccumulator]:
    """Group scanned results into per-folder accumulators."""
    folders: Dict[str, FolderAccumulator] = {}
    for result in file_results:
        if not result.scanned:
            continue
        key = parent_folder(result.logical_path or result.file_name, root_path)
        folders[key] = folders.get(key, FolderAccumulator()).merge(FolderAccumulator.of(result))
    return folders


def aggregate_folders(file_results: Iterable[FileScanResult], root_path: str) -> List[FolderAggregate]:
    """
    Build folder aggregates for one scan batch.

    Args:
        file_results: Per-file results; only SCANNED results contribute. FAILED
            and NOT_SCANNED files are left out of total_files and the score mean,
            so a folder holding nothing else gets no aggregate at all.
        root_path: Folder assigned to bare file names

    Returns:
        FolderAggregate list sorted by folder path
    """
    folders = accumulate(file_results, root_path)
    return [folders[key].finish(key) for key in sorted(folders)]
