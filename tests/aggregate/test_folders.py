# SPDX-License-Identifier: MIT
"""Tests for folder rollups."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

import pytest

from medguard.aggregate.folders import (
    FolderAccumulator,
    accumulate,
    aggregate_folders,
    parent_folder,
)
from medguard.core.findings import RiskLevel
from medguard.core.results import FileScanResult, FileStatus
from medguard.risk.score import get_risk_level


def _result(path, score, phi_count, file_id=None):
    return FileScanResult(
        file_id=file_id or path,
        file_name=path.rsplit("/", 1)[-1],
        logical_path=path,
        risk_score=score,
        risk_level=get_risk_level(score),
        phi_count=phi_count,
    )


class TestParentFolder:
    @pytest.mark.parametrize(
        "path,root,expected",
        [
            ("reports/2024/a.txt", "", "reports/2024"),
            ("folder1/a.txt", "root", "folder1"),
            ("a.txt", "shared", "shared"),
            ("a.txt", "", "/"),
            ("reports\\2024\\a.txt", "", "reports/2024"),
            ("/a.txt", "", "/"),
        ],
    )
    def test_parent_folder(self, path, root, expected):
        assert parent_folder(path, root) == expected


class TestAggregateFolders:
    def test_two_files_one_folder(self):
        aggregates = aggregate_folders(
            [_result("folder1/a.txt", 90, 5), _result("folder1/b.txt", 30, 1)], "root"
        )
        assert len(aggregates) == 1
        folder = aggregates[0]
        assert folder.folder_path == "folder1"
        assert folder.total_files == 2
        assert folder.total_phi_count == 6
        assert folder.avg_risk_score == 60
        assert folder.max_risk_level == RiskLevel.CRITICAL

    def test_average_rounds_half_up(self):
        aggregates = aggregate_folders(
            [_result("f/a.txt", 31, 1), _result("f/b.txt", 30, 1)], ""
        )
        assert aggregates[0].avg_risk_score == 31

    def test_sorted_by_path(self):
        aggregates = aggregate_folders(
            [_result("b/x.txt", 10, 1), _result("a/y.txt", 10, 1), _result("z.txt", 10, 1)],
            "root",
        )
        assert [a.folder_path for a in aggregates] == ["a", "b", "root"]

    def test_phi_totals_are_preserved(self):
        results = [
            _result("a/1.txt", 90, 5),
            _result("a/b/2.txt", 40, 3),
            _result("3.txt", 0, 0),
            _result("c/4.txt", 65, 7),
        ]
        aggregates = aggregate_folders(results, "root")
        assert sum(a.total_phi_count for a in aggregates) == sum(r.phi_count for r in results)
        assert sum(a.total_files for a in aggregates) == len(results)

    def test_unscanned_files_excluded(self):
        skipped = FileScanResult.unscanned("x", "x.txt", "a/x.txt", FileStatus.NOT_SCANNED, "batch timeout")
        aggregates = aggregate_folders([_result("a/1.txt", 90, 5), skipped], "")
        assert aggregates[0].total_files == 1

    def test_folder_with_only_failed_files_is_omitted(self):
        failed = FileScanResult.unscanned("x", "x.txt", "b/x.txt", FileStatus.FAILED, "corrupt file")
        aggregates = aggregate_folders([_result("a/1.txt", 90, 5), failed], "")
        assert [a.folder_path for a in aggregates] == ["a"]

    def test_empty(self):
        assert aggregate_folders([], "root") == []


class TestFolderAccumulator:
    def test_merge_is_order_independent(self):
        results = [_result("f/a", 90, 5), _result("f/b", 30, 1), _result("f/c", 45, 2)]
        parts = [FolderAccumulator.of(r) for r in results]

        left = parts[0].merge(parts[1]).merge(parts[2])
        right = parts[2].merge(parts[0].merge(parts[1]))
        assert left == right
        assert left.finish("f") == aggregate_folders(results, "")[0]

    def test_accumulate_groups_by_parent(self):
        folders = accumulate([_result("a/1", 10, 1), _result("a/2", 20, 2), _result("b/3", 30, 3)], "")
        assert set(folders) == {"a", "b"}
        assert folders["a"].total_phi_count == 3

    def test_empty_accumulator_finishes_at_zero(self):
        assert FolderAccumulator().finish("x").avg_risk_score == 0
