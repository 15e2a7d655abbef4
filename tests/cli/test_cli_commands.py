# SPDX-License-Identifier: MIT
"""Tests for the medguard command line."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

import json
import logging

import pytest
import yaml

from medguard import __version__
from medguard.cli import main


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def records(tmp_path):
    root = tmp_path / "records"
    (root / "patients").mkdir(parents=True)
    (root / "patients" / "intake.txt").write_text("Patient: Jane Doe\nSSN: 123-45-6789\n")
    (root / "admin").mkdir()
    (root / "admin" / "notes.txt").write_text("Staff meeting on Friday.\n")
    return root


class TestVersion:
    def test_version_command(self, capsys):
        assert main(["version"]) == 0
        assert capsys.readouterr().out.strip() == __version__

    def test_version_flag(self, capsys):
        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == __version__

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out


class TestScanCommand:
    def test_text_output(self, records, capsys):
        assert main(["scan", str(records)]) == 0
        out = capsys.readouterr().out
        assert "MedGuard Scan Results" in out
        assert "Files scanned: 2" in out
        assert "records/patients" in out
        assert "123-45-6789" not in out

    def test_json_output(self, records, capsys):
        assert main(["scan", str(records), "--format", "json", "--org-id", "acme"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["org_id"] == "acme"
        assert data["scan_type"] == "folder"
        assert data["root_path"] == "records"
        assert data["total_files"] == 2
        assert data["overall_risk_level"] == "CRITICAL"
        folders = {f["folder_path"]: f for f in data["folder_risks"]}
        assert folders["records/patients"]["max_risk_level"] == "CRITICAL"
        assert folders["records/admin"]["total_phi_count"] == 0

    def test_json_out_file(self, records, tmp_path, capsys):
        out_file = tmp_path / "result.json"
        assert main(["scan", str(records), "--json-out", str(out_file)]) == 0
        assert "JSON output written" in capsys.readouterr().out
        assert json.loads(out_file.read_text())["total_files"] == 2

    def test_fail_on(self, records):
        assert main(["scan", str(records), "--format", "json", "--fail-on", "HIGH"]) == 1

    def test_fail_on_not_reached(self, records):
        clean = records / "admin"
        assert main(["scan", str(clean), "--format", "json", "--fail-on", "MEDIUM"]) == 0

    def test_missing_root(self, tmp_path, capsys):
        assert main(["scan", str(tmp_path / "missing")]) == 2
        assert "path not found" in capsys.readouterr().err

    def test_bad_config(self, records, capsys):
        (records / ".medguard.yml").write_text("executor: [unterminated\n")
        assert main(["scan", str(records)]) == 2
        assert "Error loading config" in capsys.readouterr().err

    def test_config_disables_category(self, records, tmp_path, capsys):
        config = tmp_path / "medguard.yml"
        config.write_text(yaml.safe_dump({"disabled_categories": ["SSN", "NAME"]}))
        assert main(["scan", str(records), "--format", "json", "--config", str(config)]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["total_phi_count"] == 0

    def test_empty_folder(self, tmp_path, capsys):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert main(["scan", str(empty)]) == 0
        assert "No files to scan" in capsys.readouterr().out


class TestRedactCommand:
    def test_redacts_file(self, records, capsys):
        assert main(["redact", str(records / "patients" / "intake.txt")]) == 0
        out = capsys.readouterr().out
        assert "123-45-6789" not in out
        assert "12*******89" in out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["redact", str(tmp_path / "nope.txt")]) == 2


class TestInitConfig:
    def test_writes_template(self, tmp_path, capsys):
        dest = tmp_path / ".medguard.yml"
        assert main(["init-config", "--path", str(dest)]) == 0
        assert yaml.safe_load(dest.read_text())["fingerprint"] == {"buckets": 10}

    def test_refuses_overwrite(self, tmp_path, capsys):
        dest = tmp_path / ".medguard.yml"
        dest.write_text("max_workers: 1\n")
        assert main(["init-config", "--path", str(dest)]) == 1
        assert main(["init-config", "--path", str(dest), "--force"]) == 0
