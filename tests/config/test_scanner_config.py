# SPDX-License-Identifier: MIT
"""Tests for scanner configuration loading."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

import pytest
import yaml

from medguard.core.exceptions import MedGuardConfigError
from medguard.scanner.config import (
    apply_scanner_defaults,
    create_default_config_template,
    get_default_scanner_config,
    load_scanner_config,
)


class TestLoadScannerConfig:
    def test_defaults_when_no_file(self, tmp_path):
        assert load_scanner_config(scan_root=str(tmp_path)) == get_default_scanner_config()

    def test_discovers_root_config(self, tmp_path):
        (tmp_path / ".medguard.yml").write_text("max_workers: 3\nfingerprint:\n  buckets: 20\n")
        config = load_scanner_config(scan_root=str(tmp_path))
        assert config["max_workers"] == 3
        assert config["fingerprint"]["buckets"] == 20
        assert config["alerts"]["proliferation_threshold"] == 0

    def test_yaml_extension(self, tmp_path):
        (tmp_path / ".medguard.yaml").write_text("executor: process\n")
        assert load_scanner_config(scan_root=str(tmp_path))["executor"] == "process"

    def test_scan_root_may_be_a_file(self, tmp_path):
        (tmp_path / ".medguard.yml").write_text("confidence: 0.5\n")
        target = tmp_path / "a.txt"
        target.write_text("x")
        assert load_scanner_config(scan_root=str(target))["confidence"] == 0.5

    def test_explicit_path_wins(self, tmp_path):
        (tmp_path / ".medguard.yml").write_text("max_workers: 3\n")
        explicit = tmp_path / "other.yml"
        explicit.write_text("max_workers: 7\n")
        config = load_scanner_config(str(explicit), scan_root=str(tmp_path))
        assert config["max_workers"] == 7

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(MedGuardConfigError) as exc_info:
            load_scanner_config(str(tmp_path / "nope.yml"))
        assert "not found" in str(exc_info.value)

    def test_malformed_yaml(self, tmp_path):
        bad = tmp_path / "bad.yml"
        bad.write_text("include_globs: [unterminated\n")
        with pytest.raises(MedGuardConfigError) as exc_info:
            load_scanner_config(str(bad))
        assert exc_info.value.config_path == str(bad.resolve())

    def test_non_mapping(self, tmp_path):
        bad = tmp_path / "list.yml"
        bad.write_text("- 1\n- 2\n")
        with pytest.raises(MedGuardConfigError):
            load_scanner_config(str(bad))

    def test_empty_file_uses_defaults(self, tmp_path):
        empty = tmp_path / "empty.yml"
        empty.write_text("")
        assert load_scanner_config(str(empty)) == get_default_scanner_config()

    def test_invalid_value_reports_path(self, tmp_path):
        bad = tmp_path / "bad.yml"
        bad.write_text("executor: fibers\n")
        with pytest.raises(MedGuardConfigError) as exc_info:
            load_scanner_config(str(bad))
        assert exc_info.value.section == "executor"
        assert exc_info.value.config_path == str(bad.resolve())


class TestApplyScannerDefaults:
    @pytest.mark.parametrize(
        "override,section",
        [
            ({"max_workers": -1}, "max_workers"),
            ({"batch_timeout_seconds": 0}, "batch_timeout_seconds"),
            ({"confidence": 1.5}, "confidence"),
            ({"disabled_categories": "PHONE"}, "disabled_categories"),
            ({"fingerprint": {"buckets": 0}}, "fingerprint"),
            ({"alerts": {"proliferation_threshold": -2}}, "alerts"),
        ],
    )
    def test_rejects_bad_values(self, override, section):
        with pytest.raises(MedGuardConfigError) as exc_info:
            apply_scanner_defaults(override)
        assert exc_info.value.section == section

    def test_nested_merge_keeps_other_keys(self):
        config = apply_scanner_defaults({"alerts": {"proliferation_threshold": 4}})
        assert config["alerts"] == {"proliferation_threshold": 4}
        assert config["fingerprint"] == {"buckets": 10}

    def test_defaults_are_copies(self):
        config = get_default_scanner_config()
        config["exclude_globs"].append("**/*.log")
        assert "**/*.log" not in get_default_scanner_config()["exclude_globs"]


class TestConfigTemplate:
    def test_template_parses_to_defaults(self):
        parsed = yaml.safe_load(create_default_config_template())
        assert apply_scanner_defaults(parsed) == get_default_scanner_config()
