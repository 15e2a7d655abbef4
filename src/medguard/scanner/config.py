# SPDX-License-Identifier: MIT
"""
Scanner configuration loader for MedGuard.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from medguard.core.exceptions import MedGuardConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = [".medguard.yml", ".medguard.yaml"]

_DEFAULT_CONFIG: Dict[str, Any] = {
    "max_workers": 0,
    "executor": "thread",
    "batch_timeout_seconds": None,
    "confidence": 0.85,
    "disabled_categories": [],
    "custom_patterns": [],
    "fingerprint": {"buckets": 10},
    "alerts": {"proliferation_threshold": 0},
    "max_file_bytes": 1_000_000,
    "include_globs": ["**/*"],
    "exclude_globs": [
        "**/.git/**",
        "**/.svn/**",
        "**/.hg/**",
        "**/.venv/**",
        "**/venv/**",
        "**/node_modules/**",
        "**/__pycache__/**",
    ],
}


def load_scanner_config(config_path: Optional[str] = None, scan_root: str = ".") -> Dict[str, Any]:
    """
    Load scanner configuration following the specified search order.

    Args:
        config_path: Explicit config path from --config CLI flag
        scan_root: Directory searched for .medguard.yml/.medguard.yaml

    Returns:
        Dictionary containing scanner configuration

    Raises:
        MedGuardConfigError: If config file is malformed or explicitly provided config is missing
    """
    # 1. If CLI --config provided -> load it
    if config_path:
        config_abs_path = Path(config_path).resolve()
        if not config_abs_path.exists():
            raise MedGuardConfigError(
                f"Specified config file not found: {config_abs_path}",
                config_path=str(config_abs_path),
            )
        config = _load_yaml_config(config_abs_path)
        logger.info("Loaded config: %s", config_abs_path)
        return config

    # 2. Look for .medguard.yml or .medguard.yaml at the scan root
    root_path = Path(scan_root).resolve()
    if root_path.is_file():
        root_path = root_path.parent
    for config_name in CONFIG_FILE_NAMES:
        config_file = root_path / config_name
        if config_file.exists():
            config = _load_yaml_config(config_file)
            logger.info("Loaded config: %s", config_file)
            return config

    # 3. Use built-in defaults
    logger.info("Using default scanner config")
    return get_default_scanner_config()


def _load_yaml_config(config_path: Path) -> Dict[str, Any]:
    """Load and validate YAML config file."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise MedGuardConfigError(
            f"Failed to parse config file: {e}", config_path=str(config_path)
        )

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise MedGuardConfigError("Config must be a dictionary", config_path=str(config_path))

    try:
        return apply_scanner_defaults(config)
    except MedGuardConfigError as e:
        e.config_path = str(config_path)
        raise


def apply_scanner_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Apply default values to scanner configuration and check value types."""
    merged = get_default_scanner_config()
    for key, value in config.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key].update(value)
        else:
            merged[key] = value

    _validate_scanner_config(merged)
    return merged


def _validate_scanner_config(config: Dict[str, Any]) -> None:
    workers = config["max_workers"]
    if not isinstance(workers, int) or workers < 0:
        raise MedGuardConfigError("max_workers must be a non-negative integer", section="max_workers")

    if config["executor"] not in ("thread", "process"):
        raise MedGuardConfigError("executor must be 'thread' or 'process'", section="executor")

    timeout = config["batch_timeout_seconds"]
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        raise MedGuardConfigError(
            "batch_timeout_seconds must be a positive number", section="batch_timeout_seconds"
        )

    confidence = config["confidence"]
    if not isinstance(confidence, (int, float)) or not 0.0 <= confidence <= 1.0:
        raise MedGuardConfigError("confidence must be within [0, 1]", section="confidence")

    for section in ("disabled_categories", "custom_patterns", "include_globs", "exclude_globs"):
        if not isinstance(config[section], list):
            raise MedGuardConfigError(f"{section} must be a list", section=section)

    buckets = config["fingerprint"].get("buckets")
    if not isinstance(buckets, int) or buckets < 1:
        raise MedGuardConfigError("fingerprint.buckets must be a positive integer", section="fingerprint")

    threshold = config["alerts"].get("proliferation_threshold")
    if not isinstance(threshold, int) or threshold < 0:
        raise MedGuardConfigError(
            "alerts.proliferation_threshold must be a non-negative integer", section="alerts"
        )


def get_default_scanner_config() -> Dict[str, Any]:
    """
    Get the default scanner configuration.

    Returns:
        Dictionary with default scanner settings
    """
    return copy.deepcopy(_DEFAULT_CONFIG)


def create_default_config_template() -> str:
    """
    Create a minimal .medguard.yml template with commented examples.

    Returns:
        YAML string with default configuration template
    """
    return """# MedGuard Scanner Configuration
# This file configures how MedGuard scans a folder for PHI

# Worker pool size for per-file scanning (0 = one per CPU)
max_workers: 0

# Pool flavour: thread or process
executor: thread

# Stop waiting for unfinished files after this many seconds (null = wait)
batch_timeout_seconds: null

# Confidence reported on every finding
confidence: 0.85

# PHI categories to skip entirely
disabled_categories: []
  # - "PHONE"

# Organisation-specific patterns, appended after the built-in catalogue
custom_patterns: []
  # - category: "OTHER"
  #   pattern: "\\\\bEMP-\\\\d{6}\\\\b"
  #   severity: "MEDIUM"
  #   description: "Employee number"

fingerprint:
  # Proportion buckets used when hashing a file's PHI shape
  buckets: 10

alerts:
  # Raise a DUPLICATE_PHI alert when a fingerprint recurs this often (0 = off)
  proliferation_threshold: 0

# Local scans only: skip files larger than this
max_file_bytes: 1000000

include_globs:
  - "**/*"

exclude_globs:
  - "**/.git/**"
  - "**/.svn/**"
  - "**/.hg/**"
  - "**/.venv/**"
  - "**/venv/**"
  - "**/node_modules/**"
  - "**/__pycache__/**"
"""
