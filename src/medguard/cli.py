# SPDX-License-Identifier: MIT
"""
MedGuard - Command Line Interface

This CLI provides:
- medguard version
- medguard scan <root> --format {text,json} --config <path> --fail-on LEVEL
- medguard redact <file>
- medguard init-config

Note:
- Sample values are always masked; raw PHI is never printed.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .core.exceptions import MedGuardError
from .core.findings import RiskLevel

logger = logging.getLogger(__name__)

LEVEL_CHOICES = [level.value for level in RiskLevel]


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    p = argparse.ArgumentParser(prog="medguard", description="MedGuard PHI exposure scanner")
    p.add_argument("-v", "--version", action="store_true", help="print version and exit")
    p.add_argument(
        "--log-level",
        default="WARNING",
        help="logging level (default: WARNING)"
    )
    p.add_argument(
        "--log-json",
        action="store_true",
        help="emit log lines as JSON"
    )

    sub = p.add_subparsers(dest="cmd")
    sub.add_parser("version", help="print version")

    sp = sub.add_parser("scan", help="scan a folder or file for PHI")
    sp.add_argument("root", nargs="?", default=".", help="path to scan")
    sp.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="output format (default: text)"
    )
    sp.add_argument(
        "--config",
        help="path to .medguard.yml config file"
    )
    sp.add_argument(
        "--org-id",
        dest="org_id",
        default="local",
        help="organisation the scan belongs to (default: local)"
    )
    sp.add_argument(
        "--source-label",
        dest="source_label",
        help="human readable label stored with the scan"
    )
    sp.add_argument(
        "--fail-on",
        dest="fail_on",
        choices=LEVEL_CHOICES,
        help="exit 1 when the overall risk level is at or above LEVEL"
    )
    sp.add_argument(
        "--json-out",
        dest="json_out",
        help="write JSON results to file"
    )

    rp = sub.add_parser("redact", help="print a file with every PHI match masked")
    rp.add_argument("path", help="text file to redact")
    rp.add_argument(
        "--config",
        help="path to .medguard.yml config file"
    )

    ip = sub.add_parser("init-config", help="write a commented .medguard.yml template")
    ip.add_argument("--path", default=".medguard.yml", help="destination (default: .medguard.yml)")
    ip.add_argument("--force", action="store_true", help="overwrite an existing file")

    args = p.parse_args(argv)

    from .logging_config import configure_logging
    configure_logging(args.log_level, json_format=args.log_json)

    if args.version or args.cmd == "version":
        print(__version__)
        return 0

    if args.cmd == "scan":
        return handle_scan_command(args)

    if args.cmd == "redact":
        return handle_redact_command(args)

    if args.cmd == "init-config":
        return handle_init_config_command(args)

    p.print_help()
    return 0


def handle_scan_command(args):
    """Handle the scan subcommand."""
    from .core.requests import FolderScanRequest, SourceType
    from .orchestrator import LoggingAlertSink, ScanOrchestrator
    from .scanner.config import load_scanner_config
    from .scanner.direct import describe_local_files

    root = Path(args.root).resolve()
    if not root.exists():
        print(f"Error: path not found: {args.root}", file=sys.stderr)
        return 2

    try:
        config = load_scanner_config(args.config, scan_root=str(root))
    except MedGuardError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 2

    files = describe_local_files(
        str(root),
        include_globs=config["include_globs"],
        exclude_globs=config["exclude_globs"],
        max_bytes=config["max_file_bytes"],
    )
    if not files:
        print(f"No files to scan under {args.root}")
        return 0

    root_label = root.parent.name if root.is_file() else root.name
    request = FolderScanRequest(
        org_id=args.org_id,
        source_label=args.source_label or root_label,
        source_type=SourceType.LOCAL_FOLDER,
        root_path=root_label,
        files=files,
    )

    try:
        orchestrator = ScanOrchestrator(config=config, alert_sink=LoggingAlertSink())
        summary = orchestrator.run_batch_scan(request)
    except MedGuardError as e:
        print(f"Error during scan: {e}", file=sys.stderr)
        return 1

    scan_results = summary.to_dict()

    if args.format == "json" or args.json_out:
        json_output = json.dumps(scan_results, indent=2, default=str)
        if args.json_out:
            Path(args.json_out).write_text(json_output)
            if args.format == "text":
                print(f"JSON output written to {args.json_out}")
        if args.format == "json":
            print(json_output)

    if args.format == "text":
        print_text_summary(summary)

    if args.fail_on and summary.overall_risk_level.rank >= RiskLevel(args.fail_on).rank:
        return 1

    return 0


def handle_redact_command(args):
    """Handle the redact subcommand."""
    from .core.redaction import redact_text
    from .detectors import build_registry
    from .scanner.config import load_scanner_config

    path = Path(args.path)
    if not path.is_file():
        print(f"Error: file not found: {args.path}", file=sys.stderr)
        return 2

    try:
        config = load_scanner_config(args.config, scan_root=str(path.resolve()))
        registry = build_registry(config)
    except MedGuardError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 2

    result = redact_text(path.read_text(encoding="utf-8", errors="replace"), registry)
    sys.stdout.write(result.redacted_text)
    logger.info(
        "Redacted %d values (%s)",
        result.redaction_count,
        ", ".join(c.value for c in result.categories) or "none",
    )
    return 0


def handle_init_config_command(args):
    """Handle the init-config subcommand."""
    from .scanner.config import create_default_config_template

    dest = Path(args.path)
    if dest.exists() and not args.force:
        print(f"Error: {dest} already exists (use --force to overwrite)", file=sys.stderr)
        return 1
    dest.write_text(create_default_config_template())
    print(f"Wrote {dest}")
    return 0


def print_text_summary(summary):
    """Print a text summary of scan results."""
    print("\n🔍 MedGuard Scan Results")
    print("=" * 50)

    print(f"Files scanned: {summary.file_count}")
    print(f"PHI instances: {summary.total_phi_count}")
    print(f"Overall risk: {summary.overall_risk_level.value} ({summary.overall_risk_score})")

    phi_summary = summary.phi_summary()
    if phi_summary:
        print("\nPHI by type:")
        for category, count in phi_summary:
            print(f"  {category.value}: {count}")

    high_risk = summary.high_risk_files
    if high_risk:
        print("\n⚠️  High-risk files")
        for result in sorted(high_risk, key=lambda r: r.risk_score, reverse=True):
            print(f"  [{result.risk_level.value}] {result.logical_path} (score {result.risk_score})")

    if summary.folder_aggregates:
        print("\n📁 Folders")
        for aggregate in summary.folder_aggregates:
            print(
                f"  {aggregate.folder_path}: {aggregate.total_files} files, "
                f"avg {aggregate.avg_risk_score}, max {aggregate.max_risk_level.value}"
            )

    unscanned = [r for r in summary.file_results if not r.scanned]
    if unscanned:
        print(f"\nNot scanned: {len(unscanned)}")
        for result in unscanned[:3]:
            print(f"    - {result.logical_path}: {result.error or result.status.value}")
        if len(unscanned) > 3:
            print(f"    ... and {len(unscanned) - 3} more")

    if summary.partial:
        print("\nWarning: some results could not be stored or alerted on")
