"""CLI entry point for the fusion-scan orchestrator.

This module provides the command-line interface: it turns a profile plus
command-line flags into a ``ScanConfiguration``, loads the target file or
directory as a ``SourceArtifact``, runs the orchestrator and writes reports.

Exit codes:
    0  scan completed with no finding at or above ``--fail-on``
    1  scan completed with at least one finding at or above ``--fail-on``
    2  configuration, cancellation or orchestration error
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from audit_trail import ScanAuditLog
from config_loader import build_scan_configuration, list_available_profiles
from exceptions import ConfigurationError, ScanError
from schemas import AiModel, BackendKind, ScanConfiguration, ScanType, Severity

from scanning.models import SourceArtifact, is_excluded
from scanning.orchestrator import ScanOrchestrator
from scanning.report import REPORT_FORMATS, ReportBuilder, print_summary

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 1_000_000
_SKIP_DIRS = {".git", ".hg", ".svn", "__pycache__", ".venv", "venv"}


def load_artifact(target: str, config: ScanConfiguration) -> SourceArtifact:
    """Load *target* as a single blob (file) or a project (directory).

    Directories matching ``excluded_paths`` are pruned during the walk;
    binary, unreadable and oversized files are skipped.
    """
    path = Path(target)
    if path.is_file():
        return SourceArtifact.from_text(path.read_text(encoding="utf-8", errors="replace"), path=path.name)
    if not path.is_dir():
        raise ConfigurationError(f"Target '{target}' is neither a file nor a directory")

    files = []
    for root, dirnames, filenames in os.walk(path):
        rel_root = Path(root).relative_to(path)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in _SKIP_DIRS
            and not is_excluded((rel_root / d).as_posix() + "/", config.excluded_paths)
        )
        for filename in sorted(filenames):
            file_path = Path(root) / filename
            try:
                if file_path.stat().st_size > MAX_FILE_BYTES:
                    logger.debug("Skipping oversized file %s", file_path)
                    continue
                content = file_path.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError) as e:
                logger.debug("Skipping unreadable file %s: %s", file_path, e)
                continue
            files.append(((rel_root / filename).as_posix(), content))

    logger.info("Loaded %d files from %s", len(files), path)
    return SourceArtifact.from_files(files, name=path.name).select(config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fusion-scan",
        description="Fusion Scan - concurrent static, AI, dependency, secret and compliance scanning",
    )
    parser.add_argument("target", nargs="?", help="File or directory to scan")
    parser.add_argument("--profile", default="standard", help="Configuration profile (default: standard)")
    parser.add_argument("--list-profiles", action="store_true", help="List available profiles and exit")
    parser.add_argument(
        "--output-dir",
        default=".fusion-scan/results",
        help="Output directory for reports (default: .fusion-scan/results)",
    )
    parser.add_argument(
        "--format",
        action="append",
        choices=REPORT_FORMATS,
        help="Report format to write; repeat for several (default: all)",
    )
    parser.add_argument("--scan-type", choices=[t.value for t in ScanType], help="Scan type")
    parser.add_argument("--ai-model", choices=[m.value for m in AiModel], help="AI model mode")
    parser.add_argument(
        "--severity-threshold",
        choices=[s.value for s in Severity],
        help="Drop findings below this severity",
    )
    parser.add_argument("--compliance", help="Comma-separated standards (e.g. GDPR,HIPAA,PCI-DSS)")
    parser.add_argument("--no-dependencies", action="store_true", help="Skip dependency analysis")
    parser.add_argument(
        "--disable-backend",
        help="Comma-separated backends to disable (" + ", ".join(k.value for k in BackendKind) + ")",
    )
    parser.add_argument("--exclude", help="Comma-separated glob patterns to exclude")
    parser.add_argument("--scan-depth", type=int, help="Maximum directory depth to scan")
    parser.add_argument("--timeout", type=float, help="Per-backend timeout in seconds")
    parser.add_argument("--ai-max-attempts", type=int, help="Attempts per AI model call")
    parser.add_argument("--threat-intel", action="store_true", help="Attach threat-intelligence advisories")
    parser.add_argument("--auto-remediation", action="store_true", help="Generate remediation suggestions")
    parser.add_argument("--exploit-details", action="store_true", help="Keep exploit illustrations in reports")
    parser.add_argument("--sbom", action="store_true", help="Generate a CycloneDX software bill of materials")
    parser.add_argument(
        "--fail-on",
        choices=[s.value for s in Severity],
        default=Severity.HIGH.value,
        help="Exit 1 when a finding at or above this severity exists (default: High)",
    )
    parser.add_argument("--audit-log", help="Append audit events to this JSON-lines file")
    parser.add_argument("--no-reports", action="store_true", help="Print the summary only")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for fusion-scan"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.list_profiles:
        for name in list_available_profiles():
            print(name)
        return 0
    if not args.target:
        parser.error("the following arguments are required: target")

    try:
        config = build_scan_configuration(profile=args.profile, cli_args=args)
        artifact = load_artifact(args.target, config)
        audit_log = ScanAuditLog(args.audit_log) if args.audit_log else None
        result = ScanOrchestrator(audit_log=audit_log).run(artifact, config)
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 2
    except ScanError as e:
        logger.error("Scan failed: %s", e)
        return 2

    print_summary(result)

    if not args.no_reports:
        builder = ReportBuilder(audit_log=audit_log)
        written = builder.save(result, args.output_dir, formats=args.format or REPORT_FORMATS, config=config)
        for fmt, path in written.items():
            print(f"💾 {fmt}: {path}")

    threshold = Severity(args.fail_on)
    if any(f.severity.at_least(threshold) for f in result.findings):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
