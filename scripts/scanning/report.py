"""
Scan Report Generation.

Renders a ``ScanResult`` into JSON, SARIF 2.1.0 and Markdown documents and
saves them to disk.

Functions:
    to_json: Serialize the full result as JSON
    convert_to_sarif: Convert results to SARIF format for code-scanning tools
    severity_to_sarif_level: Convert severity to SARIF level
    generate_markdown_report: Generate human-readable Markdown report
    print_summary: Print scan summary to console

Classes:
    ReportBuilder: Format dispatch and multi-format saving
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from audit_trail import REPORT_GENERATED, ScanAuditLog
from schemas import ScanConfiguration, Severity

from .models import TOOL_NAME, TOOL_VERSION, ScanResult, Vulnerability

logger = logging.getLogger(__name__)

SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"

REPORT_FORMATS = ("json", "sarif", "markdown")
_EXTENSIONS = {"json": "json", "sarif": "sarif", "markdown": "md"}

_SEVERITY_EMOJI = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🟢",
    Severity.INFORMATIONAL: "⚪",
}


def to_json(result: ScanResult, config: Optional[ScanConfiguration] = None) -> str:
    """Serialize *result* (and optionally the configuration) as JSON."""
    data = result.to_dict()
    if config is not None:
        data["configuration"] = config.model_dump(mode="json")
    return json.dumps(data, indent=2, default=str)


def severity_to_sarif_level(severity: Severity) -> str:
    """Convert severity to SARIF level.

    Args:
        severity: Finding severity

    Returns:
        SARIF level string (error, warning, note)
    """
    mapping = {
        Severity.CRITICAL: "error",
        Severity.HIGH: "error",
        Severity.MEDIUM: "warning",
        Severity.LOW: "note",
        Severity.INFORMATIONAL: "note",
    }
    return mapping.get(Severity(severity), "warning")


def _rule_id(finding: Vulnerability) -> str:
    slug = "".join(c if c.isalnum() else "-" for c in finding.title.lower())
    return "-".join(part for part in slug.split("-") if part)


def convert_to_sarif(result: ScanResult) -> dict:
    """Convert results to SARIF format for code-scanning tools.

    One rule is emitted per distinct finding title.

    Args:
        result: The scan result to convert

    Returns:
        Dictionary containing SARIF-formatted results
    """
    rules: Dict[str, dict] = {}
    results: List[dict] = []

    for finding in result.findings:
        rule_id = _rule_id(finding)
        if rule_id not in rules:
            rule = {
                "id": rule_id,
                "name": finding.title,
                "shortDescription": {"text": finding.title},
                "properties": {"security-severity": str(finding.severity_score)},
            }
            if finding.mitigation:
                rule["help"] = {"text": finding.mitigation}
            rules[rule_id] = rule

        sarif_result = {
            "ruleId": rule_id,
            "level": severity_to_sarif_level(finding.severity),
            "message": {"text": finding.description or finding.title},
            "locations": [],
        }
        for location in finding.locations:
            physical = {"artifactLocation": {"uri": location.path}}
            if location.line:
                physical["region"] = {"startLine": location.line}
            sarif_result["locations"].append({"physicalLocation": physical})

        # Add properties
        properties = {
            "id": finding.id,
            "scanner": finding.scanner.value,
            "severity": finding.severity.value,
            "severityScore": finding.severity_score,
            "confidence": finding.confidence,
        }
        if finding.cwe_id:
            properties["cwe"] = finding.cwe_id
        if finding.regulatory_impact:
            properties["regulatoryImpact"] = [s.value for s in finding.regulatory_impact]
        if len(finding.contributing_scanners) > 1:
            properties["contributingScanners"] = [t.value for t in finding.contributing_scanners]
        sarif_result["properties"] = properties

        results.append(sarif_result)

    return {
        "version": "2.1.0",
        "$schema": SARIF_SCHEMA,
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": TOOL_NAME,
                        "version": TOOL_VERSION,
                        "rules": list(rules.values()),
                    }
                },
                "results": results,
                "invocations": [
                    {
                        "executionSuccessful": True,
                        "startTimeUtc": result.summary.scan_timestamp.isoformat(),
                    }
                ],
            }
        ],
    }


def generate_markdown_report(result: ScanResult, config: Optional[ScanConfiguration] = None) -> str:
    """Generate human-readable Markdown report.

    Args:
        result: The scan result to format
        config: Configuration of the run, rendered when given

    Returns:
        Markdown-formatted report string
    """
    summary = result.summary
    report = []

    report.append("# 🔒 Security Scan Report\n\n")
    report.append(f"**Generated**: {summary.scan_timestamp.isoformat()}\n\n")
    report.append(f"**Duration**: {summary.scan_duration_seconds:.1f}s\n\n")
    report.append(
        f"**Scope**: {summary.files_scanned} file(s), {summary.scanned_lines_of_code} lines\n"
    )
    report.append("\n---\n\n")

    report.append("## 📊 Executive Summary\n\n")
    report.append(f"**Overall Risk Score**: {summary.overall_risk_score:.1f}/10\n\n")
    report.append(f"**Total Findings**: {summary.total_issues}\n\n")
    report.append(f"**AI Findings**: {summary.ai_findings_count}\n\n")
    report.append(f"**Compliance Findings**: {summary.compliance_findings_count}\n\n")
    report.append(f"**SBOM Generated**: {'Yes' if summary.sbom_generated else 'No'}\n\n")

    report.append("### By Severity\n\n")
    for severity in Severity.ordered():
        report.append(f"- {_SEVERITY_EMOJI[severity]} **{severity.value}**: {summary.count(severity)}\n")

    report.append("\n### By Scanner\n\n")
    for tag, count in summary.scanner_counts.items():
        if count:
            report.append(f"- **{tag.value}**: {count} findings\n")

    if config is not None:
        report.append("\n### Configuration\n\n")
        report.append(f"- Scan type: {config.scan_type.value}\n")
        report.append(f"- AI model: {config.ai_model.value}\n")
        report.append(f"- Severity threshold: {config.severity_threshold.value}\n")
        report.append(f"- Dependencies: {'included' if config.include_dependencies else 'excluded'}\n")
        standards = ", ".join(s.value for s in config.sorted_standards()) or "none"
        report.append(f"- Compliance standards: {standards}\n")

    requested = set(config.compliance_standards) if config is not None else None
    report.append("\n## 🏛️ Compliance Posture\n\n")
    report.append("| Standard | Score |\n|---|---|\n")
    for standard, score in summary.compliance_scores.items():
        note = ""
        if requested is not None and standard not in requested:
            note = " (not evaluated)"
        report.append(f"| {standard.value} | {score:.0f}%{note} |\n")

    if summary.backend_outcomes:
        report.append("\n## 🛠️ Backends\n\n")
        report.append("| Backend | Status | Findings | Duration |\n|---|---|---|---|\n")
        for outcome in summary.backend_outcomes:
            status = outcome.status.value
            if outcome.error:
                status = f"{status}: {outcome.error}"
            report.append(
                f"| {outcome.name} | {status} | {outcome.finding_count} | "
                f"{outcome.duration_seconds:.2f}s |\n"
            )

    report.append("\n---\n\n")

    # Group findings by severity
    for severity in Severity.ordered():
        severity_findings = result.by_severity(severity)
        if not severity_findings:
            continue

        report.append(f"## {_SEVERITY_EMOJI[severity]} {severity.value} Issues ({len(severity_findings)})\n\n")
        for i, finding in enumerate(severity_findings, 1):
            report.append(f"### {i}. {finding.title}\n\n")
            report.append(f"**ID**: `{finding.id}`\n\n")
            report.append(
                f"**Scanner**: {finding.scanner.value} | **Score**: {finding.severity_score} | "
                f"**Confidence**: {finding.confidence:.0f}%\n\n"
            )
            if finding.locations:
                where = ", ".join(f"`{loc}`" for loc in finding.locations[:5])
                report.append(f"**Location**: {where}\n\n")
            if finding.cwe_id:
                report.append(f"**CWE**: {finding.cwe_id}\n\n")
            if finding.regulatory_impact:
                report.append(
                    f"**Regulatory Impact**: {', '.join(s.value for s in finding.regulatory_impact)}\n\n"
                )

            report.append(f"**Description**: {finding.description}\n\n")

            if finding.exploit_details:
                report.append(f"**Exploit Scenario**: {finding.exploit_details}\n\n")
            if finding.mitigation:
                report.append(f"**Recommendation**: {finding.mitigation}\n\n")

            suggestion = result.remediations.get(finding.id)
            if suggestion is not None and suggestion.code_patch:
                report.append("**Suggested Patch**:\n\n```diff\n")
                report.append(f"{suggestion.code_patch}\n```\n\n")

            report.append("---\n\n")

    if result.threat_intel:
        report.append("## 🌐 Threat Intelligence\n\n")
        for intel in result.threat_intel:
            report.append(f"### {intel.title}\n\n")
            report.append(f"{intel.summary}\n\n")
            report.append(f"**Severity**: {intel.severity.value} | **Reference**: {intel.reference}\n\n")
            report.append(f"**Related findings**: {', '.join(intel.related_finding_ids)}\n\n")

    if result.sbom is not None:
        report.append(f"## 📦 Software Bill of Materials ({len(result.sbom.components)} components)\n\n")
        report.append("| Component | Version | Ecosystem | License |\n|---|---|---|---|\n")
        for component in result.sbom.components:
            report.append(
                f"| {component.name} | {component.version} | {component.ecosystem} | "
                f"{component.license_id or 'unknown'} |\n"
            )

    return "".join(report)


def print_summary(result: ScanResult) -> None:
    """Print scan summary to console.

    Args:
        result: The scan result to summarize
    """
    summary = result.summary
    print("\n" + "=" * 80)
    print("🔒 SECURITY SCAN - FINAL RESULTS")
    print("=" * 80)
    print(f"🕐 Timestamp: {summary.scan_timestamp.isoformat()}")
    print(f"⏱️  Total Duration: {summary.scan_duration_seconds:.1f}s")
    print(f"📁 Files: {summary.files_scanned} ({summary.scanned_lines_of_code} lines)")
    print()
    print("📊 Findings by Severity:")
    for severity in Severity.ordered():
        print(f"   {_SEVERITY_EMOJI[severity]} {severity.value + ':':<15}{summary.count(severity)}")
    print(f"   📈 Total:         {summary.total_issues}")
    print()
    print(f"⚠️  Overall Risk: {summary.overall_risk_score:.1f}/10")
    if result.sbom is not None:
        print(f"📦 SBOM: {len(result.sbom.components)} components")
    if summary.failed_backends:
        print()
        print("🔧 Failed Backends:")
        for outcome in summary.failed_backends:
            print(f"   {outcome.name}: {outcome.status.value} ({outcome.error})")
    print("=" * 80)


class ReportBuilder:
    """Builds and saves reports for a scan result."""

    def __init__(self, audit_log: Optional[ScanAuditLog] = None):
        self.audit_log = audit_log

    def build(
        self, result: ScanResult, fmt: str = "markdown", config: Optional[ScanConfiguration] = None
    ) -> str:
        """Render *result* in *fmt* (``json``, ``sarif`` or ``markdown``)."""
        if fmt == "json":
            return to_json(result, config)
        if fmt == "sarif":
            return json.dumps(convert_to_sarif(result), indent=2)
        if fmt == "markdown":
            return generate_markdown_report(result, config)
        raise ValueError(f"Unknown report format {fmt!r}. Must be one of {list(REPORT_FORMATS)}.")

    def save(
        self,
        result: ScanResult,
        output_dir: str,
        formats=REPORT_FORMATS,
        config: Optional[ScanConfiguration] = None,
    ) -> Dict[str, Path]:
        """Save *result* in every requested format.

        A result that carries a bill of materials also gets a CycloneDX
        ``.cdx.json`` file, returned under the ``sbom`` key.

        Returns:
            Mapping of format name to written file path
        """
        unknown = [fmt for fmt in formats if fmt not in _EXTENSIONS]
        if unknown:
            raise ValueError(f"Unknown report format(s) {unknown}. Must be one of {list(REPORT_FORMATS)}.")

        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")

        written: Dict[str, Path] = {}
        for fmt in formats:
            path = output_path / f"security-scan-{timestamp}.{_EXTENSIONS[fmt]}"
            with open(path, "w", encoding="utf-8") as f:
                f.write(self.build(result, fmt, config))
            logger.info("Saved %s report: %s", fmt, path)
            written[fmt] = path

        if result.sbom is not None:
            path = output_path / f"security-scan-{timestamp}.cdx.json"
            with open(path, "w", encoding="utf-8") as f:
                json.dump(result.sbom.to_cyclonedx(), f, indent=2)
            logger.info("Saved CycloneDX SBOM: %s", path)
            written["sbom"] = path

        if self.audit_log is not None:
            self.audit_log.record(
                result.summary.run_id,
                REPORT_GENERATED,
                formats=list(written),
                output_dir=str(output_path),
            )
        return written


__all__ = [
    "REPORT_FORMATS",
    "ReportBuilder",
    "to_json",
    "convert_to_sarif",
    "severity_to_sarif_level",
    "generate_markdown_report",
    "print_summary",
]
