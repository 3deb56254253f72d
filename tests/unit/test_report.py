"""Tests for report rendering: JSON, SARIF, Markdown and ReportBuilder.save."""

import dataclasses
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent / "scripts"))

from audit_trail import REPORT_GENERATED, ScanAuditLog
from schemas import (
    BackendKind,
    BackendStatus,
    ComplianceStandard,
    RelatedLocation,
    ScanConfiguration,
    ScannerTag,
    Severity,
)
from scanning.compliance_scorer import ComplianceScorer
from scanning.models import (
    BackendOutcome,
    RemediationSuggestion,
    SbomComponent,
    ScanResult,
    SoftwareBillOfMaterials,
    Vulnerability,
)
from scanning.report import (
    REPORT_FORMATS,
    ReportBuilder,
    convert_to_sarif,
    generate_markdown_report,
    severity_to_sarif_level,
    to_json,
)
from scanning.summary import build_summary

NOW = datetime(2025, 2, 3, 4, 5, 6, tzinfo=timezone.utc)


def _vuln(id, title, severity, scanner=ScannerTag.STATIC_ANALYSIS, **kwargs):
    base = dict(
        id=id,
        title=title,
        description=f"{title} description",
        severity=severity,
        scanner=scanner,
        detected_at=NOW,
        last_updated_at=NOW,
        severity_score=5.0,
        locations=(RelatedLocation(path="src/app.js", line=12),),
    )
    base.update(kwargs)
    return Vulnerability(**base)


def _make_result(config=None, exploit=None):
    config = config or ScanConfiguration(compliance_standards=["GDPR"])
    findings = (
        _vuln("SECRET-0001-aaaaaaaa", "Hardcoded API Key", Severity.CRITICAL, ScannerTag.SECRET,
              severity_score=9.8, cwe_id="CWE-798", mitigation="Rotate the key."),
        _vuln("STATICANALYSIS-0002-bbbbbbbb", "Dynamic Code Evaluation", Severity.HIGH,
              exploit_details=exploit, cwe_id="CWE-95"),
        _vuln("COMPLIANCE-0003-cccccccc", "GDPR: Personal Data", Severity.HIGH, ScannerTag.COMPLIANCE,
              regulatory_impact=(ComplianceStandard.GDPR,), locations=()),
        _vuln("STATICANALYSIS-0004-dddddddd", "Dynamic Code Evaluation", Severity.LOW,
              description="Different description"),
    )
    summary = build_summary(
        findings,
        risk_score=7.3,
        compliance_scores=ComplianceScorer().score(findings, config.compliance_standards),
        started_at=NOW,
        duration_seconds=1.25,
        files_scanned=1,
        lines_of_code=40,
        backend_outcomes=[
            BackendOutcome(BackendKind.SECRET, "secret-scanner", BackendStatus.SUCCEEDED, 0.1, 1),
            BackendOutcome(BackendKind.AI, "ai-scanner", BackendStatus.TIMED_OUT, 2.0, 0,
                           "ai-scanner: timed out after 2s"),
        ],
        run_id="run-abc",
    )
    remediations = MappingProxyType({
        "SECRET-0001-aaaaaaaa": RemediationSuggestion(
            "SECRET-0001-aaaaaaaa", "Load from env.", "- key\n+ env", 90.0
        )
    })
    return ScanResult(findings=findings, summary=summary, remediations=remediations)


def _with_sbom(result):
    sbom = SoftwareBillOfMaterials(
        serial_number="urn:uuid:00000000-0000-0000-0000-000000000001",
        timestamp=NOW,
        subject="project",
        components=(
            SbomComponent("lodash", "4.17.11", "npm", "pkg:npm/lodash@4.17.11", "MIT"),
            SbomComponent("leftpad", "1.0.0", "npm", "pkg:npm/leftpad@1.0.0"),
        ),
    )
    summary = dataclasses.replace(result.summary, sbom_generated=True)
    return dataclasses.replace(result, summary=summary, sbom=sbom)


# ============================================================================
# JSON
# ============================================================================


class TestJson:
    def test_round_trips_through_json(self):
        data = json.loads(to_json(_make_result()))
        assert data["summary"]["run_id"] == "run-abc"
        assert data["summary"]["total_issues"] == 4
        assert data["summary"]["severity_counts"]["Critical"] == 1
        assert data["findings"][0]["scanner"] == "Secret"
        assert data["findings"][0]["detected_at"] == NOW.isoformat()
        assert data["remediations"]["SECRET-0001-aaaaaaaa"]["confidence"] == 90.0

    def test_configuration_included(self):
        config = ScanConfiguration(compliance_standards=["GDPR"])
        data = json.loads(to_json(_make_result(config), config))
        assert data["configuration"]["scan_type"] == "HybridScan"
        assert data["configuration"]["compliance_standards"] == ["GDPR"]

    def test_sbom_serialized_as_cyclonedx(self):
        assert json.loads(to_json(_make_result()))["sbom"] is None
        data = json.loads(to_json(_with_sbom(_make_result())))
        assert data["summary"]["sbom_generated"] is True
        assert data["sbom"]["bomFormat"] == "CycloneDX"
        assert [c["purl"] for c in data["sbom"]["components"]] == [
            "pkg:npm/lodash@4.17.11",
            "pkg:npm/leftpad@1.0.0",
        ]


# ============================================================================
# SARIF
# ============================================================================


class TestSarif:
    @pytest.mark.parametrize(
        "severity, level",
        [
            (Severity.CRITICAL, "error"),
            (Severity.HIGH, "error"),
            (Severity.MEDIUM, "warning"),
            (Severity.LOW, "note"),
            (Severity.INFORMATIONAL, "note"),
        ],
    )
    def test_levels(self, severity, level):
        assert severity_to_sarif_level(severity) == level

    def test_structure(self):
        sarif = convert_to_sarif(_make_result())
        assert sarif["version"] == "2.1.0"
        run = sarif["runs"][0]
        assert run["tool"]["driver"]["name"] == "fusion-scan"
        assert len(run["results"]) == 4

    def test_one_rule_per_title(self):
        rules = convert_to_sarif(_make_result())["runs"][0]["tool"]["driver"]["rules"]
        assert [r["id"] for r in rules] == [
            "hardcoded-api-key",
            "dynamic-code-evaluation",
            "gdpr-personal-data",
        ]

    def test_locations_and_properties(self):
        first = convert_to_sarif(_make_result())["runs"][0]["results"][0]
        physical = first["locations"][0]["physicalLocation"]
        assert physical["artifactLocation"]["uri"] == "src/app.js"
        assert physical["region"]["startLine"] == 12
        assert first["properties"]["cwe"] == "CWE-798"
        assert first["properties"]["scanner"] == "Secret"

    def test_regulatory_impact_property(self):
        compliance = convert_to_sarif(_make_result())["runs"][0]["results"][2]
        assert compliance["properties"]["regulatoryImpact"] == ["GDPR"]
        assert compliance["locations"] == []


# ============================================================================
# Markdown
# ============================================================================


class TestMarkdown:
    def test_sections(self):
        report = generate_markdown_report(_make_result())
        assert "# 🔒 Security Scan Report" in report
        assert "**Overall Risk Score**: 7.3/10" in report
        assert "## 🔴 Critical Issues (1)" in report
        assert "## 🟠 High Issues (2)" in report
        assert "`src/app.js:12`" in report

    def test_backend_outcomes(self):
        report = generate_markdown_report(_make_result())
        assert "| ai-scanner | timed_out: ai-scanner: timed out after 2s | 0 | 2.00s |" in report

    def test_not_evaluated_marker(self):
        config = ScanConfiguration(compliance_standards=["GDPR"])
        report = generate_markdown_report(_make_result(config), config)
        assert "| GDPR | 85% |" in report
        assert "| HIPAA | 100% (not evaluated) |" in report

    def test_exploit_rendered_only_when_present(self):
        assert "Exploit Scenario" not in generate_markdown_report(_make_result())
        report = generate_markdown_report(_make_result(exploit="eval(payload)"))
        assert "**Exploit Scenario**: eval(payload)" in report

    def test_suggested_patch(self):
        report = generate_markdown_report(_make_result())
        assert "```diff\n- key\n+ env\n```" in report

    def test_sbom_section(self):
        report = generate_markdown_report(_make_result())
        assert "**SBOM Generated**: No" in report
        assert "Software Bill of Materials" not in report

        report = generate_markdown_report(_with_sbom(_make_result()))
        assert "**SBOM Generated**: Yes" in report
        assert "## 📦 Software Bill of Materials (2 components)" in report
        assert "| lodash | 4.17.11 | npm | MIT |" in report
        assert "| leftpad | 1.0.0 | npm | unknown |" in report


# ============================================================================
# ReportBuilder
# ============================================================================


class TestReportBuilder:
    def test_build_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown report format"):
            ReportBuilder().build(_make_result(), "pdf")

    def test_save_all_formats(self, tmp_path):
        written = ReportBuilder().save(_make_result(), str(tmp_path / "out"))
        assert set(written) == set(REPORT_FORMATS)
        assert written["markdown"].suffix == ".md"
        for path in written.values():
            assert path.exists()
        json.loads(written["sarif"].read_text(encoding="utf-8"))

    def test_save_records_audit_event(self, tmp_path):
        audit_log = ScanAuditLog()
        ReportBuilder(audit_log=audit_log).save(_make_result(), str(tmp_path), formats=["json"])
        events = audit_log.events(event_type=REPORT_GENERATED)
        assert len(events) == 1
        assert events[0].run_id == "run-abc"
        assert events[0].details["formats"] == ["json"]

    def test_save_rejects_unknown_format_before_writing(self, tmp_path):
        out = tmp_path / "out"
        with pytest.raises(ValueError):
            ReportBuilder().save(_make_result(), str(out), formats=["json", "pdf"])
        assert not out.exists()

    def test_save_writes_cyclonedx_file(self, tmp_path):
        written = ReportBuilder().save(_with_sbom(_make_result()), str(tmp_path), formats=["json"])
        assert set(written) == {"json", "sbom"}
        assert written["sbom"].name.endswith(".cdx.json")
        bom = json.loads(written["sbom"].read_text(encoding="utf-8"))
        assert bom["serialNumber"] == "urn:uuid:00000000-0000-0000-0000-000000000001"
        assert bom["components"][0]["licenses"] == [{"license": {"id": "MIT"}}]
        assert "licenses" not in bom["components"][1]
