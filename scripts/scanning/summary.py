"""
Scan summary aggregation.
"""

from datetime import datetime
from types import MappingProxyType
from typing import Dict, Mapping, Sequence

from schemas import ComplianceStandard, ScannerTag, Severity

from .models import BackendOutcome, ScanSummary, Vulnerability


def count_by_severity(findings: Sequence[Vulnerability]) -> Dict[Severity, int]:
    counts = {severity: 0 for severity in Severity.ordered()}
    for finding in findings:
        counts[finding.severity] += 1
    return counts


def count_by_scanner(findings: Sequence[Vulnerability]) -> Dict[ScannerTag, int]:
    counts = {tag: 0 for tag in ScannerTag}
    for finding in findings:
        counts[finding.scanner] += 1
    return counts


def build_summary(
    findings: Sequence[Vulnerability],
    *,
    risk_score: float,
    compliance_scores: Mapping[ComplianceStandard, float],
    started_at: datetime,
    duration_seconds: float,
    files_scanned: int = 0,
    lines_of_code: int = 0,
    backend_outcomes: Sequence[BackendOutcome] = (),
    run_id: str = "",
    sbom_generated: bool = False,
) -> ScanSummary:
    """Aggregate *findings* into a ``ScanSummary``.

    ``ai_findings_count`` covers every AI tag including fusion;
    ``compliance_findings_count`` counts findings with any regulatory impact,
    whichever scanner reported them.
    """
    return ScanSummary(
        total_issues=len(findings),
        severity_counts=MappingProxyType(count_by_severity(findings)),
        scanner_counts=MappingProxyType(count_by_scanner(findings)),
        ai_findings_count=sum(1 for f in findings if f.is_ai),
        compliance_findings_count=sum(1 for f in findings if f.regulatory_impact),
        overall_risk_score=risk_score,
        compliance_scores=MappingProxyType(dict(compliance_scores)),
        scan_duration_seconds=duration_seconds,
        scan_timestamp=started_at,
        files_scanned=files_scanned,
        scanned_lines_of_code=lines_of_code,
        backend_outcomes=tuple(backend_outcomes),
        run_id=run_id,
        sbom_generated=sbom_generated,
    )


__all__ = ["count_by_severity", "count_by_scanner", "build_summary"]
