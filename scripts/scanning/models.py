"""
Scan Data Models.

Core dataclass definitions used across the scan orchestration core.

Classes:
    ArtifactFile: One file of a code artifact
    SourceArtifact: The code under scan (single blob or project)
    Vulnerability: Canonical, normalized finding record
    BackendOutcome: How a single backend fared during a run
    ScanSummary: Aggregate counts and scores for a run
    ThreatIntelReport: Advisory matched to findings of a run
    RemediationSuggestion: Suggested fix for a finding
    SbomComponent: One declared dependency in a bill of materials
    SoftwareBillOfMaterials: CycloneDX-style component inventory of a run
    ScanResult: Everything a completed run produces
"""

from __future__ import annotations

import fnmatch
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from schemas import (
    BackendKind,
    BackendStatus,
    ComplianceStandard,
    RelatedLocation,
    ScanConfiguration,
    ScannerTag,
    Severity,
    VulnerabilityStatus,
)

SNIPPET_PATH = "snippet"
TOOL_NAME = "fusion-scan"
TOOL_VERSION = "1.0.0"
CYCLONEDX_SPEC_VERSION = "1.6"


# ---------------------------------------------------------------------------
# Source artifacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArtifactFile:
    """One file of a code artifact."""

    path: str
    content: str

    @property
    def line_count(self) -> int:
        return len(self.content.splitlines())

    @property
    def depth(self) -> int:
        """Number of directories between the artifact root and this file."""
        return max(len(PurePosixPath(self.path).parts) - 1, 0)


def is_excluded(path: str, patterns: Iterable[str]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(path, f"*/{pattern}"):
            return True
    return False


@dataclass(frozen=True)
class SourceArtifact:
    """Code under scan.

    Single-blob mode holds one file named ``snippet``; project mode holds
    every file of a project keyed by its relative POSIX path.
    """

    name: str
    files: Tuple[ArtifactFile, ...]

    @classmethod
    def from_text(cls, text: str, path: str = SNIPPET_PATH) -> "SourceArtifact":
        return cls(name=path, files=(ArtifactFile(path, text),))

    @classmethod
    def from_files(cls, files: Iterable[Tuple[str, str]], name: str = "project") -> "SourceArtifact":
        return cls(
            name=name,
            files=tuple(ArtifactFile(str(PurePosixPath(p)), c) for p, c in files),
        )

    @property
    def total_lines(self) -> int:
        return sum(f.line_count for f in self.files)

    def select(self, config: ScanConfiguration) -> "SourceArtifact":
        """Return the files that survive path exclusion and depth limits."""
        kept = tuple(
            f for f in self.files
            if f.depth <= config.scan_depth and not is_excluded(f.path, config.excluded_paths)
        )
        return SourceArtifact(name=self.name, files=kept)


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Vulnerability:
    """Canonical finding record produced by the normalizer.

    ``severity_score`` is ``None`` only between normalization and scoring;
    every finding inside a ``ScanResult`` carries a score in [0, 10].
    """

    id: str
    title: str
    description: str
    severity: Severity
    scanner: ScannerTag
    detected_at: datetime
    last_updated_at: datetime
    status: VulnerabilityStatus = VulnerabilityStatus.OPEN
    severity_score: Optional[float] = None
    cwe_id: Optional[str] = None
    regulatory_impact: Tuple[ComplianceStandard, ...] = ()
    confidence: float = 80.0
    locations: Tuple[RelatedLocation, ...] = ()
    mitigation: Optional[str] = None
    exploit_details: Optional[str] = None
    exploitability: Optional[float] = None
    impact: Optional[float] = None
    contributing_scanners: Tuple[ScannerTag, ...] = ()

    @property
    def is_ai(self) -> bool:
        return self.scanner.is_ai

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "scanner": self.scanner.value,
            "status": self.status.value,
            "detected_at": self.detected_at.isoformat(),
            "last_updated_at": self.last_updated_at.isoformat(),
            "severity_score": self.severity_score,
            "cwe_id": self.cwe_id,
            "regulatory_impact": [s.value for s in self.regulatory_impact],
            "confidence": self.confidence,
            "locations": [{"path": loc.path, "line": loc.line} for loc in self.locations],
            "mitigation": self.mitigation,
            "exploit_details": self.exploit_details,
            "exploitability": self.exploitability,
            "impact": self.impact,
            "contributing_scanners": [t.value for t in self.contributing_scanners],
        }


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackendOutcome:
    """How a single backend fared during a run."""

    backend: BackendKind
    name: str
    status: BackendStatus
    duration_seconds: float
    finding_count: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == BackendStatus.SUCCEEDED


@dataclass(frozen=True)
class ScanSummary:
    """Aggregate counts and scores for one run."""

    total_issues: int
    severity_counts: Mapping[Severity, int]
    scanner_counts: Mapping[ScannerTag, int]
    ai_findings_count: int
    compliance_findings_count: int
    overall_risk_score: float
    compliance_scores: Mapping[ComplianceStandard, float]
    scan_duration_seconds: float
    scan_timestamp: datetime
    files_scanned: int = 0
    scanned_lines_of_code: int = 0
    backend_outcomes: Tuple[BackendOutcome, ...] = ()
    run_id: str = ""
    sbom_generated: bool = False

    @property
    def failed_backends(self) -> Tuple[BackendOutcome, ...]:
        return tuple(o for o in self.backend_outcomes if not o.succeeded)

    def count(self, severity: Severity) -> int:
        return self.severity_counts.get(severity, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "total_issues": self.total_issues,
            "severity_counts": {k.value: v for k, v in self.severity_counts.items()},
            "scanner_counts": {k.value: v for k, v in self.scanner_counts.items()},
            "ai_findings_count": self.ai_findings_count,
            "compliance_findings_count": self.compliance_findings_count,
            "overall_risk_score": self.overall_risk_score,
            "compliance_scores": {k.value: v for k, v in self.compliance_scores.items()},
            "scan_duration_seconds": round(self.scan_duration_seconds, 3),
            "scan_timestamp": self.scan_timestamp.isoformat(),
            "files_scanned": self.files_scanned,
            "scanned_lines_of_code": self.scanned_lines_of_code,
            "sbom_generated": self.sbom_generated,
            "backend_outcomes": [
                {
                    "backend": o.backend.value,
                    "name": o.name,
                    "status": o.status.value,
                    "duration_seconds": round(o.duration_seconds, 3),
                    "finding_count": o.finding_count,
                    "error": o.error,
                }
                for o in self.backend_outcomes
            ],
        }


@dataclass(frozen=True)
class ThreatIntelReport:
    """Advisory from the threat-intelligence catalog matched to a run."""

    title: str
    summary: str
    severity: Severity
    reference: str
    cwe_ids: Tuple[str, ...] = ()
    related_finding_ids: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["cwe_ids"] = list(self.cwe_ids)
        data["related_finding_ids"] = list(self.related_finding_ids)
        return data


@dataclass(frozen=True)
class RemediationSuggestion:
    """Suggested fix for one finding."""

    vulnerability_id: str
    explanation: str
    code_patch: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SbomComponent:
    """One declared dependency, identified by its package URL."""

    name: str
    version: str
    ecosystem: str
    purl: str
    license_id: Optional[str] = None
    locations: Tuple[RelatedLocation, ...] = ()

    def to_cyclonedx(self) -> Dict[str, Any]:
        component: Dict[str, Any] = {
            "type": "library",
            "bom-ref": self.purl,
            "name": self.name,
            "version": self.version,
            "purl": self.purl,
        }
        if self.license_id:
            component["licenses"] = [{"license": {"id": self.license_id}}]
        if self.locations:
            component["evidence"] = {
                "occurrences": [{"location": loc.path, "line": loc.line} for loc in self.locations]
            }
        return component


@dataclass(frozen=True)
class SoftwareBillOfMaterials:
    """Component inventory of the scanned artifact, rendered as CycloneDX JSON."""

    serial_number: str
    timestamp: datetime
    subject: str
    components: Tuple[SbomComponent, ...] = ()

    def to_cyclonedx(self) -> Dict[str, Any]:
        return {
            "bomFormat": "CycloneDX",
            "specVersion": CYCLONEDX_SPEC_VERSION,
            "serialNumber": self.serial_number,
            "version": 1,
            "metadata": {
                "timestamp": self.timestamp.isoformat(),
                "tools": {
                    "components": [
                        {"type": "application", "name": TOOL_NAME, "version": TOOL_VERSION}
                    ]
                },
                "component": {"type": "application", "name": self.subject},
            },
            "components": [c.to_cyclonedx() for c in self.components],
        }


@dataclass(frozen=True)
class ScanResult:
    """Findings and summary of a completed run.

    A new run always produces a new ``ScanResult``; nothing in it is
    mutated after the orchestrator returns it.
    """

    findings: Tuple[Vulnerability, ...]
    summary: ScanSummary
    threat_intel: Tuple[ThreatIntelReport, ...] = ()
    remediations: Mapping[str, RemediationSuggestion] = field(
        default_factory=lambda: MappingProxyType({})
    )
    sbom: Optional[SoftwareBillOfMaterials] = None

    def by_severity(self, severity: Severity) -> Tuple[Vulnerability, ...]:
        return tuple(f for f in self.findings if f.severity == severity)

    def by_scanner(self, scanner: ScannerTag) -> Tuple[Vulnerability, ...]:
        return tuple(f for f in self.findings if f.scanner == scanner)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "findings": [f.to_dict() for f in self.findings],
            "threat_intel": [t.to_dict() for t in self.threat_intel],
            "remediations": {k: v.to_dict() for k, v in self.remediations.items()},
            "sbom": self.sbom.to_cyclonedx() if self.sbom is not None else None,
        }


__all__ = [
    "SNIPPET_PATH",
    "is_excluded",
    "ArtifactFile",
    "SourceArtifact",
    "Vulnerability",
    "BackendOutcome",
    "ScanSummary",
    "ThreatIntelReport",
    "RemediationSuggestion",
    "SbomComponent",
    "SoftwareBillOfMaterials",
    "ScanResult",
    "TOOL_NAME",
    "TOOL_VERSION",
]
