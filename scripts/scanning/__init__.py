"""
Scan Orchestration Core.

Runs scanner backends concurrently against a code artifact and aggregates
their output into a deduplicated, scored ``ScanResult``.

Modules:
    models: Artifact, finding, summary and result data classes
    normalizer: Raw backend findings to canonical records
    deduplicator: Cross-scanner duplicate merging
    risk_scorer: Per-finding and aggregate risk scoring
    compliance_scorer: Per-standard compliance percentages
    summary: Summary aggregation
    threat_intel: Advisory matching
    remediation: Suggested fixes
    sbom: CycloneDX-style bill of materials
    orchestrator: The run coordinator
    report: JSON, SARIF and Markdown rendering
    cli: Command-line entry point
"""

from scanning.compliance_scorer import ComplianceScorer
from scanning.deduplicator import DeduplicationResult, Deduplicator, deduplicate
from scanning.models import (
    ArtifactFile,
    BackendOutcome,
    RemediationSuggestion,
    SbomComponent,
    ScanResult,
    ScanSummary,
    SoftwareBillOfMaterials,
    SourceArtifact,
    ThreatIntelReport,
    Vulnerability,
)
from scanning.normalizer import ResultNormalizer
from scanning.orchestrator import ScanOrchestrator
from scanning.remediation import RemediationAdvisor
from scanning.report import ReportBuilder
from scanning.risk_scorer import RiskScorer, compute_severity_score
from scanning.sbom import build_sbom
from scanning.threat_intel import ThreatIntelEnricher

__all__ = [
    "ArtifactFile",
    "SourceArtifact",
    "Vulnerability",
    "BackendOutcome",
    "ScanSummary",
    "ScanResult",
    "ThreatIntelReport",
    "RemediationSuggestion",
    "SbomComponent",
    "SoftwareBillOfMaterials",
    "build_sbom",
    "ResultNormalizer",
    "Deduplicator",
    "DeduplicationResult",
    "deduplicate",
    "RiskScorer",
    "compute_severity_score",
    "ComplianceScorer",
    "ThreatIntelEnricher",
    "RemediationAdvisor",
    "ScanOrchestrator",
    "ReportBuilder",
]
