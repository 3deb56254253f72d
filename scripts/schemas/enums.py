"""
Enumerations shared by the schemas, backends and scanning core.

All enums are ``str``-valued so they serialize directly into JSON and SARIF
reports and compare equal to their wire values.
"""

from enum import Enum


class Severity(str, Enum):
    """Finding severity tiers, highest first."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFORMATIONAL = "Informational"

    @property
    def rank(self) -> int:
        """Numeric rank where a larger value is more severe."""
        return _SEVERITY_RANK[self]

    def at_least(self, threshold: "Severity") -> bool:
        return self.rank >= threshold.rank

    @classmethod
    def ordered(cls) -> list:
        return [cls.CRITICAL, cls.HIGH, cls.MEDIUM, cls.LOW, cls.INFORMATIONAL]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFORMATIONAL: 0,
}


class ScannerTag(str, Enum):
    """Provenance tag carried by every normalized finding."""

    STATIC_ANALYSIS = "StaticAnalysis"
    AI_MODEL_A = "AiModelA"
    AI_MODEL_B = "AiModelB"
    AI_FUSION = "AiFusion"
    DEPENDENCY = "Dependency"
    SECRET = "Secret"
    COMPLIANCE = "Compliance"

    @property
    def is_ai(self) -> bool:
        return self in (ScannerTag.AI_MODEL_A, ScannerTag.AI_MODEL_B, ScannerTag.AI_FUSION)


class VulnerabilityStatus(str, Enum):
    OPEN = "Open"
    TRIAGED = "Triaged"
    FIXED = "Fixed"
    FALSE_POSITIVE = "FalsePositive"
    ACCEPTED_RISK = "AcceptedRisk"
    REOPENED = "Reopened"


class BackendKind(str, Enum):
    """Scanner backend families the orchestrator can fan out to."""

    STATIC_ANALYSIS = "static_analysis"
    AI = "ai"
    DEPENDENCY = "dependency"
    SECRET = "secret"
    COMPLIANCE = "compliance"


class AiModel(str, Enum):
    MODEL_A = "model_a"
    MODEL_B = "model_b"
    FUSION = "fusion"


class ScanType(str, Enum):
    SAST = "SAST"
    SCA = "SCA"
    SECRET_SCAN = "SecretScan"
    COMPLIANCE = "Compliance"
    HYBRID = "HybridScan"


class ComplianceStandard(str, Enum):
    GDPR = "GDPR"
    HIPAA = "HIPAA"
    PCI_DSS = "PCI-DSS"
    ISO27001 = "ISO27001"
    SOC2 = "SOC2"
    NIST_800_53 = "NIST800-53"


class OrchestratorState(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"


class BackendStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


__all__ = [
    "Severity",
    "ScannerTag",
    "VulnerabilityStatus",
    "BackendKind",
    "AiModel",
    "ScanType",
    "ComplianceStandard",
    "OrchestratorState",
    "BackendStatus",
]
