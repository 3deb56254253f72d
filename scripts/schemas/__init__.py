"""
Pydantic schemas for the scan orchestration core

This package contains the validated models that cross the boundary between
callers, scanner backends and the core: the per-run configuration and the
raw findings backends emit.  Schemas enforce data consistency and catch
format errors at those boundaries.
"""

from .enums import (
    AiModel,
    BackendKind,
    BackendStatus,
    ComplianceStandard,
    OrchestratorState,
    ScannerTag,
    ScanType,
    Severity,
    VulnerabilityStatus,
)
from .raw_finding import RawFinding, RelatedLocation
from .scan_config import DEFAULT_EXCLUDED_PATHS, REQUIRED_BACKEND, ScanConfiguration

__all__ = [
    # Enumerations
    "AiModel",
    "BackendKind",
    "BackendStatus",
    "ComplianceStandard",
    "OrchestratorState",
    "ScannerTag",
    "ScanType",
    "Severity",
    "VulnerabilityStatus",
    # Backend boundary
    "RawFinding",
    "RelatedLocation",
    # Configuration
    "ScanConfiguration",
    "DEFAULT_EXCLUDED_PATHS",
    "REQUIRED_BACKEND",
]
