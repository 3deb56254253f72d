"""
Scan Configuration Schema.

``ScanConfiguration`` is created once per run and never mutated.  Besides
field validation it owns the rule that decides which backend families a run
fans out to, so an inconsistent configuration is rejected before any backend
is started.
"""

from __future__ import annotations

from typing import Any, FrozenSet, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from exceptions import ConfigurationError

from .enums import AiModel, BackendKind, ComplianceStandard, ScanType, Severity

DEFAULT_EXCLUDED_PATHS: Tuple[str, ...] = ("node_modules/**", "dist/**", "build/**")

# ---------------------------------------------------------------------------
# Backend derivation tables
# ---------------------------------------------------------------------------

_FULL_SET = frozenset({
    BackendKind.STATIC_ANALYSIS,
    BackendKind.AI,
    BackendKind.SECRET,
    BackendKind.DEPENDENCY,
    BackendKind.COMPLIANCE,
})

_BASE_BACKENDS = {
    ScanType.SAST: _FULL_SET,
    ScanType.HYBRID: _FULL_SET,
    ScanType.SCA: frozenset({BackendKind.DEPENDENCY, BackendKind.SECRET}),
    ScanType.SECRET_SCAN: frozenset({BackendKind.SECRET}),
    ScanType.COMPLIANCE: frozenset({BackendKind.COMPLIANCE, BackendKind.SECRET}),
}

REQUIRED_BACKEND = {
    ScanType.SAST: BackendKind.STATIC_ANALYSIS,
    ScanType.HYBRID: BackendKind.AI,
    ScanType.SCA: BackendKind.DEPENDENCY,
    ScanType.SECRET_SCAN: BackendKind.SECRET,
    ScanType.COMPLIANCE: BackendKind.COMPLIANCE,
}


class ScanConfiguration(BaseModel):
    """Immutable per-run scan configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    scan_type: ScanType = ScanType.HYBRID
    ai_model: AiModel = AiModel.FUSION
    severity_threshold: Severity = Severity.INFORMATIONAL
    include_dependencies: bool = True
    enable_threat_intelligence: bool = False
    enable_auto_remediation: bool = False
    generate_sbom: bool = False
    compliance_standards: FrozenSet[ComplianceStandard] = frozenset()
    include_exploit_details: bool = False
    scan_depth: int = Field(default=8, ge=1)
    timeout_seconds: float = Field(default=300.0, gt=0)
    excluded_paths: Tuple[str, ...] = DEFAULT_EXCLUDED_PATHS
    disabled_backends: FrozenSet[BackendKind] = frozenset()
    ai_max_attempts: int = Field(default=2, ge=1, le=5)

    @field_validator("compliance_standards", "disabled_backends", mode="before")
    @classmethod
    def split_comma_separated(cls, v: Any) -> Any:
        # Profiles and CLI flags pass "GDPR,HIPAA" style strings
        if isinstance(v, str):
            return frozenset(part.strip() for part in v.split(",") if part.strip())
        return v

    @field_validator("excluded_paths", mode="before")
    @classmethod
    def normalize_excluded_paths(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.split(",")
        return tuple(p.strip().removeprefix("./") for p in v if p and p.strip())

    # -- construction -------------------------------------------------------

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScanConfiguration":
        """Validate *data* into a configuration.

        Raises
        ------
        ConfigurationError
            If any field is missing its constraints or unknown keys are present.
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid scan configuration: {exc}") from exc

    # -- derived views ------------------------------------------------------

    def enabled_backends(self) -> FrozenSet[BackendKind]:
        """Return the backend families this configuration fans out to.

        Raises
        ------
        ConfigurationError
            If the resulting set is empty or lacks the backend the scan type
            cannot run without.
        """
        enabled = set(_BASE_BACKENDS[self.scan_type])
        if not self.include_dependencies:
            enabled.discard(BackendKind.DEPENDENCY)
        if not self.compliance_standards:
            enabled.discard(BackendKind.COMPLIANCE)
        enabled -= set(self.disabled_backends)

        if not enabled:
            raise ConfigurationError(
                f"Scan type {self.scan_type.value} has no enabled backends"
            )
        required = REQUIRED_BACKEND[self.scan_type]
        if required not in enabled:
            raise ConfigurationError(
                f"Scan type {self.scan_type.value} requires the "
                f"'{required.value}' backend, which this configuration disables"
            )
        return frozenset(enabled)

    def sorted_standards(self) -> Tuple[ComplianceStandard, ...]:
        """Requested standards in declaration order."""
        return tuple(s for s in ComplianceStandard if s in self.compliance_standards)


__all__ = ["ScanConfiguration", "DEFAULT_EXCLUDED_PATHS", "REQUIRED_BACKEND"]
