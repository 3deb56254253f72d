"""
Raw Finding Schema - the contract between scanner backends and the core.

Backends return ``RawFinding`` instances (or plain dicts that validate into
one).  Anything that does not validate is treated as malformed backend
output by the orchestrator.
"""

from __future__ import annotations

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ComplianceStandard, ScannerTag, Severity


class RelatedLocation(BaseModel):
    """A file path and optional 1-based line number."""

    model_config = ConfigDict(frozen=True)

    path: str
    line: Optional[int] = Field(default=None, ge=1)

    def __str__(self) -> str:
        return f"{self.path}:{self.line}" if self.line else self.path


class RawFinding(BaseModel):
    """Backend-native finding before normalization."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = Field(min_length=1)
    description: str = ""
    severity: Severity
    mitigation: Optional[str] = None
    exploit: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0, le=100)
    cvss_score: Optional[float] = Field(default=None, ge=0, le=10)
    cwe_id: Optional[str] = None
    regulatory_impact: Tuple[ComplianceStandard, ...] = ()
    locations: Tuple[RelatedLocation, ...] = ()
    exploitability: Optional[float] = Field(default=None, ge=0, le=1)
    impact: Optional[float] = Field(default=None, ge=0, le=1)
    origin: Optional[ScannerTag] = None  # set by composite backends

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v

    @field_validator("cwe_id")
    @classmethod
    def validate_cwe_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not v.startswith("CWE-"):
            v = f"CWE-{v}"
        return v

    def with_locations(self, locations: Tuple[RelatedLocation, ...]) -> "RawFinding":
        return self.model_copy(update={"locations": locations})


__all__ = ["RelatedLocation", "RawFinding"]
