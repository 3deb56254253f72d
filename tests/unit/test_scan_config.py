"""Tests for the schemas package: enums, RawFinding and ScanConfiguration."""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent / "scripts"))

from exceptions import ConfigurationError
from schemas import (
    BackendKind,
    ComplianceStandard,
    RawFinding,
    RelatedLocation,
    ScanConfiguration,
    ScannerTag,
    ScanType,
    Severity,
)


# ============================================================================
# Enums
# ============================================================================


class TestSeverity:
    def test_rank_order(self):
        ranks = [s.rank for s in Severity.ordered()]
        assert ranks == sorted(ranks, reverse=True)
        assert Severity.CRITICAL.rank == 4
        assert Severity.INFORMATIONAL.rank == 0

    def test_at_least(self):
        assert Severity.CRITICAL.at_least(Severity.HIGH)
        assert Severity.HIGH.at_least(Severity.HIGH)
        assert not Severity.LOW.at_least(Severity.MEDIUM)

    def test_string_values(self):
        assert Severity("Critical") is Severity.CRITICAL
        assert Severity.HIGH == "High"


class TestScannerTag:
    def test_ai_tags(self):
        assert ScannerTag.AI_MODEL_A.is_ai
        assert ScannerTag.AI_MODEL_B.is_ai
        assert ScannerTag.AI_FUSION.is_ai

    def test_non_ai_tags(self):
        for tag in (ScannerTag.STATIC_ANALYSIS, ScannerTag.SECRET, ScannerTag.DEPENDENCY, ScannerTag.COMPLIANCE):
            assert not tag.is_ai


# ============================================================================
# RawFinding
# ============================================================================


class TestRawFinding:
    def test_minimal(self):
        raw = RawFinding(title="Issue", severity=Severity.LOW)
        assert raw.description == ""
        assert raw.locations == ()
        assert raw.origin is None

    def test_severity_from_string(self):
        raw = RawFinding.model_validate({"title": "Issue", "severity": "High"})
        assert raw.severity is Severity.HIGH

    @pytest.mark.parametrize("value", ["79", "cwe-79", " CWE-79 "])
    def test_cwe_normalized(self, value):
        raw = RawFinding(title="XSS", severity=Severity.HIGH, cwe_id=value)
        assert raw.cwe_id == "CWE-79"

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            RawFinding(title="   ", severity=Severity.LOW)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            RawFinding.model_validate({"title": "x", "severity": "Low", "foo": 1})

    def test_out_of_range_values_rejected(self):
        with pytest.raises(ValidationError):
            RawFinding(title="x", severity=Severity.LOW, confidence=101)
        with pytest.raises(ValidationError):
            RawFinding(title="x", severity=Severity.LOW, cvss_score=10.5)
        with pytest.raises(ValidationError):
            RawFinding(title="x", severity=Severity.LOW, exploitability=1.2)

    def test_with_locations_returns_copy(self):
        raw = RawFinding(title="x", severity=Severity.LOW)
        moved = raw.with_locations((RelatedLocation(path="a.js", line=3),))
        assert raw.locations == ()
        assert str(moved.locations[0]) == "a.js:3"

    def test_location_without_line(self):
        assert str(RelatedLocation(path="a.js")) == "a.js"


# ============================================================================
# ScanConfiguration
# ============================================================================


class TestScanConfigurationFields:
    def test_defaults(self):
        config = ScanConfiguration()
        assert config.scan_type is ScanType.HYBRID
        assert config.severity_threshold is Severity.INFORMATIONAL
        assert config.include_dependencies is True
        assert config.compliance_standards == frozenset()
        assert config.include_exploit_details is False
        assert "node_modules/**" in config.excluded_paths

    def test_frozen(self):
        config = ScanConfiguration()
        with pytest.raises(ValidationError):
            config.scan_depth = 3

    def test_standards_from_comma_string(self):
        config = ScanConfiguration(compliance_standards="GDPR, PCI-DSS")
        assert config.compliance_standards == {ComplianceStandard.GDPR, ComplianceStandard.PCI_DSS}

    def test_standards_from_list(self):
        config = ScanConfiguration(compliance_standards=["HIPAA", "HIPAA"])
        assert config.compliance_standards == {ComplianceStandard.HIPAA}

    def test_sorted_standards_declaration_order(self):
        config = ScanConfiguration(compliance_standards=["SOC2", "GDPR", "HIPAA"])
        assert config.sorted_standards() == (
            ComplianceStandard.GDPR,
            ComplianceStandard.HIPAA,
            ComplianceStandard.SOC2,
        )

    def test_excluded_paths_normalized(self):
        config = ScanConfiguration(excluded_paths="./dist/**, vendor/** ,")
        assert config.excluded_paths == ("dist/**", "vendor/**")

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            ScanConfiguration(scan_depth=0)
        with pytest.raises(ValidationError):
            ScanConfiguration(timeout_seconds=0)
        with pytest.raises(ValidationError):
            ScanConfiguration(ai_max_attempts=6)
        with pytest.raises(ValidationError):
            ScanConfiguration(compliance_standards=["SOX"])


class TestFromMapping:
    def test_valid_mapping(self):
        config = ScanConfiguration.from_mapping({"scan_type": "SCA", "disabled_backends": "secret"})
        assert config.scan_type is ScanType.SCA
        assert config.disabled_backends == {BackendKind.SECRET}

    def test_unknown_key_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="Invalid scan configuration"):
            ScanConfiguration.from_mapping({"scan_tipe": "SAST"})

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ScanConfiguration.from_mapping({"scan_depth": -1})


class TestEnabledBackends:
    def test_hybrid_without_standards(self):
        assert ScanConfiguration().enabled_backends() == {
            BackendKind.STATIC_ANALYSIS,
            BackendKind.AI,
            BackendKind.SECRET,
            BackendKind.DEPENDENCY,
        }

    def test_hybrid_with_standards_adds_compliance(self):
        config = ScanConfiguration(compliance_standards=["GDPR"])
        assert BackendKind.COMPLIANCE in config.enabled_backends()

    def test_no_dependencies(self):
        config = ScanConfiguration(include_dependencies=False)
        assert BackendKind.DEPENDENCY not in config.enabled_backends()

    def test_secret_always_on_by_default(self):
        for scan_type, extra in [
            (ScanType.SAST, {}),
            (ScanType.SCA, {}),
            (ScanType.SECRET_SCAN, {}),
            (ScanType.COMPLIANCE, {"compliance_standards": ["SOC2"]}),
            (ScanType.HYBRID, {}),
        ]:
            config = ScanConfiguration(scan_type=scan_type, **extra)
            assert BackendKind.SECRET in config.enabled_backends()

    def test_sca(self):
        config = ScanConfiguration(scan_type=ScanType.SCA)
        assert config.enabled_backends() == {BackendKind.DEPENDENCY, BackendKind.SECRET}

    def test_secret_scan(self):
        config = ScanConfiguration(scan_type=ScanType.SECRET_SCAN)
        assert config.enabled_backends() == {BackendKind.SECRET}

    def test_sca_without_dependencies_rejected(self):
        config = ScanConfiguration(scan_type=ScanType.SCA, include_dependencies=False)
        with pytest.raises(ConfigurationError, match="dependency"):
            config.enabled_backends()

    def test_compliance_scan_without_standards_rejected(self):
        config = ScanConfiguration(scan_type=ScanType.COMPLIANCE)
        with pytest.raises(ConfigurationError, match="compliance"):
            config.enabled_backends()

    def test_hybrid_with_ai_disabled_rejected(self):
        config = ScanConfiguration(disabled_backends=["ai"])
        with pytest.raises(ConfigurationError):
            config.enabled_backends()

    def test_empty_set_rejected(self):
        config = ScanConfiguration(scan_type=ScanType.SECRET_SCAN, disabled_backends=["secret"])
        with pytest.raises(ConfigurationError, match="no enabled backends"):
            config.enabled_backends()
