"""
Tests for Configuration Profiles

Tests config_loader.py: profile loading, inheritance, flattening,
CLI overrides, the full merge chain and ScanConfiguration construction.
"""

import sys
from argparse import Namespace
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "scripts"))

import config_loader
from config_loader import (
    build_scan_configuration,
    build_unified_config,
    deep_merge,
    extract_cli_overrides,
    flatten_profile,
    get_default_config,
    list_available_profiles,
    load_profile,
    validate_config,
)
from exceptions import ConfigurationError
from schemas import BackendKind, ComplianceStandard, ScanConfiguration, ScanType, Severity


@pytest.fixture()
def profile_dir(tmp_path, monkeypatch):
    """Point profile lookup at a temporary directory."""
    monkeypatch.setattr(config_loader, "_profile_search_paths", lambda name: [tmp_path / f"{name}.yml"])
    return tmp_path


# ============================================================================
# Test get_default_config
# ============================================================================


class TestGetDefaultConfig:
    def test_returns_dict(self):
        assert isinstance(get_default_config(), dict)

    def test_keys_are_configuration_fields(self):
        assert set(get_default_config()) <= set(ScanConfiguration.model_fields)

    def test_defaults_validate(self):
        config = ScanConfiguration.from_mapping(get_default_config())
        assert config == ScanConfiguration()


# ============================================================================
# Test flatten_profile
# ============================================================================


class TestFlattenProfile:
    def test_scan_section(self):
        flat = flatten_profile({"scan": {"scan_type": "SAST", "scan_depth": 3}})
        assert flat == {"scan_type": "SAST", "scan_depth": 3}

    def test_ai_section(self):
        flat = flatten_profile({"ai": {"model": "model_b", "max_attempts": 4}})
        assert flat == {"ai_model": "model_b", "ai_max_attempts": 4}

    def test_scanners_section(self):
        flat = flatten_profile({"scanners": {"ai": False, "secret": True, "dependency": False}})
        assert flat == {"include_dependencies": False, "disabled_backends": ["ai"]}

    def test_unknown_scanner_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown scanner"):
            flatten_profile({"scanners": {"fuzzer": True}})

    def test_compliance_paths_limits(self):
        flat = flatten_profile({
            "compliance": {"standards": ["GDPR"]},
            "paths": {"exclude": ["vendor/**"]},
            "limits": {"timeout_seconds": 30},
        })
        assert flat == {
            "compliance_standards": ["GDPR"],
            "excluded_paths": ["vendor/**"],
            "timeout_seconds": 30,
        }

    def test_features_prefixed(self):
        flat = flatten_profile({"features": {"threat_intelligence": True, "auto_remediation": False}})
        assert flat == {"enable_threat_intelligence": True, "enable_auto_remediation": False}

    def test_none_values_excluded(self):
        assert flatten_profile({"scan": {"scan_type": None}, "ai": {"model": None}}) == {}

    def test_descriptive_keys_dropped(self):
        assert flatten_profile({"name": "x", "description": "y"}) == {}


# ============================================================================
# Test load_profile
# ============================================================================


class TestLoadProfile:
    def test_load_standard_profile(self):
        flat = load_profile("standard")
        assert flat["scan_type"] == "HybridScan"
        assert flat["ai_model"] == "fusion"
        assert flat["include_dependencies"] is True

    def test_quick_inherits_standard(self):
        flat = load_profile("quick")
        assert flat["scan_type"] == "SAST"
        assert flat["severity_threshold"] == "Medium"
        assert flat["disabled_backends"] == ["ai"]
        assert flat["include_dependencies"] is False
        # inherited from standard
        assert flat["excluded_paths"] == ["node_modules/**", "dist/**", "build/**"]
        assert flat["ai_max_attempts"] == 2

    def test_compliance_profile(self):
        flat = load_profile("compliance")
        assert flat["scan_type"] == "Compliance"
        assert len(flat["compliance_standards"]) == 6
        assert flat["enable_auto_remediation"] is True
        assert flat["generate_sbom"] is True
        assert load_profile("standard")["generate_sbom"] is False

    def test_nonexistent_profile(self):
        with pytest.raises(FileNotFoundError, match="not found"):
            load_profile("no-such-profile")

    def test_all_profiles_loadable(self):
        for name in list_available_profiles():
            assert isinstance(load_profile(name), dict)

    def test_circular_inheritance(self, profile_dir):
        (profile_dir / "a.yml").write_text("_extends: b\n", encoding="utf-8")
        (profile_dir / "b.yml").write_text("_extends: a\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Circular"):
            load_profile("a")

    def test_non_mapping_profile(self, profile_dir):
        (profile_dir / "bad.yml").write_text("- one\n- two\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_profile("bad")

    def test_child_overrides_nested_parent(self, profile_dir):
        (profile_dir / "base.yml").write_text(
            "scan:\n  scan_type: SAST\n  scan_depth: 5\n", encoding="utf-8"
        )
        (profile_dir / "child.yml").write_text(
            "_extends: base\nscan:\n  scan_depth: 2\n", encoding="utf-8"
        )
        assert load_profile("child") == {"scan_type": "SAST", "scan_depth": 2}

    def test_empty_profile(self, profile_dir):
        (profile_dir / "empty.yml").write_text("", encoding="utf-8")
        assert load_profile("empty") == {}


# ============================================================================
# Test extract_cli_overrides / deep_merge
# ============================================================================


class TestExtractCliOverrides:
    def test_none_args(self):
        assert extract_cli_overrides(None) == {}

    def test_explicit_args(self):
        args = Namespace(scan_type="SAST", compliance="GDPR,HIPAA", timeout=30.0, exclude=None)
        assert extract_cli_overrides(args) == {
            "scan_type": "SAST",
            "compliance_standards": "GDPR,HIPAA",
            "timeout_seconds": 30.0,
        }

    def test_store_true_shorthands(self):
        args = Namespace(no_dependencies=True, threat_intel=True, auto_remediation=False, exploit_details=True)
        assert extract_cli_overrides(args) == {
            "include_dependencies": False,
            "enable_threat_intelligence": True,
            "include_exploit_details": True,
        }

    def test_sbom_flag(self):
        assert extract_cli_overrides(Namespace(sbom=True)) == {"generate_sbom": True}
        assert extract_cli_overrides(Namespace(sbom=False)) == {}


class TestDeepMerge:
    def test_basic_merge(self):
        assert deep_merge({"a": 1, "b": 2}, {"b": 3}) == {"a": 1, "b": 3}

    def test_none_skipped(self):
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_base_unchanged(self):
        base = {"a": 1}
        deep_merge(base, {"a": 2})
        assert base == {"a": 1}


# ============================================================================
# Test build_unified_config / build_scan_configuration
# ============================================================================


class TestBuildConfiguration:
    def test_defaults_only(self):
        assert build_unified_config() == get_default_config()

    def test_layer_precedence(self):
        args = Namespace(severity_threshold="High", scan_depth=3)
        flat = build_unified_config(profile="quick", cli_args=args, overrides={"scan_depth": 1})
        assert flat["scan_type"] == "SAST"          # profile
        assert flat["severity_threshold"] == "High"  # cli beats profile
        assert flat["scan_depth"] == 1               # overrides beat cli

    def test_build_quick(self):
        config = build_scan_configuration(profile="quick")
        assert config.scan_type is ScanType.SAST
        assert config.severity_threshold is Severity.MEDIUM
        assert config.enabled_backends() == {BackendKind.STATIC_ANALYSIS, BackendKind.SECRET}

    def test_build_compliance(self):
        config = build_scan_configuration(profile="compliance")
        assert config.compliance_standards == set(ComplianceStandard)
        assert config.enabled_backends() == {BackendKind.COMPLIANCE, BackendKind.SECRET}
        assert config.generate_sbom is True

    def test_cli_standards_string(self):
        args = Namespace(compliance="GDPR, PCI-DSS")
        config = build_scan_configuration(profile="standard", cli_args=args)
        assert config.compliance_standards == {ComplianceStandard.GDPR, ComplianceStandard.PCI_DSS}

    def test_invalid_value_rejected(self):
        with pytest.raises(ConfigurationError):
            build_scan_configuration(overrides={"severity_threshold": "Severe"})

    def test_inconsistent_combination_rejected(self):
        with pytest.raises(ConfigurationError, match="requires"):
            build_scan_configuration(profile="standard", overrides={"scan_type": "Compliance"})


# ============================================================================
# Test validate_config / list_available_profiles
# ============================================================================


class TestValidateConfig:
    def test_defaults_clean(self):
        assert validate_config(get_default_config()) == []

    def test_secret_disabled_warns(self):
        issues = validate_config({"disabled_backends": "secret,ai"})
        assert any("secret backend is disabled" in i for i in issues)

    def test_exploit_details_with_high_threshold(self):
        issues = validate_config({"include_exploit_details": True, "severity_threshold": "High"})
        assert len(issues) == 1

    def test_short_timeout(self):
        assert validate_config({"timeout_seconds": 2})


class TestListAvailableProfiles:
    def test_bundled_profiles_listed(self):
        assert {"standard", "quick", "compliance"} <= set(list_available_profiles())
