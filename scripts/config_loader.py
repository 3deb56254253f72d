"""
Configuration Loader for the fusion-scan orchestrator.

Implements a layered configuration system:
    hardcoded defaults < profile YAML < explicit overrides (CLI args)

The scan core itself reads no environment variables or files; this module
belongs to the surrounding application and produces the immutable
``ScanConfiguration`` handed to ``ScanOrchestrator.run``.

Usage:
    from config_loader import build_scan_configuration
    config = build_scan_configuration(profile="standard", cli_args=args)
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from exceptions import ConfigurationError
from schemas import ScanConfiguration

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root detection
# ---------------------------------------------------------------------------

def _find_project_root() -> Path:
    """Find the project root by looking for known markers."""
    # Walk up from this file's directory
    current = Path(__file__).resolve().parent
    for ancestor in [current, *current.parents]:
        if (ancestor / "profiles").is_dir() and (ancestor / "scripts").is_dir():
            return ancestor
        if (ancestor / "pyproject.toml").is_file():
            return ancestor
    return current.parent


PROJECT_ROOT = _find_project_root()
USER_DIR_NAME = ".fusion-scan"

# ---------------------------------------------------------------------------
# Default configuration
# ---------------------------------------------------------------------------

def get_default_config() -> Dict[str, Any]:
    """Return the hardcoded default configuration as a flat dict.

    Keys are ``ScanConfiguration`` field names.
    """
    return {
        # -- Scan --
        "scan_type": "HybridScan",
        "severity_threshold": "Informational",
        "scan_depth": 8,
        "include_exploit_details": False,
        "generate_sbom": False,

        # -- AI --
        "ai_model": "fusion",
        "ai_max_attempts": 2,

        # -- Backends --
        "include_dependencies": True,
        "disabled_backends": [],

        # -- Compliance --
        "compliance_standards": [],

        # -- Limits --
        "timeout_seconds": 300,

        # -- Paths --
        "excluded_paths": ["node_modules/**", "dist/**", "build/**"],

        # -- Features --
        "enable_threat_intelligence": False,
        "enable_auto_remediation": False,
    }

# ---------------------------------------------------------------------------
# Profile loading
# ---------------------------------------------------------------------------

def _profile_search_paths(profile_name: str) -> List[Path]:
    """Return candidate YAML paths for *profile_name*, in priority order.

    The first existing file wins: built-in, then user, then project-local.
    """
    return [
        PROJECT_ROOT / "profiles" / f"{profile_name}.yml",              # built-in
        Path.home() / USER_DIR_NAME / "profiles" / f"{profile_name}.yml",  # user
        Path(USER_DIR_NAME) / "profiles" / f"{profile_name}.yml",          # project-local
    ]


def _load_raw_profile(profile_name: str, _chain: Optional[List[str]] = None) -> dict:
    """Load raw YAML dict for *profile_name*, resolving ``_extends``.

    Parameters
    ----------
    profile_name:
        Name of the profile to load (without ``.yml`` extension).
    _chain:
        Internal recursion guard tracking the inheritance chain.

    Returns
    -------
    dict
        The merged (nested) profile dict with parent values as base.

    Raises
    ------
    FileNotFoundError
        If the profile YAML cannot be found in any search path.
    ConfigurationError
        If a circular ``_extends`` chain is detected or the YAML is not a
        mapping.
    """
    if _chain is None:
        _chain = []

    if profile_name in _chain:
        raise ConfigurationError(
            f"Circular profile inheritance detected: "
            f"{' -> '.join(_chain)} -> {profile_name}"
        )
    _chain.append(profile_name)

    loaded_path: Optional[Path] = None
    for candidate in _profile_search_paths(profile_name):
        if candidate.is_file():
            loaded_path = candidate
            break

    if loaded_path is None:
        raise FileNotFoundError(
            f"Profile '{profile_name}' not found.  Searched: "
            + ", ".join(str(p) for p in _profile_search_paths(profile_name))
        )

    logger.info("Loading profile '%s' from %s", profile_name, loaded_path)
    with open(loaded_path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Profile '{profile_name}' must be a YAML mapping")

    # Handle inheritance
    parent_name = raw.pop("_extends", None)
    if parent_name:
        parent = _load_raw_profile(parent_name, _chain=_chain)
        raw = _deep_merge_nested(parent, raw)

    return raw


def _deep_merge_nested(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (nested dicts)."""
    merged = dict(base)
    for key, value in override.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = _deep_merge_nested(merged[key], value)
        else:
            merged[key] = value
    return merged

# ---------------------------------------------------------------------------
# Flatten nested YAML -> flat config dict
# ---------------------------------------------------------------------------

_SCANNER_KEYS = {
    "static_analysis": "static_analysis",
    "ai": "ai",
    "dependency": "dependency",
    "secret": "secret",
    "compliance": "compliance",
}


def flatten_profile(nested: dict) -> Dict[str, Any]:
    """Convert a nested profile YAML dict to a flat config dict.

    Mapping rules:
    - ``nested["scan"][key]``          -> key (directly)
    - ``nested["ai"]["model"]``        -> ``ai_model``
    - ``nested["ai"]["max_attempts"]`` -> ``ai_max_attempts``
    - ``nested["scanners"][kind]``     -> ``kind`` added to
      ``disabled_backends`` when false; ``scanners.dependency`` also sets
      ``include_dependencies``
    - ``nested["compliance"]["standards"]`` -> ``compliance_standards``
    - ``nested["limits"][key]``        -> key (directly)
    - ``nested["paths"]["exclude"]``   -> ``excluded_paths``
    - ``nested["features"][key]``      -> ``enable_{key}``
    - Top-level ``name`` and ``description`` are dropped; they describe
      the profile, not the scan.

    Only non-None values are included.
    """
    flat: Dict[str, Any] = {}

    # -- scan (direct) --
    scan = nested.get("scan")
    if isinstance(scan, dict):
        for key, value in scan.items():
            if value is not None:
                flat[key] = value

    # -- ai section --
    ai = nested.get("ai")
    if isinstance(ai, dict):
        if ai.get("model") is not None:
            flat["ai_model"] = ai["model"]
        if ai.get("max_attempts") is not None:
            flat["ai_max_attempts"] = ai["max_attempts"]

    # -- scanners (enable/disable) --
    scanners = nested.get("scanners")
    if isinstance(scanners, dict):
        disabled = []
        for key, enabled in scanners.items():
            if enabled is None:
                continue
            if key not in _SCANNER_KEYS:
                raise ConfigurationError(
                    f"Unknown scanner '{key}' in profile. "
                    f"Must be one of: {', '.join(sorted(_SCANNER_KEYS))}"
                )
            if key == "dependency":
                flat["include_dependencies"] = bool(enabled)
            elif not enabled:
                disabled.append(_SCANNER_KEYS[key])
        if disabled:
            flat["disabled_backends"] = disabled

    # -- compliance --
    compliance = nested.get("compliance")
    if isinstance(compliance, dict) and compliance.get("standards") is not None:
        flat["compliance_standards"] = compliance["standards"]

    # -- limits (direct) --
    limits = nested.get("limits")
    if isinstance(limits, dict):
        for key, value in limits.items():
            if value is not None:
                flat[key] = value

    # -- paths --
    paths = nested.get("paths")
    if isinstance(paths, dict) and paths.get("exclude") is not None:
        flat["excluded_paths"] = paths["exclude"]

    # -- features (prefixed) --
    features = nested.get("features")
    if isinstance(features, dict):
        for key, value in features.items():
            if value is not None:
                flat[f"enable_{key}"] = value

    return flat


def load_profile(profile_name: str) -> Dict[str, Any]:
    """Load a profile by name and return a flat config dict.

    Search order (first match wins):
      1. ``{PROJECT_ROOT}/profiles/{name}.yml``      (built-in)
      2. ``~/.fusion-scan/profiles/{name}.yml``      (user)
      3. ``.fusion-scan/profiles/{name}.yml``        (project-local)

    The ``_extends`` key enables profile inheritance: the parent profile is
    loaded first and the child values are overlaid on top.
    """
    return flatten_profile(_load_raw_profile(profile_name))

# ---------------------------------------------------------------------------
# CLI overrides
# ---------------------------------------------------------------------------

_CLI_ATTR_MAP = {
    "scan_type": "scan_type",
    "ai_model": "ai_model",
    "severity_threshold": "severity_threshold",
    "compliance": "compliance_standards",
    "timeout": "timeout_seconds",
    "scan_depth": "scan_depth",
    "exclude": "excluded_paths",
    "disable_backend": "disabled_backends",
    "ai_max_attempts": "ai_max_attempts",
}


def extract_cli_overrides(args: Any) -> Dict[str, Any]:
    """Extract explicitly-set CLI arguments into a flat config dict.

    Only attributes whose value is not ``None`` are included, so that
    argparse defaults do not shadow earlier layers.

    Parameters
    ----------
    args:
        An ``argparse.Namespace`` (or compatible object).

    Returns
    -------
    dict
        Config keys with values that were explicitly passed on the CLI.
    """
    if args is None:
        return {}

    overrides: Dict[str, Any] = {}
    for attr, config_key in _CLI_ATTR_MAP.items():
        value = getattr(args, attr, None)
        if value is not None:
            overrides[config_key] = value

    # store_true / store_false shorthands
    if getattr(args, "no_dependencies", False):
        overrides["include_dependencies"] = False
    if getattr(args, "threat_intel", False):
        overrides["enable_threat_intelligence"] = True
    if getattr(args, "auto_remediation", False):
        overrides["enable_auto_remediation"] = True
    if getattr(args, "exploit_details", False):
        overrides["include_exploit_details"] = True
    if getattr(args, "sbom", False):
        overrides["generate_sbom"] = True

    return overrides

# ---------------------------------------------------------------------------
# Merge helpers
# ---------------------------------------------------------------------------

def deep_merge(base: dict, override: dict) -> dict:
    """Merge *override* into *base*.  Only non-None override values win.

    This operates on **flat** dicts (no recursive descent).  ``None``
    values in *override* are silently skipped.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is not None:
            merged[key] = value
    return merged

# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def build_unified_config(
    profile: Optional[str] = None,
    cli_args: Any = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a fully-merged flat configuration dict.

    Layer precedence (last wins):
        1. Hard-coded defaults          (``get_default_config()``)
        2. Profile YAML                 (``load_profile()``)
        3. CLI arguments                (``extract_cli_overrides()``)
        4. Explicit *overrides*
    """
    config = get_default_config()
    if profile:
        config = deep_merge(config, load_profile(profile))
    config = deep_merge(config, extract_cli_overrides(cli_args))
    if overrides:
        config = deep_merge(config, overrides)
    return config


def build_scan_configuration(
    profile: Optional[str] = None,
    cli_args: Any = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ScanConfiguration:
    """Build and validate the ``ScanConfiguration`` for one run.

    Raises
    ------
    ConfigurationError
        If the merged configuration fails validation or enables no usable
        backend set.
    FileNotFoundError
        If *profile* does not exist.
    """
    flat = build_unified_config(profile=profile, cli_args=cli_args, overrides=overrides)
    for issue in validate_config(flat):
        logger.warning("%s", issue)
    config = ScanConfiguration.from_mapping(flat)
    config.enabled_backends()
    return config

# ---------------------------------------------------------------------------
# Profile discovery
# ---------------------------------------------------------------------------

def list_available_profiles() -> List[str]:
    """Return the names of all available profiles.

    Searches:
    - ``{PROJECT_ROOT}/profiles/*.yml``
    - ``~/.fusion-scan/profiles/*.yml``
    - ``.fusion-scan/profiles/*.yml``
    """
    names: set = set()

    search_dirs = [
        PROJECT_ROOT / "profiles",
        Path.home() / USER_DIR_NAME / "profiles",
        Path(USER_DIR_NAME) / "profiles",
    ]
    for directory in search_dirs:
        if directory.is_dir():
            for yml_file in directory.glob("*.yml"):
                names.add(yml_file.stem)

    return sorted(names)

# ---------------------------------------------------------------------------
# Configuration validation
# ---------------------------------------------------------------------------

def validate_config(config: Dict[str, Any]) -> List[str]:
    """Return advisory warnings for a flat configuration dict.

    Hard validation happens in ``ScanConfiguration``; this only flags
    combinations that are valid but probably not what the user meant.
    """
    issues: List[str] = []

    disabled = config.get("disabled_backends") or []
    if isinstance(disabled, str):
        disabled = [d.strip() for d in disabled.split(",")]
    if "secret" in disabled:
        issues.append(
            "WARNING: the secret backend is disabled; hardcoded credentials will not be reported."
        )
    if config.get("include_exploit_details") and config.get("severity_threshold") in ("Critical", "High"):
        issues.append(
            "WARNING: include_exploit_details has no effect on findings filtered out "
            "by severity_threshold."
        )
    timeout = config.get("timeout_seconds")
    if isinstance(timeout, (int, float)) and 0 < timeout < 5:
        issues.append(
            f"WARNING: timeout_seconds={timeout} is very short; slow backends will be "
            "reported as timed out."
        )

    return issues
