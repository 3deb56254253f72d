#!/usr/bin/env python3
"""
Dependency Scanner Module

Software composition analysis over manifest-like content.  Declared
dependencies are extracted from package.json entries, ``name==version``
requirement pins and ``name@version`` specs, then compared against a table of
known-vulnerable version ranges.  Packages whose license carries copyleft
obligations are reported as license-compliance findings.

The advisory table is a small bundled catalog, not a live CVE feed.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from schemas import BackendKind, RawFinding, RelatedLocation, ScanConfiguration, ScannerTag, Severity

from .base import BaseScanner, line_of_offset
from .licenses import license_severity, package_license

__all__ = [
    "Advisory",
    "DeclaredDependency",
    "UpgradeType",
    "DependencyScanner",
    "ADVISORIES",
    "parse_version",
    "determine_upgrade_type",
    "extract_dependencies",
    "LICENSE_FINDING_TITLE",
]

logger = logging.getLogger(__name__)

LICENSE_FINDING_TITLE = "Incompatible Software License Detected"
LICENSE_CVSS_SCORE = 2.0


class UpgradeType(str, Enum):
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Advisory:
    """A known-vulnerable range: every version below ``fixed_version``."""

    package: str
    fixed_version: str
    title: str
    cve_id: str
    cwe_id: str
    severity: Severity
    cvss_score: float
    summary: str


@dataclass(frozen=True)
class DeclaredDependency:
    name: str
    version: str
    line: int


ADVISORIES: List[Advisory] = [
    Advisory("lodash", "4.17.12", "Prototype Pollution in lodash", "CVE-2019-10744",
             "CWE-1321", Severity.HIGH, 7.5,
             "defaultsDeep can be tricked into adding or modifying properties of Object.prototype."),
    Advisory("express", "4.11.1", "Path Traversal in express static file serving", "CVE-2014-6394",
             "CWE-22", Severity.MEDIUM, 6.0,
             "Crafted paths can escape the static root and read arbitrary files."),
    Advisory("set-value", "2.0.1", "Prototype Pollution in set-value", "CVE-2019-10747",
             "CWE-913", Severity.CRITICAL, 9.8,
             "Object keys such as __proto__ let attackers modify Object.prototype."),
    Advisory("minimist", "1.2.6", "Prototype Pollution in minimist", "CVE-2021-44906",
             "CWE-1321", Severity.CRITICAL, 9.8,
             "Argument parsing writes attacker-controlled keys into Object.prototype."),
    Advisory("moment", "2.29.4", "Regular Expression Denial of Service in moment", "CVE-2022-31129",
             "CWE-1333", Severity.HIGH, 7.5,
             "RFC 2822 date parsing has quadratic complexity on long crafted input."),
    Advisory("axios", "1.6.0", "Cross-Site Request Forgery in axios", "CVE-2023-45857",
             "CWE-352", Severity.MEDIUM, 6.5,
             "The XSRF-TOKEN cookie is sent to every host, leaking it to third parties."),
    Advisory("jsonwebtoken", "9.0.0", "Insecure Key Handling in jsonwebtoken", "CVE-2022-23529",
             "CWE-20", Severity.HIGH, 7.6,
             "A poisoned secretOrPublicKey object can lead to remote code execution."),
    Advisory("requests", "2.31.0", "Proxy-Authorization Header Leak in requests", "CVE-2023-32681",
             "CWE-200", Severity.MEDIUM, 6.1,
             "Proxy credentials are forwarded to the destination server on HTTPS redirects."),
    Advisory("pyyaml", "5.4", "Arbitrary Code Execution in PyYAML full_load", "CVE-2020-14343",
             "CWE-20", Severity.CRITICAL, 9.8,
             "full_load and FullLoader can construct arbitrary Python objects."),
]

# ---------------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------------

_VERSION_PATTERN = re.compile(r"^\d+(\.\d+)*$")


def parse_version(version_str: str) -> Optional[Tuple[int, ...]]:
    """Parse a semver-like version string into a tuple of integers.

    Args:
        version_str: A version string like "1.2.3" or "2.0".

    Returns:
        A tuple of ints, e.g. (1, 2, 3), or None if parsing fails.
    """
    if not version_str or not isinstance(version_str, str):
        return None
    version_str = version_str.strip()
    if not _VERSION_PATTERN.match(version_str):
        return None
    return tuple(int(p) for p in version_str.split("."))


def _pad(parts: Tuple[int, ...], size: int) -> Tuple[int, ...]:
    return parts + (0,) * (size - len(parts))


def is_vulnerable(installed: str, fixed: str) -> bool:
    installed_parts = parse_version(installed)
    fixed_parts = parse_version(fixed)
    if installed_parts is None or fixed_parts is None:
        return False
    size = max(len(installed_parts), len(fixed_parts))
    return _pad(installed_parts, size) < _pad(fixed_parts, size)


def determine_upgrade_type(installed: str, fixed: str) -> UpgradeType:
    """Classify the upgrade from *installed* to *fixed* as patch, minor or major."""
    installed_parts = parse_version(installed)
    fixed_parts = parse_version(fixed)
    if installed_parts is None or fixed_parts is None:
        return UpgradeType.UNKNOWN
    installed_parts, fixed_parts = _pad(installed_parts, 3), _pad(fixed_parts, 3)
    if installed_parts[0] != fixed_parts[0]:
        return UpgradeType.MAJOR
    if installed_parts[1] != fixed_parts[1]:
        return UpgradeType.MINOR
    return UpgradeType.PATCH

# ---------------------------------------------------------------------------
# Manifest parsing
# ---------------------------------------------------------------------------

_MANIFEST_PATTERNS = [
    # package.json: "lodash": "^4.17.11"
    re.compile(r'"(?P<name>@?[\w./-]+)"\s*:\s*"[\^~>=v\s]*(?P<version>\d+(?:\.\d+)*)"'),
    # requirements.txt: requests==2.25.0
    re.compile(r"^\s*(?P<name>[A-Za-z0-9_.-]+)\s*==\s*(?P<version>\d+(?:\.\d+)*)", re.MULTILINE),
    # npm/yarn spec: lodash@4.17.11
    re.compile(r"(?<![\w/@.])(?P<name>@?[a-z0-9][\w.-]*)@(?P<version>\d+(?:\.\d+)*)\b"),
]

# package.json fields that look like "name": "1.2.3" but are not dependencies
_MANIFEST_METADATA_KEYS = frozenset({"version", "node", "npm", "yarn", "pnpm"})


def extract_dependencies(source: str) -> Dict[str, DeclaredDependency]:
    """Extract declared dependencies keyed by lowercase package name.

    The first declaration of a package wins.
    """
    found: Dict[str, DeclaredDependency] = {}
    for pattern in _MANIFEST_PATTERNS:
        for match in pattern.finditer(source):
            name = match.group("name").lower()
            if name in found or name in _MANIFEST_METADATA_KEYS:
                continue
            found[name] = DeclaredDependency(
                name=name,
                version=match.group("version"),
                line=line_of_offset(source, match.start()),
            )
    return found


def _license_finding(dep: DeclaredDependency, license_id: str, severity: Severity) -> RawFinding:
    return RawFinding(
        title=LICENSE_FINDING_TITLE,
        description=(
            f"{dep.name}@{dep.version} is distributed under {license_id}, whose copyleft "
            "obligations may conflict with proprietary distribution of this code."
        ),
        severity=severity,
        mitigation=(
            "Review the license against your distribution model and legal policy, "
            "document the obligation, or replace the package with a permissively "
            "licensed alternative."
        ),
        cvss_score=LICENSE_CVSS_SCORE,
        locations=(RelatedLocation(path="snippet", line=dep.line),),
    )


class DependencyScanner(BaseScanner):
    """Known-vulnerable dependency and license-compliance detection backend.

    ``licenses`` maps lowercase package names to SPDX identifiers and
    replaces the bundled catalog lookup when given.
    """

    name = "dependency-scanner"
    kind = BackendKind.DEPENDENCY
    scanner_tag = ScannerTag.DEPENDENCY

    def __init__(
        self,
        advisories: Optional[Iterable[Advisory]] = None,
        licenses: Optional[Dict[str, str]] = None,
    ):
        self.advisories = list(advisories) if advisories is not None else list(ADVISORIES)
        self.licenses = dict(licenses) if licenses is not None else None

    def license_of(self, package: str) -> Optional[str]:
        if self.licenses is not None:
            return self.licenses.get(package.lower())
        return package_license(package)

    def _scan(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        dependencies = extract_dependencies(source)
        if not dependencies:
            return []
        logger.debug("Extracted %d declared dependencies", len(dependencies))

        findings = self._advisory_findings(dependencies)
        for dep in dependencies.values():
            license_id = self.license_of(dep.name)
            severity = license_severity(license_id)
            if severity is not None:
                logger.debug("Package %s ships under flagged license %s", dep.name, license_id)
                findings.append(_license_finding(dep, license_id, severity))
        return findings

    def _advisory_findings(self, dependencies: Dict[str, DeclaredDependency]) -> List[RawFinding]:
        findings = []
        for advisory in self.advisories:
            dep = dependencies.get(advisory.package)
            if dep is None or not is_vulnerable(dep.version, advisory.fixed_version):
                continue
            upgrade = determine_upgrade_type(dep.version, advisory.fixed_version)
            findings.append(
                RawFinding(
                    title=advisory.title,
                    description=(
                        f"{advisory.package}@{dep.version} is affected by {advisory.cve_id}: "
                        f"{advisory.summary}"
                    ),
                    severity=advisory.severity,
                    mitigation=(
                        f"Upgrade {advisory.package} to {advisory.fixed_version} or later "
                        f"({upgrade.value} upgrade)."
                    ),
                    cvss_score=advisory.cvss_score,
                    cwe_id=advisory.cwe_id,
                    locations=(RelatedLocation(path="snippet", line=dep.line),),
                )
            )
        return findings
