#!/usr/bin/env python3
"""
Secret Scanner Module

Detects hardcoded credentials with a fixed list of regular expressions.
Every match produces exactly one Critical finding (CWE-798) with the line it
was found on.  Matched values are redacted before they leave the backend.
"""

import logging
import re
from typing import List, NamedTuple, Pattern

from schemas import BackendKind, RawFinding, RelatedLocation, ScanConfiguration, ScannerTag, Severity

from .base import BaseScanner, line_of_offset

__all__ = ["SecretPattern", "SecretScanner", "SECRET_PATTERNS", "redact"]

logger = logging.getLogger(__name__)

SECRET_CVSS_SCORE = 9.8
SECRET_CWE = "CWE-798"


class SecretPattern(NamedTuple):
    name: str
    title: str
    pattern: Pattern[str]


SECRET_PATTERNS: List[SecretPattern] = [
    SecretPattern("api-key", "Hardcoded Secret Detected: API Key", re.compile(r"sk-[a-zA-Z0-9]{32,}")),
    SecretPattern(
        "aws-access-key-id",
        "Hardcoded Secret Detected: AWS Access Key ID",
        re.compile(r"AWS_ACCESS_KEY_ID\s*=\s*['\"]?[A-Z0-9]{20}"),
    ),
    SecretPattern(
        "aws-secret-access-key",
        "Hardcoded Secret Detected: AWS Secret Access Key",
        re.compile(r"AWS_SECRET_ACCESS_KEY\s*=\s*['\"]?[a-zA-Z0-9/+]{40}"),
    ),
    SecretPattern(
        "github-token",
        "Hardcoded Secret Detected: GitHub Token",
        re.compile(r"GH_TOKEN\s*=\s*['\"]?[a-zA-Z0-9_]{36}|\bghp_[a-zA-Z0-9]{36}\b"),
    ),
    SecretPattern(
        "jwt-secret",
        "Hardcoded Secret Detected: JWT Signing Secret",
        re.compile(r"JWT_SECRET\s*=\s*['\"][^'\"]+['\"]"),
    ),
    SecretPattern(
        "password-assignment",
        "Hardcoded Secret Detected: Password",
        re.compile(r"\bpassword\s*[=:]\s*['\"]([^'\"]+)['\"]", re.IGNORECASE),
    ),
    SecretPattern(
        "database-password",
        "Hardcoded Secret Detected: Database Password",
        re.compile(r"DB_PASSWORD\s*=\s*['\"]?[^\s'\"]{8,}"),
    ),
    SecretPattern(
        "private-key",
        "Hardcoded Secret Detected: Private Key",
        re.compile(r"-----BEGIN (RSA|OPENSSH|EC|DSA) PRIVATE KEY-----"),
    ),
]


def redact(value: str, keep: int = 6) -> str:
    """Keep a short prefix of *value* and mask the rest."""
    value = value.strip()
    if len(value) <= keep:
        return "*" * len(value)
    return value[:keep] + "*" * min(len(value) - keep, 12)


class SecretScanner(BaseScanner):
    """Regex-based hardcoded-secret detection backend."""

    name = "secret-scanner"
    kind = BackendKind.SECRET
    scanner_tag = ScannerTag.SECRET

    def __init__(self, patterns: List[SecretPattern] = None):
        self.patterns = list(patterns) if patterns is not None else list(SECRET_PATTERNS)

    def _scan(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        findings = []
        for secret in self.patterns:
            for match in secret.pattern.finditer(source):
                line = line_of_offset(source, match.start())
                logger.debug("Secret pattern %s matched on line %d", secret.name, line)
                findings.append(
                    RawFinding(
                        title=secret.title,
                        description=(
                            f"Hardcoded secret detected ({secret.name}): "
                            f"{redact(match.group(0))}. Credentials committed to source "
                            "are exposed to everyone with repository access."
                        ),
                        severity=Severity.CRITICAL,
                        mitigation=(
                            "Revoke and rotate the credential, then load it at runtime "
                            "from environment variables or a secrets manager."
                        ),
                        cvss_score=SECRET_CVSS_SCORE,
                        cwe_id=SECRET_CWE,
                        locations=(RelatedLocation(path="snippet", line=line),),
                    )
                )
        return findings
