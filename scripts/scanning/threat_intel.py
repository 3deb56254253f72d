#!/usr/bin/env python3
"""
Threat Intelligence Enricher

Matches findings against a bundled catalog of advisories by CWE and by
title keywords.  Enrichment is informational: matching advisories are
attached to the scan result and the findings themselves are never changed.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from schemas import Severity

from .models import ThreatIntelReport, Vulnerability

__all__ = ["Advisory", "ThreatIntelEnricher", "THREAT_CATALOG"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Advisory:
    key: str
    title: str
    summary: str
    severity: Severity
    reference: str
    cwe_ids: Tuple[str, ...]
    keywords: Tuple[str, ...]

    def matches(self, finding: Vulnerability) -> bool:
        if finding.cwe_id and finding.cwe_id in self.cwe_ids:
            return True
        text = f"{finding.title} {finding.description}".lower()
        return any(keyword in text for keyword in self.keywords)


THREAT_CATALOG: List[Advisory] = [
    Advisory(
        "svg-xss-campaign",
        "Active exploitation of stored XSS through SVG payloads",
        "Attackers upload SVG files or profile fields carrying onload handlers to steal "
        "session cookies from administrators viewing user content.",
        Severity.HIGH,
        "https://owasp.org/www-community/attacks/xss/",
        ("CWE-79",),
        ("xss", "cross-site scripting"),
    ),
    Advisory(
        "prototype-pollution-chains",
        "Prototype pollution chained to remote code execution",
        "Public exploit chains combine prototype pollution in utility libraries with "
        "template engines to reach code execution on Node.js servers.",
        Severity.CRITICAL,
        "https://github.com/advisories/GHSA-jf85-cpcp-j695",
        ("CWE-1321", "CWE-913"),
        ("prototype pollution", "lodash"),
    ),
    Advisory(
        "credential-harvesting",
        "Automated harvesting of credentials from public repositories",
        "Leaked API keys and cloud credentials are discovered by automated scanners within "
        "minutes of being pushed and abused for resource hijacking.",
        Severity.CRITICAL,
        "https://cwe.mitre.org/data/definitions/798.html",
        ("CWE-798",),
        ("hardcoded", "api key", "private key"),
    ),
    Advisory(
        "injection-botnets",
        "Botnets mass-exploiting injection flaws",
        "Scanning botnets sweep public endpoints for SQL and command injection and deploy "
        "cryptominers on success.",
        Severity.HIGH,
        "https://owasp.org/Top10/A03_2021-Injection/",
        ("CWE-89", "CWE-78", "CWE-95"),
        ("sql injection", "command execution", "code evaluation"),
    ),
    Advisory(
        "cleartext-interception",
        "Credential interception over cleartext transport",
        "Traffic sent over plain HTTP on shared networks is routinely captured and "
        "replayed.",
        Severity.MEDIUM,
        "https://cwe.mitre.org/data/definitions/319.html",
        ("CWE-319",),
        ("cleartext", "unencrypted http"),
    ),
]


class ThreatIntelEnricher:
    """Looks up catalog advisories relevant to a set of findings."""

    def __init__(self, catalog: Optional[Iterable[Advisory]] = None):
        self.catalog = list(catalog) if catalog is not None else list(THREAT_CATALOG)

    def enrich(self, findings: Sequence[Vulnerability]) -> Tuple[ThreatIntelReport, ...]:
        """Return one report per advisory matched by at least one finding."""
        related: Dict[str, List[str]] = {}
        for finding in findings:
            for advisory in self.catalog:
                if advisory.matches(finding):
                    related.setdefault(advisory.key, []).append(finding.id)

        reports = tuple(
            ThreatIntelReport(
                title=advisory.title,
                summary=advisory.summary,
                severity=advisory.severity,
                reference=advisory.reference,
                cwe_ids=advisory.cwe_ids,
                related_finding_ids=tuple(related[advisory.key]),
            )
            for advisory in self.catalog
            if advisory.key in related
        )
        logger.info("Threat intelligence: %d advisories matched", len(reports))
        return reports
