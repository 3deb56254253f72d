#!/usr/bin/env python3
"""
Compliance Scanner Module

Substring and pattern heuristics per regulatory standard.  A rule fires when
its trigger appears in the source and none of its safeguards do; each rule
fires at most once per scan.  Only the standards requested in the
configuration are evaluated.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Tuple

from schemas import (
    BackendKind,
    ComplianceStandard,
    RawFinding,
    ScanConfiguration,
    ScannerTag,
    Severity,
)

from .base import BaseScanner, match_lines

__all__ = ["ComplianceRule", "ComplianceScanner", "COMPLIANCE_RULES"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplianceRule:
    rule_id: str
    standard: ComplianceStandard
    title: str
    trigger: Pattern[str]
    safeguards: Tuple[str, ...]
    severity: Severity
    cvss_score: float
    cwe_id: str
    description: str
    mitigation: str

    def applies_to(self, source: str) -> bool:
        if not self.trigger.search(source):
            return False
        return not any(safeguard in source for safeguard in self.safeguards)


COMPLIANCE_RULES: List[ComplianceRule] = [
    ComplianceRule(
        "GDPR-PII-UNSANITIZED",
        ComplianceStandard.GDPR,
        "GDPR: Personal Data Processed Without Sanitization",
        re.compile(r"user\.bio|userProfile|UserProfile|personalData"),
        ("sanitizeUserData", "pseudonymize", "anonymize"),
        Severity.HIGH, 7.0, "CWE-359",
        "User-supplied personal data is processed and rendered without sanitization or "
        "pseudonymization (GDPR Art. 25 and Art. 32).",
        "Sanitize personal data before use and pseudonymize it where the purpose allows.",
    ),
    ComplianceRule(
        "GDPR-ANALYTICS-CONSENT",
        ComplianceStandard.GDPR,
        "GDPR: Analytics Tracking Without Opt-Out",
        re.compile(r"userAnalytics|trackUser|analytics\.track"),
        ("optOut", "consent"),
        Severity.MEDIUM, 5.0, "CWE-359",
        "User behaviour is tracked without a visible consent or opt-out mechanism (GDPR Art. 7).",
        "Gate analytics behind recorded consent and honour opt-out requests.",
    ),
    ComplianceRule(
        "HIPAA-PHI-UNENCRYPTED",
        ComplianceStandard.HIPAA,
        "HIPAA: Protected Health Information Without Encryption",
        re.compile(r"patientData|medicalRecord|healthRecord"),
        ("encryptData", "accessControl"),
        Severity.CRITICAL, 9.0, "CWE-311",
        "Protected health information is handled without encryption or access control "
        "(HIPAA Security Rule 164.312).",
        "Encrypt PHI at rest and in transit and enforce role-based access control.",
    ),
    ComplianceRule(
        "PCI-DSS-PAN-EXPOSED",
        ComplianceStandard.PCI_DSS,
        "PCI-DSS: Raw Cardholder Data Handling",
        re.compile(r"creditCardNumber|cardNumber|\bcvv\b", re.IGNORECASE),
        ("tokenize", "pciCompliantGateway"),
        Severity.CRITICAL, 9.5, "CWE-311",
        "Primary account numbers are processed directly instead of through tokenization "
        "(PCI-DSS Requirement 3).",
        "Tokenize card data through a PCI-compliant payment gateway; never store the PAN.",
    ),
    ComplianceRule(
        "ISO27001-ADMIN-MFA",
        ComplianceStandard.ISO27001,
        "ISO27001: Administrative Interface Without MFA",
        re.compile(r"adminPanel|['\"]/admin"),
        ("mfaRequired", "twoFactor"),
        Severity.HIGH, 8.0, "CWE-308",
        "An administrative interface is reachable without multi-factor authentication "
        "(ISO/IEC 27001 A.9.4.2).",
        "Require MFA for every administrative session.",
    ),
    ComplianceRule(
        "SOC2-AUTH-AUDIT",
        ComplianceStandard.SOC2,
        "SOC2: Authentication Events Not Audited",
        re.compile(r"\b(login|authenticate|signIn)\s*\("),
        ("auditLog", "logAudit", "audit_log"),
        Severity.MEDIUM, 5.5, "CWE-778",
        "Authentication flows emit no audit records (SOC 2 CC7.2).",
        "Record every authentication attempt with actor, time and outcome in an audit log.",
    ),
    ComplianceRule(
        "NIST-SESSION-TIMEOUT",
        ComplianceStandard.NIST_800_53,
        "NIST 800-53: Session Without Expiry",
        re.compile(r"sessionTimeout\s*[:=]\s*0\b|maxAge\s*[:=]\s*(null|Infinity)|expiresIn\s*[:=]\s*['\"]\d{3,}d"),
        (),
        Severity.MEDIUM, 5.0, "CWE-613",
        "Sessions never expire or live for an excessive period (NIST SP 800-53 AC-12).",
        "Terminate sessions after a bounded idle and absolute lifetime.",
    ),
]


class ComplianceScanner(BaseScanner):
    """Regulatory compliance heuristics backend."""

    name = "compliance-scanner"
    kind = BackendKind.COMPLIANCE
    scanner_tag = ScannerTag.COMPLIANCE

    def __init__(self, rules: Optional[Iterable[ComplianceRule]] = None):
        self.rules = list(rules) if rules is not None else list(COMPLIANCE_RULES)

    def _scan(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        findings = []
        for rule in self.rules:
            if rule.standard not in config.compliance_standards:
                continue
            if not rule.applies_to(source):
                continue
            logger.debug("Compliance rule %s fired", rule.rule_id)
            findings.append(
                RawFinding(
                    title=rule.title,
                    description=rule.description,
                    severity=rule.severity,
                    mitigation=rule.mitigation,
                    cvss_score=rule.cvss_score,
                    cwe_id=rule.cwe_id,
                    regulatory_impact=(rule.standard,),
                    locations=match_lines(source, rule.trigger),
                )
            )
        return findings
