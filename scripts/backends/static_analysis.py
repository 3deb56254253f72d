#!/usr/bin/env python3
"""
Static Analysis Scanner Module

Lightweight, rule-based static analysis.  Each rule is a regular expression
applied line by line; a rule that matches anywhere produces a single finding
listing every matching line.  This is a signature scanner, not a parser.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern

from schemas import BackendKind, RawFinding, ScanConfiguration, ScannerTag, Severity

from .base import BaseScanner, match_lines

__all__ = ["StaticRule", "StaticAnalysisScanner", "DEFAULT_RULES"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaticRule:
    """A single line-oriented detection rule."""

    rule_id: str
    title: str
    pattern: Pattern[str]
    severity: Severity
    cwe_id: str
    description: str
    mitigation: str
    exploit: Optional[str] = None


def _rule(rule_id, title, regex, severity, cwe_id, description, mitigation, exploit=None, flags=0):
    return StaticRule(
        rule_id=rule_id,
        title=title,
        pattern=re.compile(regex, flags),
        severity=severity,
        cwe_id=cwe_id,
        description=description,
        mitigation=mitigation,
        exploit=exploit,
    )


DEFAULT_RULES: List[StaticRule] = [
    _rule(
        "dynamic-code-eval",
        "Dynamic Code Evaluation",
        r"\beval\s*\(|\bnew\s+Function\s*\(|\bexec\s*\(",
        Severity.HIGH,
        "CWE-95",
        "Input is evaluated as code at runtime. Attacker-controlled data reaching "
        "this call results in arbitrary code execution.",
        "Remove dynamic evaluation; parse data with a safe parser such as JSON.parse "
        "or ast.literal_eval.",
        exploit="eval(request.query.expr) with expr=process.exit() terminates the server.",
    ),
    _rule(
        "raw-html-sink",
        "Cross-Site Scripting (XSS) via Raw HTML Sink",
        r"dangerouslySetInnerHTML|\.innerHTML\s*=|document\.write\s*\(",
        Severity.HIGH,
        "CWE-79",
        "Untrusted content is written to the DOM as raw HTML, allowing script "
        "injection into the rendered page.",
        "Render text content instead of HTML, or sanitize with a vetted library "
        "such as DOMPurify before insertion.",
        exploit="<img src=x onerror=alert(document.cookie)> stored in a profile field.",
    ),
    _rule(
        "sql-string-building",
        "SQL Injection via String Concatenation",
        r"(SELECT|INSERT|UPDATE|DELETE)\b[^\n]*(\+\s*\w|\$\{|%s|\"\s*%|f\"|\.format\()",
        Severity.CRITICAL,
        "CWE-89",
        "A SQL statement is assembled from string fragments, so user input can "
        "change the query structure.",
        "Use parameterized queries or an ORM query builder; never interpolate "
        "input into SQL text.",
        exploit="id=1 OR 1=1 -- returns every row of the table.",
        flags=re.IGNORECASE,
    ),
    _rule(
        "shell-execution",
        "OS Command Execution with Shell",
        r"child_process\.exec\s*\(|\bexecSync\s*\(|os\.system\s*\(|shell\s*=\s*True",
        Severity.HIGH,
        "CWE-78",
        "A command is executed through a shell. Input reaching the command string "
        "enables command injection.",
        "Invoke programs with an argument list and no shell, and validate every "
        "argument against an allow-list.",
    ),
    _rule(
        "weak-hash",
        "Weak Cryptographic Hash",
        r"\b(md5|sha1)\b",
        Severity.MEDIUM,
        "CWE-328",
        "MD5 and SHA-1 are broken for collision resistance and unsuitable for "
        "password storage or integrity checks.",
        "Use SHA-256 or stronger for integrity and bcrypt, scrypt or Argon2 for "
        "passwords.",
        flags=re.IGNORECASE,
    ),
    _rule(
        "insecure-randomness",
        "Insecure Randomness for Security Value",
        r"Math\.random\s*\(\)[^\n]*(token|secret|session|password|id)"
        r"|random\.random\s*\(\)[^\n]*(token|secret|session|password)",
        Severity.MEDIUM,
        "CWE-338",
        "A non-cryptographic random generator produces a security-sensitive value "
        "that an attacker can predict.",
        "Use crypto.randomUUID / crypto.getRandomValues or Python's secrets module.",
        flags=re.IGNORECASE,
    ),
    _rule(
        "plain-http-request",
        "Cleartext HTTP Request",
        r"(fetch|axios\.\w+|requests\.\w+|http\.get)\s*\(\s*['\"`]http://",
        Severity.MEDIUM,
        "CWE-319",
        "Data is sent over unencrypted HTTP and can be read or altered in transit.",
        "Use HTTPS endpoints and enable HSTS on the server side.",
    ),
    _rule(
        "unguarded-json-parse",
        "Unvalidated Deserialization of External Data",
        r"JSON\.parse\s*\(\s*(req|request|event|message|localStorage)",
        Severity.LOW,
        "CWE-502",
        "External data is deserialized without schema validation or error handling.",
        "Wrap parsing in error handling and validate the result against a schema.",
    ),
    _rule(
        "client-side-token-storage",
        "Sensitive Token Stored in localStorage",
        r"localStorage\.setItem\s*\(\s*['\"`]\w*(token|jwt|session|auth)",
        Severity.MEDIUM,
        "CWE-922",
        "Authentication material in localStorage is readable by any script running "
        "on the page, so a single XSS bug leaks it.",
        "Keep session tokens in HttpOnly, Secure, SameSite cookies.",
        flags=re.IGNORECASE,
    ),
    _rule(
        "security-todo",
        "Unresolved Security TODO",
        r"(TODO|FIXME|XXX)[^\n]*(secur|auth|sanitiz|validat|encrypt)",
        Severity.INFORMATIONAL,
        "CWE-1164",
        "A comment marks security-relevant work as unfinished.",
        "Resolve the outstanding item or track it in the issue tracker.",
        flags=re.IGNORECASE,
    ),
]


class StaticAnalysisScanner(BaseScanner):
    """Rule-based static analysis backend."""

    name = "static-analysis"
    kind = BackendKind.STATIC_ANALYSIS
    scanner_tag = ScannerTag.STATIC_ANALYSIS

    def __init__(self, rules: Optional[Iterable[StaticRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def _scan(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        findings = []
        for rule in self.rules:
            locations = match_lines(source, rule.pattern)
            if not locations:
                continue
            logger.debug("Rule %s matched %d line(s)", rule.rule_id, len(locations))
            findings.append(
                RawFinding(
                    title=rule.title,
                    description=rule.description,
                    severity=rule.severity,
                    mitigation=rule.mitigation,
                    exploit=rule.exploit,
                    cwe_id=rule.cwe_id,
                    locations=locations,
                )
            )
        return findings
