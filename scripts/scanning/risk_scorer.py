"""
Risk Scorer - per-finding severity scores and the aggregate project risk.

The per-finding score is a CVSS-like heuristic, not a CVSS computation:

    score = clamp(base(severity) + 1.5 * exploitability + 1.5 * impact - 2, 0, 10)

rounded to one decimal.  The aggregate risk is the severity-weighted mean of
those scores:

    risk = round(min(sum(weight(severity) * score) / (n * 10) * 10, 10), 1)

It is normalized by the finding count, so one critical issue in a clean
project scores high while the same issue among many low-severity ones scores
lower.  Weighted terms reach 100 per finding, so the mean is capped at 10;
any finding with weighted term >= 10 (every Critical scoring >= 1.0) can
therefore never lower the risk.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Sequence

from schemas import Severity

from .models import Vulnerability

logger = logging.getLogger(__name__)

SEVERITY_BASE_SCORE = {
    Severity.CRITICAL: 9.0,
    Severity.HIGH: 7.0,
    Severity.MEDIUM: 5.0,
    Severity.LOW: 3.0,
    Severity.INFORMATIONAL: 0.5,
}

SEVERITY_WEIGHT = {
    Severity.CRITICAL: 10.0,
    Severity.HIGH: 7.0,
    Severity.MEDIUM: 4.0,
    Severity.LOW: 2.0,
    Severity.INFORMATIONAL: 0.5,
}

DEFAULT_FACTOR = 0.5
ELEVATED_FACTOR = 0.8
MAX_SCORE = 10.0


def _clamp(value: float, low: float = 0.0, high: float = MAX_SCORE) -> float:
    return max(low, min(high, value))


def compute_severity_score(
    severity: Severity, exploitability: float = DEFAULT_FACTOR, impact: float = DEFAULT_FACTOR
) -> float:
    """Heuristic score for a finding of *severity*.

    Args:
        severity: Severity tier of the finding.
        exploitability: Likelihood factor in [0, 1].
        impact: Consequence factor in [0, 1].

    Returns:
        Score in [0, 10] rounded to one decimal.
    """
    raw = SEVERITY_BASE_SCORE[severity] + 1.5 * exploitability + 1.5 * impact - 2.0
    return round(_clamp(raw), 1)


class RiskScorer:
    """Assigns per-finding scores and computes the aggregate risk."""

    def exploitability_of(self, finding: Vulnerability) -> float:
        if finding.exploitability is not None:
            return finding.exploitability
        return ELEVATED_FACTOR if finding.exploit_details else DEFAULT_FACTOR

    def impact_of(self, finding: Vulnerability) -> float:
        if finding.impact is not None:
            return finding.impact
        return ELEVATED_FACTOR if finding.regulatory_impact else DEFAULT_FACTOR

    def score(self, finding: Vulnerability) -> Vulnerability:
        """Return *finding* with ``severity_score`` populated.

        A score supplied by the backend is preserved (clamped into range).
        """
        if finding.severity_score is not None:
            return replace(finding, severity_score=round(_clamp(finding.severity_score), 1))
        return replace(
            finding,
            severity_score=compute_severity_score(
                finding.severity, self.exploitability_of(finding), self.impact_of(finding)
            ),
        )

    def score_all(self, findings: Iterable[Vulnerability]) -> List[Vulnerability]:
        return [self.score(f) for f in findings]

    def risk_score(self, findings: Sequence[Vulnerability]) -> float:
        """Aggregate risk in [0, 10]; 0 for an empty set."""
        if not findings:
            return 0.0
        weighted = 0.0
        for finding in findings:
            score = finding.severity_score
            if score is None:
                score = self.score(finding).severity_score
            weighted += SEVERITY_WEIGHT[finding.severity] * score
        risk = weighted / (len(findings) * 10.0) * 10.0
        return round(_clamp(risk), 1)


__all__ = [
    "SEVERITY_BASE_SCORE",
    "SEVERITY_WEIGHT",
    "RiskScorer",
    "compute_severity_score",
]
