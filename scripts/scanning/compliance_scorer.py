"""
Compliance Scorer - percentage-compliant score per regulatory standard.

For each requested standard:

    score = clamp(100 - 5 * violations - 10 * critical_or_high_violations, 0, 100)

where a violation is any finding whose regulatory impact names the standard.

Standards that were not requested are reported as 100.  That value is a
reporting convention meaning "not evaluated", not a statement that the code
is compliant; callers that need the distinction should consult
``ScanConfiguration.compliance_standards``.
"""

import logging
from typing import Dict, Iterable, Sequence

from schemas import ComplianceStandard, Severity

from .models import Vulnerability

logger = logging.getLogger(__name__)

FULL_COMPLIANCE = 100.0
VIOLATION_PENALTY = 5.0
SEVERE_VIOLATION_PENALTY = 10.0


class ComplianceScorer:
    """Computes per-standard compliance percentages."""

    def score_standard(self, findings: Sequence[Vulnerability], standard: ComplianceStandard) -> float:
        relevant = [f for f in findings if standard in f.regulatory_impact]
        severe = sum(1 for f in relevant if f.severity in (Severity.CRITICAL, Severity.HIGH))
        score = FULL_COMPLIANCE - VIOLATION_PENALTY * len(relevant) - SEVERE_VIOLATION_PENALTY * severe
        return max(0.0, min(FULL_COMPLIANCE, score))

    def score(
        self, findings: Sequence[Vulnerability], standards: Iterable[ComplianceStandard]
    ) -> Dict[ComplianceStandard, float]:
        """Return a score for every standard, evaluating only *standards*."""
        requested = set(standards)
        scores = {}
        for standard in ComplianceStandard:
            if standard in requested:
                scores[standard] = self.score_standard(findings, standard)
            else:
                scores[standard] = FULL_COMPLIANCE
        logger.debug(
            "Compliance scores: %s",
            ", ".join(f"{s.value}={v:g}" for s, v in scores.items() if s in requested) or "none requested",
        )
        return scores


__all__ = ["ComplianceScorer", "FULL_COMPLIANCE"]
