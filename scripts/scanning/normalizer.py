"""
Result Normalizer - raw backend findings to canonical ``Vulnerability`` records.

Normalization is deterministic except for the generated id: the same raw
finding normalized twice under the same scanner tag yields records that are
equal in every field but ``id``.
"""

from __future__ import annotations

import itertools
import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from schemas import RawFinding, ScanConfiguration, ScannerTag

from .models import Vulnerability

logger = logging.getLogger(__name__)

# Confidence assigned when a backend does not report one
CONFIDENCE_BASELINE = {
    ScannerTag.STATIC_ANALYSIS: 80.0,
    ScannerTag.AI_MODEL_A: 92.0,
    ScannerTag.AI_MODEL_B: 95.0,
    ScannerTag.AI_FUSION: 98.0,
    ScannerTag.DEPENDENCY: 90.0,
    ScannerTag.SECRET: 95.0,
    ScannerTag.COMPLIANCE: 80.0,
}

EXPLOIT_PRESENT_EXPLOITABILITY = 0.8


class ResultNormalizer:
    """Converts ``RawFinding`` objects into ``Vulnerability`` records.

    Parameters
    ----------
    config:
        The run's configuration; controls whether exploit illustrations are
        kept on the record.
    run_started_at:
        Timestamp stamped on ``detected_at`` and ``last_updated_at``.
    """

    def __init__(self, config: ScanConfiguration, run_started_at: Optional[datetime] = None):
        self.config = config
        self.run_started_at = run_started_at or datetime.now(timezone.utc)
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def _next_id(self, tag: ScannerTag) -> str:
        with self._lock:
            sequence = next(self._counter)
        return f"{tag.value.upper()}-{sequence:04d}-{uuid.uuid4().hex[:8]}"

    def normalize(self, raw: RawFinding, scanner: ScannerTag) -> Vulnerability:
        """Normalize one raw finding reported by *scanner*.

        ``raw.origin`` takes precedence over *scanner* so composite backends
        keep per-model provenance.
        """
        tag = raw.origin or scanner
        exploitability = raw.exploitability
        if exploitability is None and raw.exploit:
            exploitability = EXPLOIT_PRESENT_EXPLOITABILITY

        return Vulnerability(
            id=self._next_id(tag),
            title=raw.title.strip(),
            description=raw.description.strip(),
            severity=raw.severity,
            scanner=tag,
            detected_at=self.run_started_at,
            last_updated_at=self.run_started_at,
            severity_score=raw.cvss_score,
            cwe_id=raw.cwe_id,
            regulatory_impact=tuple(raw.regulatory_impact),
            confidence=float(raw.confidence if raw.confidence is not None else CONFIDENCE_BASELINE[tag]),
            locations=tuple(raw.locations),
            mitigation=raw.mitigation,
            exploit_details=raw.exploit if self.config.include_exploit_details else None,
            exploitability=exploitability,
            impact=raw.impact,
            contributing_scanners=(tag,),
        )

    def normalize_all(self, raws: Iterable[RawFinding], scanner: ScannerTag) -> List[Vulnerability]:
        return [self.normalize(raw, scanner) for raw in raws]


def without_id(vulnerability: Vulnerability) -> Vulnerability:
    """Copy of *vulnerability* with a blank id, for equality comparisons."""
    return replace(vulnerability, id="")


__all__ = ["ResultNormalizer", "CONFIDENCE_BASELINE", "without_id"]
