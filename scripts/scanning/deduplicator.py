#!/usr/bin/env python3
"""
Cross-Scanner Finding Deduplicator

Merges near-duplicate findings reported by one or more scanners.  Two
findings are duplicates when their title, severity and the first 100
characters of their description match exactly.  The match is syntactic on
purpose: findings that describe the same weakness in different words are
kept apart.

Each duplicate group keeps its *first-seen* record and folds in the related
locations and contributing scanners of the others.  When a group spans two
or more distinct scanners the survivor is re-tagged ``AiFusion`` and takes
the highest confidence in the group.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Tuple

from schemas import ScannerTag

from .models import Vulnerability

logger = logging.getLogger(__name__)

DESCRIPTION_PREFIX_LENGTH = 100

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeduplicationKey:
    """Composite key used to identify logically identical findings."""

    title: str
    severity: str
    description_prefix: str

    @classmethod
    def for_finding(cls, finding: Vulnerability) -> "DeduplicationKey":
        return cls(
            title=finding.title,
            severity=finding.severity.value,
            description_prefix=finding.description[:DESCRIPTION_PREFIX_LENGTH],
        )

    def to_hash(self) -> str:
        """Return a deterministic SHA-256 hex digest of the concatenated fields."""
        combined = "|".join([self.title, self.severity, self.description_prefix])
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()


@dataclass
class DeduplicationResult:
    """Outcome of a deduplication run."""

    original_count: int
    deduplicated_count: int
    duplicates_removed: int
    findings: List[Vulnerability] = field(default_factory=list)
    merge_groups: List[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def _union(*groups: Iterable) -> Tuple:
    """Order-preserving union."""
    seen = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return tuple(seen)


def merge_group(group: List[Vulnerability]) -> Vulnerability:
    """Collapse *group* (first-seen first) into a single record."""
    survivor = group[0]
    if len(group) == 1:
        return survivor

    scanners = _union(*(f.contributing_scanners or (f.scanner,) for f in group))
    locations = _union(*(f.locations for f in group))

    distinct = {f.scanner for f in group} | set(scanners)
    if len(distinct) >= 2:
        return replace(
            survivor,
            scanner=ScannerTag.AI_FUSION,
            confidence=max(f.confidence for f in group),
            locations=locations,
            contributing_scanners=scanners,
        )
    return replace(survivor, locations=locations, contributing_scanners=scanners)


class Deduplicator:
    """Deduplicates normalized findings across scanners."""

    def deduplicate(self, findings: Iterable[Vulnerability]) -> DeduplicationResult:
        findings = list(findings)
        groups: Dict[str, List[Vulnerability]] = {}
        for finding in findings:
            key = DeduplicationKey.for_finding(finding).to_hash()
            groups.setdefault(key, []).append(finding)

        merged: List[Vulnerability] = []
        merge_groups: List[dict] = []
        for key, group in groups.items():
            survivor = merge_group(group)
            merged.append(survivor)
            if len(group) > 1:
                merge_groups.append(
                    {
                        "key": key,
                        "kept_id": survivor.id,
                        "merged_ids": [f.id for f in group[1:]],
                        "scanners": [t.value for t in survivor.contributing_scanners],
                    }
                )
                logger.debug(
                    "Merged %d findings into %s (%s)",
                    len(group), survivor.id, survivor.title,
                )

        removed = len(findings) - len(merged)
        if removed:
            logger.info(
                "Deduplication: %d -> %d findings (%d duplicates merged)",
                len(findings), len(merged), removed,
            )
        return DeduplicationResult(
            original_count=len(findings),
            deduplicated_count=len(merged),
            duplicates_removed=removed,
            findings=merged,
            merge_groups=merge_groups,
        )


def deduplicate(findings: Iterable[Vulnerability]) -> List[Vulnerability]:
    """Convenience wrapper returning only the merged findings."""
    return Deduplicator().deduplicate(findings).findings


__all__ = [
    "DESCRIPTION_PREFIX_LENGTH",
    "DeduplicationKey",
    "DeduplicationResult",
    "Deduplicator",
    "merge_group",
    "deduplicate",
]
