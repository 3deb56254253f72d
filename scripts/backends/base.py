"""
Scanner Backend Protocol - the interface every scanner implements.

Backends are stateless per call: given source text and the run's
configuration they return a list of ``RawFinding``.  They may fail
independently; the orchestrator turns any exception or malformed output
into a recorded backend failure instead of aborting the run.

``BaseScanner`` is a convenience ABC that satisfies the protocol and
validates backend output, so subclasses only implement ``_scan``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Pattern, Protocol, Tuple, runtime_checkable

from pydantic import ValidationError

from exceptions import BackendOutputError
from schemas import BackendKind, RawFinding, RelatedLocation, ScanConfiguration, ScannerTag

logger = logging.getLogger(__name__)


@runtime_checkable
class ScannerBackend(Protocol):
    """Protocol that every scanner backend must satisfy.

    Attributes
    ----------
    name : str
        Human-readable backend name used in logs and summaries.
    kind : BackendKind
        Backend family, used by the orchestrator to decide whether the
        backend runs for a given configuration.
    scanner_tag : ScannerTag
        Provenance tag assigned to findings that carry no ``origin``.
    """

    name: str
    kind: BackendKind
    scanner_tag: ScannerTag

    def scan(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        """Scan *source* and return raw findings."""
        ...


def coerce_raw_findings(backend_name: str, output: Any) -> List[RawFinding]:
    """Validate backend output into a list of ``RawFinding``.

    Dicts are validated against the schema; ``RawFinding`` instances pass
    through unchanged.

    Raises
    ------
    BackendOutputError
        If *output* is not a list/tuple or any element fails validation.
    """
    if not isinstance(output, (list, tuple)):
        raise BackendOutputError(
            backend_name, f"expected a list of findings, got {type(output).__name__}"
        )

    findings: List[RawFinding] = []
    for index, item in enumerate(output):
        if isinstance(item, RawFinding):
            findings.append(item)
            continue
        if not isinstance(item, dict):
            raise BackendOutputError(
                backend_name, f"finding #{index} is a {type(item).__name__}, not a mapping"
            )
        try:
            findings.append(RawFinding.model_validate(item))
        except ValidationError as exc:
            raise BackendOutputError(
                backend_name, f"finding #{index} failed validation: {exc}", cause=exc
            ) from exc
    return findings


def match_lines(
    source: str, pattern: Pattern[str], path: str = "snippet"
) -> Tuple[RelatedLocation, ...]:
    """Return one location per line of *source* that *pattern* matches."""
    return tuple(
        RelatedLocation(path=path, line=lineno)
        for lineno, line in enumerate(source.splitlines(), start=1)
        if pattern.search(line)
    )


def line_of_offset(source: str, offset: int) -> int:
    """1-based line number of character *offset* in *source*."""
    return source.count("\n", 0, offset) + 1


class BaseScanner(ABC):
    """Abstract base class that satisfies the ``ScannerBackend`` protocol.

    Subclasses must set ``name``, ``kind`` and ``scanner_tag`` (class
    attributes are fine) and implement ``_scan``.
    """

    name: str = "scanner"
    kind: BackendKind
    scanner_tag: ScannerTag

    @abstractmethod
    def _scan(self, source: str, config: ScanConfiguration) -> Iterable[Any]:
        """Core detection logic.

        May return ``RawFinding`` instances or dicts in the same shape.
        """
        ...

    def scan(self, source: str, config: ScanConfiguration) -> List[RawFinding]:
        findings = coerce_raw_findings(self.name, list(self._scan(source, config)))
        logger.debug("%s produced %d raw findings", self.name, len(findings))
        return findings

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, kind={self.kind.value})"


__all__ = [
    "ScannerBackend",
    "BaseScanner",
    "coerce_raw_findings",
    "match_lines",
    "line_of_offset",
]
