"""
Scanner backends.

Each backend implements the ``ScannerBackend`` protocol.  The orchestrator
receives them as a mapping keyed by ``BackendKind``;
``build_default_backends()`` returns the bundled heuristic set.
"""

from typing import Dict

from schemas import BackendKind

from .ai import AiScanner, HeuristicModel, ModelFn, cross_check
from .base import BaseScanner, ScannerBackend, coerce_raw_findings
from .compliance import ComplianceScanner
from .dependency import DependencyScanner
from .secrets import SecretScanner
from .static_analysis import StaticAnalysisScanner


def build_default_backends() -> Dict[BackendKind, ScannerBackend]:
    """Return one fresh instance of every bundled backend."""
    return {
        BackendKind.STATIC_ANALYSIS: StaticAnalysisScanner(),
        BackendKind.AI: AiScanner(),
        BackendKind.DEPENDENCY: DependencyScanner(),
        BackendKind.SECRET: SecretScanner(),
        BackendKind.COMPLIANCE: ComplianceScanner(),
    }


__all__ = [
    "ScannerBackend",
    "BaseScanner",
    "coerce_raw_findings",
    "StaticAnalysisScanner",
    "AiScanner",
    "HeuristicModel",
    "ModelFn",
    "cross_check",
    "DependencyScanner",
    "SecretScanner",
    "ComplianceScanner",
    "build_default_backends",
]
