#!/usr/bin/env python3
"""
Fusion Scan Exceptions Module

Custom exception classes for the scan orchestration core.
Centralized exception definitions for consistent error handling.

Backend failures are recovered by the orchestrator and recorded on the scan
summary; every other error in this module reaches the caller.
"""

from typing import Optional

__all__ = [
    "ScanError",
    "BackendFailure",
    "BackendTimeout",
    "BackendOutputError",
    "OrchestrationFailure",
    "ConfigurationError",
    "ConcurrentRunRejected",
    "ScanCancelledError",
    "TransientModelError",
]


class ScanError(Exception):
    """Base exception for all scan-related errors"""
    pass


class BackendFailure(ScanError):
    """Raised when a single scanner backend fails"""

    def __init__(self, backend: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{backend}: {message}")
        self.backend = backend
        self.cause = cause


class BackendTimeout(BackendFailure):
    """Raised when a backend exceeds the configured timeout"""

    def __init__(self, backend: str, timeout_seconds: float):
        super().__init__(backend, f"timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class BackendOutputError(BackendFailure):
    """Raised when a backend returns malformed output"""
    pass


class OrchestrationFailure(ScanError):
    """Raised when normalization, deduplication or scoring fails"""
    pass


class ConfigurationError(ScanError, ValueError):
    """Raised when a scan configuration is invalid"""
    pass


class ConcurrentRunRejected(ScanError):
    """Raised when a run is requested while another is in flight"""
    pass


class ScanCancelledError(ScanError):
    """Raised when an in-flight run is cancelled"""
    pass


class TransientModelError(ScanError):
    """Raised by AI model callables for errors worth retrying"""
    pass
