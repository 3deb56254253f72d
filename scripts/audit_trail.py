"""
Scan Audit Trail for the fusion-scan orchestrator.

Provides:
- AuditEvent: One structured audit record
- ScanAuditLog: Thread-safe, append-only event log for scan runs
- Optional append-only JSON-lines file per log
- Atomic export of the full log (temp+rename)
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

# Event types emitted by the orchestrator and report builder
SCAN_INITIATED = "scan_initiated"
BACKEND_COMPLETED = "backend_completed"
BACKEND_FAILED = "backend_failed"
SUMMARY_GENERATED = "summary_generated"
SCAN_COMPLETED = "scan_completed"
SCAN_FAILED = "scan_failed"
SCAN_CANCELLED = "scan_cancelled"
REPORT_GENERATED = "report_generated"


@dataclass
class AuditEvent:
    """Record of a single auditable action."""

    run_id: str
    event_type: str
    timestamp: str
    details: dict[str, Any] = field(default_factory=dict)


class ScanAuditLog:
    """Append-only audit log shared by scan runs.

    Thread-safe: backends complete on worker threads while the orchestrator
    records events.  When ``log_path`` is given every event is also appended
    to that file as one JSON object per line.
    """

    def __init__(self, log_path: str | None = None):
        self._log_path = log_path
        self._events: list[AuditEvent] = []
        self._lock = threading.RLock()

    @property
    def log_path(self) -> str | None:
        return self._log_path

    def record(self, run_id: str, event_type: str, **details: Any) -> AuditEvent:
        """Append an event and return it."""
        event = AuditEvent(
            run_id=run_id,
            event_type=event_type,
            timestamp=datetime.now(tz=timezone.utc).isoformat(),
            details=details,
        )
        with self._lock:
            self._events.append(event)
            if self._log_path:
                self._append_to_file(event)
        logger.debug("Audit: %s %s", run_id, event_type)
        return event

    def events(self, run_id: str | None = None, event_type: str | None = None) -> list[AuditEvent]:
        """Return recorded events, optionally filtered."""
        with self._lock:
            return [
                e for e in self._events
                if (run_id is None or e.run_id == run_id)
                and (event_type is None or e.event_type == event_type)
            ]

    def get_summary(self) -> dict[str, Any]:
        """Return event counts per run and per type."""
        with self._lock:
            by_type: dict[str, int] = {}
            runs: dict[str, str] = {}
            for event in self._events:
                by_type[event.event_type] = by_type.get(event.event_type, 0) + 1
                if event.event_type in (SCAN_COMPLETED, SCAN_FAILED, SCAN_CANCELLED):
                    runs[event.run_id] = event.event_type
                else:
                    runs.setdefault(event.run_id, "in_progress")
            return {
                "total_events": len(self._events),
                "events_by_type": by_type,
                "runs": runs,
            }

    def export(self, path: str) -> None:
        """Atomic write of every event as a JSON document using temp+rename."""
        temp_path = path + ".tmp"
        with self._lock:
            data = {
                "summary": self.get_summary(),
                "events": [asdict(e) for e in self._events],
            }
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(temp_path, path)  # Atomic on POSIX
        except Exception:
            # Clean up temp file on failure
            with contextlib.suppress(OSError):
                os.unlink(temp_path)
            raise

    def _append_to_file(self, event: AuditEvent) -> None:
        try:
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(asdict(event), default=str) + "\n")
        except OSError as e:
            logger.warning("Failed to append audit event to %s: %s", self._log_path, e)


__all__ = [
    "AuditEvent",
    "ScanAuditLog",
    "SCAN_INITIATED",
    "BACKEND_COMPLETED",
    "BACKEND_FAILED",
    "SUMMARY_GENERATED",
    "SCAN_COMPLETED",
    "SCAN_FAILED",
    "SCAN_CANCELLED",
    "REPORT_GENERATED",
]
