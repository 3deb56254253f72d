"""
Scan Orchestrator - concurrent fan-out to scanner backends and aggregation.

State machine::

    Idle -> Running -> Completed
                    -> Failed

``run()`` is rejected while a run is in flight.  Completed and Failed are
rest states: a new ``run()`` starts over from either of them.

A run validates its configuration, fans out to every enabled backend on a
thread pool, waits for all of them to settle (or time out), then
normalizes, filters, deduplicates and scores the merged findings on the
calling thread.  A backend that raises, returns malformed output or exceeds
``timeout_seconds`` is recorded as a failed backend and contributes no
findings; the run still completes.  Errors in the aggregation steps
themselves fail the run with ``OrchestrationFailure``.  With ``generate_sbom``
the result also carries a bill of materials built from the scanned files.

Example
-------
::

    orchestrator = ScanOrchestrator()
    result = orchestrator.run(
        SourceArtifact.from_text(code),
        ScanConfiguration(compliance_standards={"GDPR"}),
    )
    print(result.summary.overall_risk_score)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from audit_trail import (
    BACKEND_COMPLETED,
    BACKEND_FAILED,
    SCAN_CANCELLED,
    SCAN_COMPLETED,
    SCAN_FAILED,
    SCAN_INITIATED,
    SUMMARY_GENERATED,
    ScanAuditLog,
)
from backends import ScannerBackend, build_default_backends, coerce_raw_findings
from exceptions import (
    BackendFailure,
    BackendTimeout,
    ConcurrentRunRejected,
    ConfigurationError,
    OrchestrationFailure,
    ScanCancelledError,
)
from schemas import (
    BackendKind,
    BackendStatus,
    OrchestratorState,
    RawFinding,
    RelatedLocation,
    ScanConfiguration,
)

from .compliance_scorer import ComplianceScorer
from .deduplicator import Deduplicator
from .models import SNIPPET_PATH, BackendOutcome, ScanResult, SourceArtifact
from .normalizer import ResultNormalizer
from .remediation import RemediationAdvisor
from .risk_scorer import RiskScorer
from .sbom import build_sbom
from .summary import build_summary
from .threat_intel import ThreatIntelEnricher

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.05


def _stamp_path(finding: RawFinding, path: str) -> RawFinding:
    """Point placeholder locations at the file the finding came from."""
    if not finding.locations:
        return finding.with_locations((RelatedLocation(path=path),))
    if path == SNIPPET_PATH:
        return finding
    return finding.with_locations(tuple(
        RelatedLocation(path=path, line=loc.line) if loc.path == SNIPPET_PATH else loc
        for loc in finding.locations
    ))


class ScanOrchestrator:
    """Coordinates scanner backends, aggregation and scoring for scan runs.

    Parameters
    ----------
    backends : Mapping[BackendKind, ScannerBackend] | None
        Backend implementation per family.  Defaults to the bundled set
        from ``build_default_backends()``.
    audit_log : ScanAuditLog | None
        Receives structured events for every run when provided.
    poll_interval : float
        Seconds between checks for timeouts and cancellation while backends
        are in flight.
    """

    def __init__(
        self,
        backends: Optional[Mapping[BackendKind, ScannerBackend]] = None,
        audit_log: Optional[ScanAuditLog] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        backends = dict(backends) if backends is not None else build_default_backends()
        for kind, backend in backends.items():
            if not isinstance(backend, ScannerBackend):
                raise TypeError(
                    f"Backend registered for '{BackendKind(kind).value}' does not implement "
                    f"ScannerBackend: {backend!r}"
                )
        self.backends: Dict[BackendKind, ScannerBackend] = backends
        self.audit_log = audit_log
        self.poll_interval = poll_interval

        self.deduplicator = Deduplicator()
        self.risk_scorer = RiskScorer()
        self.compliance_scorer = ComplianceScorer()
        self.threat_intel = ThreatIntelEnricher()
        self.remediation_advisor = RemediationAdvisor()

        self._state = OrchestratorState.IDLE
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._stop_events: Dict[BackendKind, threading.Event] = {}

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def _set_state(self, state: OrchestratorState) -> None:
        with self._state_lock:
            self._state = state

    def _begin_run(self) -> threading.Event:
        with self._state_lock:
            if self._state == OrchestratorState.RUNNING:
                raise ConcurrentRunRejected("A scan is already running on this orchestrator")
            self._state = OrchestratorState.RUNNING
            self._cancel_event = threading.Event()
            return self._cancel_event

    def cancel(self) -> bool:
        """Signal the in-flight run to stop.

        Returns False when no run is in flight.  The cancelled ``run()``
        raises ``ScanCancelledError`` once its backends have been released,
        even if aggregation was already under way; no ``ScanResult`` is
        produced.
        """
        with self._state_lock:
            if self._state != OrchestratorState.RUNNING:
                return False
            self._cancel_event.set()
            for event in self._stop_events.values():
                event.set()
        logger.info("Cancellation requested for in-flight scan")
        return True

    def _audit(self, run_id: str, event_type: str, **details: Any) -> None:
        if self.audit_log is not None:
            self.audit_log.record(run_id, event_type, **details)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_config(
        config: Union[ScanConfiguration, Mapping[str, Any], None]
    ) -> ScanConfiguration:
        if config is None:
            return ScanConfiguration()
        if isinstance(config, ScanConfiguration):
            return config
        if isinstance(config, Mapping):
            return ScanConfiguration.from_mapping(config)
        raise ConfigurationError(
            f"Expected ScanConfiguration or mapping, got {type(config).__name__}"
        )

    def select_backends(self, config: ScanConfiguration) -> Dict[BackendKind, ScannerBackend]:
        """Return the registered backends *config* fans out to, in kind order.

        Raises
        ------
        ConfigurationError
            If the enabled set is invalid or an enabled kind has no
            registered implementation.
        """
        enabled = config.enabled_backends()
        missing = [kind.value for kind in BackendKind if kind in enabled and kind not in self.backends]
        if missing:
            raise ConfigurationError(
                f"No backend registered for enabled kind(s): {', '.join(missing)}"
            )
        return {kind: self.backends[kind] for kind in BackendKind if kind in enabled}

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        artifact: Union[SourceArtifact, str],
        config: Union[ScanConfiguration, Mapping[str, Any], None] = None,
    ) -> ScanResult:
        """Scan *artifact* and return a complete ``ScanResult``.

        Raises
        ------
        ConfigurationError
            Before any backend runs, if *config* is invalid.
        ConcurrentRunRejected
            If another run is in flight on this orchestrator.
        ScanCancelledError
            If ``cancel()`` was called during the run.
        OrchestrationFailure
            If normalization, deduplication, scoring or summary fails.
        """
        config = self._resolve_config(config)
        selected = self.select_backends(config)
        if isinstance(artifact, str):
            artifact = SourceArtifact.from_text(artifact)

        cancel_event = self._begin_run()
        run_id = uuid.uuid4().hex[:12]
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        logger.info(
            "Scan %s started: type=%s backends=%s files=%d",
            run_id, config.scan_type.value,
            ",".join(k.value for k in selected), len(artifact.files),
        )
        self._audit(
            run_id, SCAN_INITIATED,
            scan_type=config.scan_type.value,
            backends=[k.value for k in selected],
            artifact=artifact.name,
        )

        completed = False
        try:
            scoped = artifact.select(config)
            raw_results, outcomes = self._fan_out(selected, scoped, config, cancel_event, run_id)
            if cancel_event.is_set():
                raise ScanCancelledError(f"Scan {run_id} was cancelled")
            result = self._aggregate(
                run_id, raw_results, outcomes, selected, scoped, config, started_at, start
            )
            # A cancel acknowledged during aggregation still wins
            with self._state_lock:
                if cancel_event.is_set():
                    raise ScanCancelledError(f"Scan {run_id} was cancelled")
                self._state = OrchestratorState.COMPLETED
            completed = True
        except ScanCancelledError:
            self._set_state(OrchestratorState.FAILED)
            logger.warning("Scan %s cancelled", run_id)
            self._audit(run_id, SCAN_CANCELLED)
            raise
        except Exception as exc:
            self._set_state(OrchestratorState.FAILED)
            logger.error("Scan %s failed: %s", run_id, exc, exc_info=True)
            self._audit(run_id, SCAN_FAILED, error=f"{type(exc).__name__}: {exc}")
            raise OrchestrationFailure(f"Scan {run_id} failed: {exc}") from exc
        finally:
            with self._state_lock:
                self._stop_events = {}
                # Interrupts bypass the handlers above
                if not completed and self._state == OrchestratorState.RUNNING:
                    self._state = OrchestratorState.FAILED

        logger.info(
            "Scan %s completed: %d findings, risk %.1f, %.2fs",
            run_id, result.summary.total_issues,
            result.summary.overall_risk_score, result.summary.scan_duration_seconds,
        )
        self._audit(
            run_id, SCAN_COMPLETED,
            total_issues=result.summary.total_issues,
            overall_risk_score=result.summary.overall_risk_score,
        )
        return result

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    @staticmethod
    def _invoke_backend(
        backend: ScannerBackend,
        artifact: SourceArtifact,
        config: ScanConfiguration,
        stop_event: threading.Event,
    ) -> List[RawFinding]:
        """Run *backend* over every file of *artifact* on a worker thread."""
        findings: List[RawFinding] = []
        for artifact_file in artifact.files:
            if stop_event.is_set():
                break
            output = backend.scan(artifact_file.content, config)
            for finding in coerce_raw_findings(backend.name, output):
                findings.append(_stamp_path(finding, artifact_file.path))
        return findings

    def _record_failure(
        self,
        run_id: str,
        kind: BackendKind,
        backend: ScannerBackend,
        status: BackendStatus,
        failure: BackendFailure,
        duration: float,
    ) -> BackendOutcome:
        logger.warning("Backend %s %s: %s", backend.name, status.value, failure)
        self._audit(run_id, BACKEND_FAILED, backend=backend.name, status=status.value, error=str(failure))
        return BackendOutcome(
            backend=kind,
            name=backend.name,
            status=status,
            duration_seconds=duration,
            error=str(failure),
        )

    def _fan_out(
        self,
        backends: Dict[BackendKind, ScannerBackend],
        artifact: SourceArtifact,
        config: ScanConfiguration,
        cancel_event: threading.Event,
        run_id: str,
    ) -> Tuple[Dict[BackendKind, List[RawFinding]], Dict[BackendKind, BackendOutcome]]:
        """Run *backends* concurrently and collect findings and outcomes.

        Every backend gets its own worker and stop event.  Backends never
        see each other's output.
        """
        results: Dict[BackendKind, List[RawFinding]] = {}
        outcomes: Dict[BackendKind, BackendOutcome] = {}

        stop_events = {kind: threading.Event() for kind in backends}
        with self._state_lock:
            self._stop_events = stop_events
            if cancel_event.is_set():
                for event in stop_events.values():
                    event.set()

        executor = ThreadPoolExecutor(max_workers=len(backends), thread_name_prefix="scan-backend")
        futures: Dict[Future, BackendKind] = {}
        started: Dict[BackendKind, float] = {}
        try:
            for kind, backend in backends.items():
                started[kind] = time.monotonic()
                future = executor.submit(
                    self._invoke_backend, backend, artifact, config, stop_events[kind]
                )
                futures[future] = kind

            pending = set(futures)
            while pending:
                done, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_COMPLETED)
                now = time.monotonic()

                for future in done:
                    kind = futures[future]
                    backend = backends[kind]
                    duration = now - started[kind]
                    try:
                        findings = future.result()
                    except BackendFailure as exc:
                        outcomes[kind] = self._record_failure(
                            run_id, kind, backend, BackendStatus.FAILED, exc, duration
                        )
                    except Exception as exc:
                        failure = BackendFailure(backend.name, f"{type(exc).__name__}: {exc}", cause=exc)
                        outcomes[kind] = self._record_failure(
                            run_id, kind, backend, BackendStatus.FAILED, failure, duration
                        )
                    else:
                        results[kind] = findings
                        outcomes[kind] = BackendOutcome(
                            backend=kind,
                            name=backend.name,
                            status=BackendStatus.SUCCEEDED,
                            duration_seconds=duration,
                            finding_count=len(findings),
                        )
                        logger.info(
                            "Backend %s completed: %d findings in %.2fs",
                            backend.name, len(findings), duration,
                        )
                        self._audit(
                            run_id, BACKEND_COMPLETED,
                            backend=backend.name, finding_count=len(findings),
                        )

                if cancel_event.is_set():
                    for future in pending:
                        kind = futures[future]
                        stop_events[kind].set()
                        future.cancel()
                        outcomes[kind] = BackendOutcome(
                            backend=kind,
                            name=backends[kind].name,
                            status=BackendStatus.CANCELLED,
                            duration_seconds=now - started[kind],
                            error="cancelled",
                        )
                    break

                expired = {f for f in pending if now - started[futures[f]] >= config.timeout_seconds}
                for future in expired:
                    kind = futures[future]
                    stop_events[kind].set()
                    future.cancel()
                    outcomes[kind] = self._record_failure(
                        run_id, kind, backends[kind], BackendStatus.TIMED_OUT,
                        BackendTimeout(backends[kind].name, config.timeout_seconds),
                        now - started[kind],
                    )
                pending -= expired
        finally:
            # Abandon timed-out or cancelled workers instead of joining them
            executor.shutdown(wait=False, cancel_futures=True)

        return results, outcomes

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def _aggregate(
        self,
        run_id: str,
        raw_results: Dict[BackendKind, List[RawFinding]],
        outcomes: Dict[BackendKind, BackendOutcome],
        backends: Dict[BackendKind, ScannerBackend],
        artifact: SourceArtifact,
        config: ScanConfiguration,
        started_at: datetime,
        start: float,
    ) -> ScanResult:
        normalizer = ResultNormalizer(config, run_started_at=started_at)
        normalized = []
        for kind in BackendKind:
            if kind in raw_results:
                normalized.extend(normalizer.normalize_all(raw_results[kind], backends[kind].scanner_tag))

        above_threshold = [v for v in normalized if v.severity.at_least(config.severity_threshold)]
        if len(above_threshold) < len(normalized):
            logger.debug(
                "Severity threshold %s dropped %d findings",
                config.severity_threshold.value, len(normalized) - len(above_threshold),
            )

        deduplicated = self.deduplicator.deduplicate(above_threshold).findings
        scored = self.risk_scorer.score_all(deduplicated)
        risk_score = self.risk_scorer.risk_score(scored)
        compliance_scores = self.compliance_scorer.score(scored, config.compliance_standards)

        threat_intel = ()
        if config.enable_threat_intelligence:
            threat_intel = self.threat_intel.enrich(scored)

        extras: Dict[str, Any] = {}
        if config.enable_auto_remediation:
            extras["remediations"] = self.remediation_advisor.suggest_all(scored)
        if config.generate_sbom:
            extras["sbom"] = build_sbom(artifact, timestamp=started_at)

        summary = build_summary(
            scored,
            risk_score=risk_score,
            compliance_scores=compliance_scores,
            started_at=started_at,
            duration_seconds=time.monotonic() - start,
            files_scanned=len(artifact.files),
            lines_of_code=artifact.total_lines,
            backend_outcomes=[outcomes[k] for k in BackendKind if k in outcomes],
            run_id=run_id,
            sbom_generated="sbom" in extras,
        )
        self._audit(
            run_id, SUMMARY_GENERATED,
            total_issues=summary.total_issues,
            failed_backends=[o.name for o in summary.failed_backends],
        )
        return ScanResult(findings=tuple(scored), summary=summary, threat_intel=threat_intel, **extras)


__all__ = ["ScanOrchestrator", "DEFAULT_POLL_INTERVAL"]
