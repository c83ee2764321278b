"""
Poll loop: fetch, evaluate, reconcile, notify, sleep.

Each cycle is strictly sequential. A transport error while fetching the
snapshot replaces the whole evaluation with a single ``rpc`` failure and
leaves the counters untouched; the fetch is simply retried on the next tick.
Only the first failure of a cycle is reported downstream.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Protocol

from watchtower.alerting import AlertStateTracker
from watchtower.config import WatchtowerConfig
from watchtower.errors import TransportError
from watchtower.evaluator import HealthEvaluator
from watchtower.models import CheckFailure, CheckKind, ClusterSnapshot, CycleOutcome, MonitorState

logger = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    def fetch_snapshot(self) -> ClusterSnapshot:
        ...

    def get_balance_sol(self, identity: str) -> float:
        ...


class MessageSink(Protocol):
    def send(self, message: str) -> None:
        ...


class TelemetrySink(Protocol):
    def record_cycle(self, ok: bool) -> None:
        ...

    def record_failure(self, failure: CheckFailure) -> None:
        ...

    def shutdown(self) -> None:
        ...


class Poller:
    """Drive the monitor, one cycle per interval."""

    def __init__(
        self,
        client: SnapshotSource,
        evaluator: HealthEvaluator,
        tracker: AlertStateTracker,
        notifier: MessageSink,
        telemetry: TelemetrySink,
        interval_seconds: float,
        state: Optional[MonitorState] = None,
    ):
        self.client = client
        self.evaluator = evaluator
        self.tracker = tracker
        self.notifier = notifier
        self.telemetry = telemetry
        self.interval_seconds = interval_seconds
        self.state = state or MonitorState()
        self._stop = threading.Event()

    def run_cycle(self) -> CycleOutcome:
        """Run one fetch/evaluate/reconcile pass and return what happened."""
        failures = self._collect_failures()
        reported = failures[0] if failures else None

        self.telemetry.record_cycle(reported is None)
        if reported is not None:
            self.telemetry.record_failure(reported)

        decision = self.tracker.reconcile(reported, self.state)
        if decision.should_notify:
            self.notifier.send(decision.message)

        return CycleOutcome(failures=failures, reported=reported, decision=decision)

    def _collect_failures(self) -> List[CheckFailure]:
        try:
            snapshot = self.client.fetch_snapshot()
        except TransportError as e:
            logger.error(f"rpc sanity failure: {e}")
            return [CheckFailure(kind=CheckKind.RPC, message=str(e))]

        failures = self.evaluator.evaluate(snapshot, self.state)
        self.evaluator.advance(snapshot, self.state)
        return failures

    def run(self, max_cycles: Optional[int] = None) -> Optional[CycleOutcome]:
        """
        Loop until ``stop()`` is called or ``max_cycles`` cycles have run.

        Returns:
            The outcome of the last completed cycle
        """
        outcome: Optional[CycleOutcome] = None
        cycles = 0
        while not self._stop.is_set():
            outcome = self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            self._stop.wait(self.interval_seconds)
        return outcome

    def stop(self) -> None:
        """Request shutdown; interrupts the end-of-cycle wait."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()


def build_poller(
    config: WatchtowerConfig,
    client: SnapshotSource,
    notifier: Optional[MessageSink] = None,
    telemetry: Optional[TelemetrySink] = None,
) -> Poller:
    """Wire a Poller from configuration with default collaborators."""
    if notifier is None:
        from watchtower.notifier import Notifier
        notifier = Notifier.from_config(config)
    if telemetry is None:
        if config.metrics_enabled:
            from watchtower.telemetry import WatchtowerTelemetry
            telemetry = WatchtowerTelemetry(
                service_name=config.service_name,
                endpoint=config.otlp_endpoint,
                export_interval_ms=config.metrics_export_interval_ms,
            )
        else:
            from watchtower.telemetry import NullTelemetry
            telemetry = NullTelemetry()

    evaluator = HealthEvaluator(config, balance_lookup=client.get_balance_sol)
    tracker = AlertStateTracker(dedup_enabled=config.dedup_enabled)
    return Poller(
        client=client,
        evaluator=evaluator,
        tracker=tracker,
        notifier=notifier,
        telemetry=telemetry,
        interval_seconds=config.interval_seconds,
    )
