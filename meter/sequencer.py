"""
Three-phase measurement state machine.

Phases run strictly in order (ping, download, upload) on one asyncio task.
A failed phase is recorded as ``0`` and the sequence moves on, so the
measurement always reaches ``COMPLETE`` and partial results survive.

Presentation code never touches the sequencer's state directly; it
subscribes and receives an immutable :class:`MeasurementSnapshot` on every
change (phase transition, live sample update, recorded result).
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .constants import DEFAULT_BASE_URL
from .errors import MeasurementError, SequencerBusyError
from .progress import ProgressEstimator
from .rate import compute_rate_mbps, display_value, round_latency_ms
from .transfer import TransferKind, TransferOutcome, TransferSpec

LOGGER = logging.getLogger(__name__)

UNIT_MS = "ms"
UNIT_MBPS = "Mbps"

_UNITS = {
    TransferKind.PING: UNIT_MS,
    TransferKind.DOWNLOAD: UNIT_MBPS,
    TransferKind.UPLOAD: UNIT_MBPS,
}


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class MeasurementPhase(str, Enum):
    IDLE = "idle"
    PING = "ping"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PhaseResult:
    """Final value of one phase.  ``0`` means not run yet, or failed."""

    kind: TransferKind
    value: float = 0
    unit: str = UNIT_MBPS

    @classmethod
    def empty(cls, kind: TransferKind) -> PhaseResult:
        return cls(kind=kind, value=0, unit=_UNITS[kind])

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "value": self.value, "unit": self.unit}


def _empty_results() -> Dict[TransferKind, PhaseResult]:
    return {kind: PhaseResult.empty(kind) for kind in TransferKind}


@dataclass
class MeasurementReport:
    """Ping, download and upload results keyed by phase kind."""

    results: Dict[TransferKind, PhaseResult] = field(default_factory=_empty_results)

    @property
    def ping_ms(self) -> float:
        return self.results[TransferKind.PING].value

    @property
    def download_mbps(self) -> float:
        return self.results[TransferKind.DOWNLOAD].value

    @property
    def upload_mbps(self) -> float:
        return self.results[TransferKind.UPLOAD].value

    def reset(self) -> None:
        self.results = _empty_results()

    def record(self, result: PhaseResult) -> None:
        self.results[result.kind] = result

    def copy(self) -> MeasurementReport:
        return MeasurementReport(results=dict(self.results))

    def to_dict(self) -> dict:
        return {
            "ping": self.ping_ms,
            "download": self.download_mbps,
            "upload": self.upload_mbps,
        }


@dataclass(frozen=True)
class MeasurementSnapshot:
    """What a subscriber sees after each state change."""

    phase: MeasurementPhase
    report: MeasurementReport
    sample: float


Listener = Callable[[MeasurementSnapshot], None]


# ---------------------------------------------------------------------------
# Sequencer
# ---------------------------------------------------------------------------

class PhaseSequencer:
    """
    Runs ping -> download -> upload and owns the resulting report.

    *executor* is anything with an ``async run_transfer(spec)`` method that
    returns a :class:`~meter.transfer.TransferOutcome`; normally a
    :class:`~meter.transfer.TransferExecutor`.
    """

    def __init__(
        self,
        executor,
        base_url: str = DEFAULT_BASE_URL,
        *,
        ping_spec: Optional[TransferSpec] = None,
        download_spec: Optional[TransferSpec] = None,
        upload_spec: Optional[TransferSpec] = None,
        estimator_factory: Callable[..., ProgressEstimator] = ProgressEstimator,
    ) -> None:
        self._executor = executor
        self.ping_spec = ping_spec or TransferSpec.ping(base_url)
        self.download_spec = download_spec or TransferSpec.download(base_url)
        self.upload_spec = upload_spec or TransferSpec.upload(base_url)
        self._estimator_factory = estimator_factory

        self._phase = MeasurementPhase.IDLE
        self._report = MeasurementReport()
        self._sample = 0.0
        self._running = False
        self._listeners: List[Listener] = []

    # -- Observation --------------------------------------------------------

    @property
    def phase(self) -> MeasurementPhase:
        return self._phase

    @property
    def report(self) -> MeasurementReport:
        return self._report.copy()

    @property
    def sample(self) -> float:
        return self._sample

    @property
    def running(self) -> bool:
        return self._running

    def snapshot(self) -> MeasurementSnapshot:
        return MeasurementSnapshot(self._phase, self._report.copy(), self._sample)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- Run ----------------------------------------------------------------

    async def start(self) -> MeasurementReport:
        """
        Run the full sequence once and return the final report.

        Valid from ``IDLE`` and ``COMPLETE``.  Raises
        :class:`SequencerBusyError` if a run is already in progress.
        """
        if self._running:
            raise SequencerBusyError("a measurement is already running")
        self._running = True

        try:
            self._report.reset()
            self._update(phase=MeasurementPhase.PING, sample=0.0)
            await self._run_ping()

            self._update(phase=MeasurementPhase.DOWNLOAD, sample=0.0)
            await self._run_timed(self.download_spec)

            self._update(phase=MeasurementPhase.UPLOAD, sample=0.0)
            await self._run_timed(self.upload_spec)

            self._update(phase=MeasurementPhase.COMPLETE, sample=0.0)
        except asyncio.CancelledError:
            LOGGER.info("measurement cancelled during %s", self._phase.value)
            self._update(phase=MeasurementPhase.IDLE, sample=0.0)
            raise
        except Exception:
            LOGGER.exception("measurement aborted during %s", self._phase.value)
            self._update(phase=MeasurementPhase.IDLE, sample=0.0)
            raise
        finally:
            self._running = False

        LOGGER.info(
            "measurement complete: ping %s ms, download %s Mbps, upload %s Mbps",
            self._report.ping_ms, self._report.download_mbps, self._report.upload_mbps,
        )
        return self._report.copy()

    # -- Phases -------------------------------------------------------------

    async def _run_ping(self) -> None:
        outcome = await self._transfer(self.ping_spec)
        value = round_latency_ms(outcome.duration_seconds) if outcome.success else 0
        self._report.record(PhaseResult(TransferKind.PING, value, UNIT_MS))
        LOGGER.info("ping: %s ms", value)
        self._update()

    async def _run_timed(self, spec: TransferSpec) -> None:
        async with self._estimator_factory(self._on_estimate):
            outcome = await self._transfer(spec)

        # The estimator is stopped before anything final is written.
        rate = compute_rate_mbps(spec.size_bits, outcome.duration_seconds) if outcome.success else 0.0
        self._report.record(PhaseResult(spec.kind, rate, UNIT_MBPS))
        LOGGER.info("%s: %s Mbps", spec.kind.value, rate)
        self._update(sample=display_value(rate))

    async def _transfer(self, spec: TransferSpec) -> TransferOutcome:
        try:
            return await self._executor.run_transfer(spec)
        except MeasurementError as exc:
            LOGGER.warning("%s failed: %s", spec.kind.value, exc)
            return TransferOutcome(success=False, error=exc)

    # -- Internals ----------------------------------------------------------

    def _on_estimate(self, value: float) -> None:
        self._update(sample=value)

    def _update(
        self,
        phase: Optional[MeasurementPhase] = None,
        sample: Optional[float] = None,
    ) -> None:
        if phase is not None:
            self._phase = phase
        if sample is not None:
            self._sample = sample
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
