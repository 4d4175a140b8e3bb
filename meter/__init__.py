"""Speed measurement library -- transfers, rate calculation, progress and sequencing."""

from .errors import (
    MeasurementError,
    NetworkFailure,
    ResourceMissing,
    SequencerBusyError,
    ServerFailure,
)
from .progress import ProgressEstimator
from .rate import compute_rate_mbps, display_value, format_latency, format_speed, round_latency_ms
from .sequencer import (
    MeasurementPhase,
    MeasurementReport,
    MeasurementSnapshot,
    PhaseResult,
    PhaseSequencer,
)
from .transfer import ByteSource, TransferExecutor, TransferKind, TransferOutcome, TransferSpec

__all__ = [
    "ByteSource",
    "MeasurementError",
    "MeasurementPhase",
    "MeasurementReport",
    "MeasurementSnapshot",
    "NetworkFailure",
    "PhaseResult",
    "PhaseSequencer",
    "ProgressEstimator",
    "ResourceMissing",
    "SequencerBusyError",
    "ServerFailure",
    "TransferExecutor",
    "TransferKind",
    "TransferOutcome",
    "TransferSpec",
    "compute_rate_mbps",
    "display_value",
    "format_latency",
    "format_speed",
    "round_latency_ms",
]
