"""
Rate calculation.

Pure functions -- no I/O, no side effects.  Everything here is deterministic
and easy to unit-test.
"""
from __future__ import annotations

import math
from typing import Optional

from .constants import GAUGE_MAX


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def compute_rate_mbps(size_bits: int, duration_seconds: Optional[float]) -> float:
    """
    Throughput in megabits per second, rounded to one decimal place.

    A failed transfer (``duration_seconds is None``), a zero or negative
    duration and a non-finite duration all yield exactly ``0.0``.
    """
    if duration_seconds is None or size_bits <= 0:
        return 0.0
    if not math.isfinite(duration_seconds) or duration_seconds <= 0:
        return 0.0
    return _round_half_up(size_bits / duration_seconds / 1_000_000, 1)


def round_latency_ms(duration_seconds: Optional[float]) -> int:
    """Round-trip time in whole milliseconds; ``0`` for a failed ping."""
    if duration_seconds is None or not math.isfinite(duration_seconds) or duration_seconds < 0:
        return 0
    return int(_round_half_up(duration_seconds * 1000))


def display_value(rate_mbps: float) -> float:
    """Clamp a rate to the gauge range [0, 100]."""
    if not math.isfinite(rate_mbps):
        return 0.0
    return max(0.0, min(rate_mbps, GAUGE_MAX))


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.1f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.0f} ms"
