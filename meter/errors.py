"""Exceptions raised by the measurement client."""
from __future__ import annotations

from typing import Optional


class MeasurementError(Exception):
    """Base class for every measurement failure."""


class NetworkFailure(MeasurementError):
    """Connection refused, DNS failure, timeout or a dropped connection."""


class ServerFailure(MeasurementError):
    """The server answered with a non-success HTTP status."""

    def __init__(self, url: str, status: int, reason: Optional[str] = None) -> None:
        self.url = url
        self.status = status
        self.reason = reason
        super().__init__(f"{url} returned HTTP {status}" + (f" {reason}" if reason else ""))


class ResourceMissing(ServerFailure):
    """
    The download payload is absent on the server.

    Kept distinct from :class:`ServerFailure` because it points at a
    deployment fault (payload file never created) rather than a transient
    network problem.
    """

    def __init__(self, url: str, status: int = 404) -> None:
        super().__init__(url, status, "download payload missing")


class SequencerBusyError(RuntimeError):
    """``start()`` was called while a measurement is already running."""
