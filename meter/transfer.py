"""
Single HTTP transfer with wall-clock timing.

One ``aiohttp.ClientSession`` is shared by every transfer and managed via
the async-context-manager protocol
(``async with TransferExecutor() as executor: ...``).  Each call to
:meth:`TransferExecutor.run_transfer` performs exactly one request, never
retries, and never raises for network or server faults: those are caught at
this boundary and returned as a failed :class:`TransferOutcome`.
"""
from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

import aiohttp

from .constants import (
    CACHE_BUST_PARAM,
    CHUNK_SIZE,
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_TIMEOUT,
    DOWNLOAD_PATH,
    DOWNLOAD_SIZE_BITS,
    PING_BODY,
    PING_PATH,
    UPLOAD_PATH,
    UPLOAD_SIZE_BITS,
)
from .errors import MeasurementError, NetworkFailure, ResourceMissing, ServerFailure

LOGGER = logging.getLogger(__name__)

_NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

class TransferKind(str, Enum):
    PING = "ping"
    DOWNLOAD = "download"
    UPLOAD = "upload"


class ByteSource(str, Enum):
    """Where the bytes of a transfer come from."""

    NONE = "none"                # fixed probe body, nothing measured
    SERVER_FILE = "server_file"  # fixed-size resource on the server
    RANDOM = "random"            # generated locally right before sending


@dataclass(frozen=True)
class TransferSpec:
    """Immutable description of one transfer."""

    kind: TransferKind
    url: str
    method: str
    size_bits: int
    source: ByteSource

    @property
    def size_bytes(self) -> int:
        return self.size_bits // 8

    # -- Constructors -------------------------------------------------------

    @classmethod
    def ping(cls, base_url: str) -> TransferSpec:
        return cls(
            kind=TransferKind.PING,
            url=_join(base_url, PING_PATH),
            method="POST",
            size_bits=len(PING_BODY) * 8,
            source=ByteSource.NONE,
        )

    @classmethod
    def download(cls, base_url: str, size_bits: int = DOWNLOAD_SIZE_BITS) -> TransferSpec:
        return cls(
            kind=TransferKind.DOWNLOAD,
            url=_join(base_url, DOWNLOAD_PATH),
            method="GET",
            size_bits=size_bits,
            source=ByteSource.SERVER_FILE,
        )

    @classmethod
    def upload(cls, base_url: str, size_bits: int = UPLOAD_SIZE_BITS) -> TransferSpec:
        return cls(
            kind=TransferKind.UPLOAD,
            url=_join(base_url, UPLOAD_PATH),
            method="POST",
            size_bits=size_bits,
            source=ByteSource.RANDOM,
        )


@dataclass(frozen=True)
class TransferOutcome:
    """Result of one transfer; ``duration_seconds`` is ``None`` on failure."""

    duration_seconds: Optional[float] = None
    success: bool = False
    bytes_transferred: int = 0
    status: Optional[int] = None
    error: Optional[MeasurementError] = None

    def as_tuple(self) -> Tuple[Optional[float], bool]:
        return self.duration_seconds, self.success


def _join(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + path


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class TransferExecutor:
    """Runs ping, download and upload transfers against one server."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.perf_counter,
        payload_factory: Callable[[int], bytes] = os.urandom,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._payload_factory = payload_factory
        self._session: Optional[aiohttp.ClientSession] = None
        self._last_token = 0

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> TransferExecutor:
        timeout = aiohttp.ClientTimeout(total=self.timeout, connect=CONNECT_TIMEOUT)
        self._session = aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "TransferExecutor must be used as an async context manager "
                "(async with TransferExecutor() as executor: ...)"
            )
        return self._session

    # -- Public -------------------------------------------------------------

    async def run_transfer(self, spec: TransferSpec) -> TransferOutcome:
        """Perform *spec* once and time it.  Never raises for transfer faults."""
        session = self._ensure_session()
        handler = {
            TransferKind.PING: self._ping,
            TransferKind.DOWNLOAD: self._download,
            TransferKind.UPLOAD: self._upload,
        }[spec.kind]

        try:
            duration, transferred, status = await handler(session, spec)
        except MeasurementError as exc:
            LOGGER.warning("%s failed (%s): %s", spec.kind.value, type(exc).__name__, exc)
            return TransferOutcome(success=False, error=exc)

        LOGGER.debug(
            "%s finished in %.3f s (%d bytes, HTTP %s)",
            spec.kind.value, duration, transferred, status,
        )
        return TransferOutcome(
            duration_seconds=duration,
            success=True,
            bytes_transferred=transferred,
            status=status,
        )

    # -- Phases -------------------------------------------------------------

    async def _ping(self, session: aiohttp.ClientSession, spec: TransferSpec):
        start = self._clock()
        try:
            async with session.post(spec.url, data=PING_BODY) as resp:
                elapsed = self._clock() - start
                _check_status(resp, spec)
                await resp.read()
        except _NETWORK_ERRORS as exc:
            raise NetworkFailure(f"{spec.url}: {str(exc) or type(exc).__name__}") from exc
        return elapsed, len(PING_BODY), resp.status

    async def _download(self, session: aiohttp.ClientSession, spec: TransferSpec):
        params = {CACHE_BUST_PARAM: str(self._cache_token())}
        headers = {"Accept-Encoding": "identity"}
        # A slow link still yields a rate; only a stalled read is a failure.
        timeout = aiohttp.ClientTimeout(total=None, connect=CONNECT_TIMEOUT, sock_read=self.timeout)
        received = 0

        start = self._clock()
        try:
            async with session.get(spec.url, params=params, headers=headers, timeout=timeout) as resp:
                _check_status(resp, spec)
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    received += len(chunk)
        except _NETWORK_ERRORS as exc:
            raise NetworkFailure(f"{spec.url}: {str(exc) or type(exc).__name__}") from exc
        elapsed = self._clock() - start

        if received != spec.size_bytes:
            LOGGER.warning(
                "download body was %d bytes, expected %d; rate assumes the expected size",
                received, spec.size_bytes,
            )
        return elapsed, received, resp.status

    async def _upload(self, session: aiohttp.ClientSession, spec: TransferSpec):
        payload = self._payload_factory(spec.size_bytes)
        headers = {"Content-Type": "application/octet-stream"}

        # Clock stops at the server's acknowledgment, so the duration includes
        # one round-trip on top of body transmission.
        start = self._clock()
        try:
            async with session.post(spec.url, data=payload, headers=headers) as resp:
                elapsed = self._clock() - start
                _check_status(resp, spec)
                await resp.read()
        except _NETWORK_ERRORS as exc:
            raise NetworkFailure(f"{spec.url}: {str(exc) or type(exc).__name__}") from exc
        return elapsed, len(payload), resp.status

    # -- Internals ----------------------------------------------------------

    def _cache_token(self) -> int:
        """Millisecond timestamp, bumped so consecutive calls never repeat."""
        token = max(time.time_ns() // 1_000_000, self._last_token + 1)
        self._last_token = token
        return token


def _check_status(resp: aiohttp.ClientResponse, spec: TransferSpec) -> None:
    if spec.kind is TransferKind.DOWNLOAD and resp.status in (404, 410):
        raise ResourceMissing(spec.url, resp.status)
    if not 200 <= resp.status < 300:
        raise ServerFailure(spec.url, resp.status, resp.reason)
