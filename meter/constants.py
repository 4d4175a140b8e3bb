"""
Shared constants used across all meter modules.

Centralises endpoint paths, payload sizes, and estimator tunables so they
live in exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "netspeed/1.0 (+aiohttp)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

# ---------------------------------------------------------------------------
# Endpoints (relative to the configured base URL)
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "http://127.0.0.1:8080"
PING_PATH = "/api/speed"
DOWNLOAD_PATH = "/speed.dat"
UPLOAD_PATH = "/api/speed"

PING_BODY = b"ping"
CACHE_BUST_PARAM = "t"

# ---------------------------------------------------------------------------
# Payload sizes
# ---------------------------------------------------------------------------

DOWNLOAD_SIZE_BYTES = 10 * 1024 * 1024   # 10 MiB static payload
DOWNLOAD_SIZE_BITS = DOWNLOAD_SIZE_BYTES * 8

UPLOAD_SIZE_BYTES = 2 * 1024 * 1024      # 2 MiB, under typical host body limits
UPLOAD_SIZE_BITS = UPLOAD_SIZE_BYTES * 8
UPLOAD_MAX_BYTES = 4 * 1024 * 1024       # server-side request body ceiling

CHUNK_SIZE = 256 * 1024                  # read size while draining the download

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_TIMEOUT = 30.0
MIN_TIMEOUT = 1.0
MAX_TIMEOUT = 300.0
CONNECT_TIMEOUT = 5.0

# ---------------------------------------------------------------------------
# Progress estimator
# ---------------------------------------------------------------------------

ESTIMATOR_INTERVAL = 0.05   # 50 ms between ticks
ESTIMATOR_MAX_STEP = 2.0    # uniform increment in [0, MAX_STEP]
ESTIMATOR_CEILING = 90.0    # estimate never passes this before completion
GAUGE_MAX = 100.0           # display clamp for the final rate
