"""
Shared constants used across all meter modules.

Centralises tunables, fixed endpoints and default headers so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",
}

UPLOAD_CONTENT_TYPE = "application/octet-stream"

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

PROBE_HOST = "1.1.1.1"
PROBE_PORT = 443

# Tried in order; the first one yielding a positive rate wins.
DOWNLOAD_URLS = (
    "https://speed.cloudflare.com/__down?bytes=25000000",
    "https://proof.ovh.net/files/10Mb.dat",
    "http://speedtest.tele2.net/10MB.zip",
)
UPLOAD_URL = "https://speed.cloudflare.com/__up"

# ---------------------------------------------------------------------------
# Periodic sampling
# ---------------------------------------------------------------------------

SAMPLE_INTERVAL = 1.0            # seconds between throughput polls
PROBE_INTERVAL = 2.0             # seconds between latency probes
STALE_BASELINE_SECONDS = 10.0    # elapsed >= this rebases the sampler
PROBE_TIMEOUT = 2.0
LATENCY_SENTINEL = -1.0
HISTORY_WINDOW_SECONDS = 300.0

MIN_INTERVAL = 0.2
MAX_INTERVAL = 60.0
MIN_PROBE_TIMEOUT = 0.1
MAX_PROBE_TIMEOUT = 30.0

# ---------------------------------------------------------------------------
# Speed test
# ---------------------------------------------------------------------------

REQUEST_TIMEOUT = 15.0           # connect + transfer deadline per request
CHECKPOINT_INTERVAL = 0.5        # cancellation flag polling period
COMPLETE_PAUSE = 0.5             # keep "Complete" visible before the result
CHUNK_SIZE = 64 * 1024
DOWNLOAD_MAX_BYTES = 25_000_000  # stop reading after this many bytes
UPLOAD_PAYLOAD_SIZE = 1024 * 1024

# Progress bands per phase, all strictly inside their open intervals.
DOWNLOAD_PROGRESS_START = 0.05
DOWNLOAD_PROGRESS_END = 0.55
UPLOAD_PROGRESS_START = 0.65
UPLOAD_PROGRESS_END = 0.95
