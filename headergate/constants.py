"""Shared constants for headergate.

Header names, size limits and default timings used across modules are defined
here. No magic numbers in other modules; import from here.
"""

# ─── Headers ──────────────────────────────────────────────────────────────────

# Credential header read by the token guard.
TOKEN_HEADER: str = "X-SECRET-TOKEN"

# Response header carrying the per-request ULID assigned by the transport adapter.
REQUEST_ID_HEADER: str = "X-Request-ID"

# ─── Body limits ──────────────────────────────────────────────────────────────

# Maximum declared request body accepted by any consumer; also the buffering
# cap of the structured consumer. HTTP 413 is returned above this limit: from
# Content-Length before any read, or from the rolling count while buffering.
MAX_REQUEST_BODY_BYTES: int = 1_048_576  # 1 MB

# ─── Lookups ──────────────────────────────────────────────────────────────────

# Default timeout applied to credential store / repository lookups.
DEFAULT_LOOKUP_TIMEOUT_MS: int = 2_000

# Status returned when a lookup faults or times out at the guard boundary.
DEFAULT_LOOKUP_FAILURE_STATUS: int = 503

# ─── Timing ───────────────────────────────────────────────────────────────────

# Rolling window size of DurationTracker (samples per label).
DEFAULT_TIMING_WINDOW: int = 100

# LoggingMetricsSink logs at WARNING above this duration, DEBUG below.
DEFAULT_SLOW_THRESHOLD_MS: float = 50.0

# p99 is reported as 0.0 until a label has at least this many samples.
MIN_SAMPLES_FOR_P99: int = 10

# ─── SQLite credential store ──────────────────────────────────────────────────

# Prefix of tokens issued by SQLiteCredentialStore ("hg-" + 26-char ULID).
TOKEN_PREFIX: str = "hg-"

# bcrypt cost factor for stored token hashes.
BCRYPT_ROUNDS: int = 12

# Validated-token LRU cache size.
TOKEN_CACHE_MAXSIZE: int = 1000

# ─── Transport ────────────────────────────────────────────────────────────────

# Status recorded when the client disconnects while its body is being read.
CLIENT_CLOSED_REQUEST: int = 499
