"""ULID generation for request ids and credential tokens.

A ULID is 26 characters of Crockford Base32 (48-bit millisecond timestamp plus
80 random bits), URL-safe and lexicographically sortable. It is used as:
  - the ``X-Request-ID`` value returned by the transport adapter
  - the ``request_id`` field bound into structured log entries
  - the key id embedded in SQLite-issued tokens (``hg-<ULID>``)

Uses the ``python-ulid`` library; do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: e.g. ``"01KJ0JRVHYA7KX32VPN5ZSCTMV"``.
    """
    return str(ULID())
