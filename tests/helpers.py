"""Shared principals and instrumentation helpers for the headergate test suites."""

from __future__ import annotations

from typing import Any

from headergate.models.domain import Permission, Principal, Resource
from headergate.models.result import HeaderView

USER_TOKEN = "secret-123"
ADMIN_TOKEN = "secret-admin"
OPS_ADMIN_TOKEN = "secret-ops"

ALICE = Principal(id=42, name="alice", permission=Permission.USER, department="sales")
ROOT = Principal(id=1, name="root", permission=Permission.ADMIN, department="sales")
OPS = Principal(id=2, name="ops", permission=Permission.ADMIN, department="logistics")

LAPTOPS = Resource(id=7, name="laptops", department="sales")
FORKLIFTS = Resource(id=8, name="forklifts", department="logistics")


def make_header(token: str | None = None, method: str = "GET", path: str = "/", **extra: str) -> HeaderView:
    headers: dict[str, str] = {k.replace("_", "-"): v for k, v in extra.items()}
    if token is not None:
        headers["X-SECRET-TOKEN"] = token
    return HeaderView.of(method, path, headers)


class TrackingBody:
    """Async body stream that counts how many times it was read."""

    def __init__(self, *chunks: bytes) -> None:
        self.chunks = list(chunks)
        self.reads = 0

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        self.reads += 1
        for chunk in self.chunks:
            yield chunk


class CountingGuard:
    """Guard returning a fixed outcome and counting its calls."""

    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.calls = 0

    def __call__(self, header: HeaderView) -> Any:
        self.calls += 1
        return self.outcome


class RecordingSink:
    """MetricsSink keeping every measurement."""

    def __init__(self) -> None:
        self.records: list[tuple[str, float]] = []

    def record_duration(self, label: str, millis: float) -> None:
        self.records.append((label, millis))
