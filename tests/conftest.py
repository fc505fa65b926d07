"""Root test configuration for headergate.

Isolates every test from HEADERGATE_* env vars and from any config file in the
developer's working or home directory, and provides the in-memory store and
repository seeded with the principals and resources from ``tests.helpers``.
"""

from __future__ import annotations

import pytest
import structlog

from headergate.stores.memory import InMemoryCredentialStore, InMemoryResourceRepository
from tests.helpers import ADMIN_TOKEN, ALICE, FORKLIFTS, LAPTOPS, OPS, OPS_ADMIN_TOKEN, ROOT, USER_TOKEN


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Clear env overrides and point config search at an empty directory."""
    for name in (
        "HEADERGATE_CONFIG",
        "HEADERGATE_PORT",
        "HEADERGATE_UNEXPECTED_BODY",
        "HEADERGATE_PRINCIPALS_DB_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "headergate.config.DEFAULT_CONFIG_PATHS",
        [str(tmp_path / "no-such-config.yaml")],
    )
    structlog.contextvars.clear_contextvars()


@pytest.fixture()
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore(
        {USER_TOKEN: ALICE, ADMIN_TOKEN: ROOT, OPS_ADMIN_TOKEN: OPS}
    )


@pytest.fixture()
def repository() -> InMemoryResourceRepository:
    return InMemoryResourceRepository([LAPTOPS, FORKLIFTS])
