"""Dict-backed credential store and resource repository.

Used by the demo application (seeded from config) and by tests. Both count
their lookups in ``lookups`` so callers can check which layers consulted them.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

from headergate.models.domain import Principal, Resource
from headergate.stores.protocol import CredentialStore, ResourceRepository


class InMemoryCredentialStore:
    """token → Principal mapping."""

    def __init__(self, tokens: Optional[Mapping[str, Principal]] = None) -> None:
        self._tokens: dict[str, Principal] = dict(tokens or {})
        self.lookups: int = 0

    @classmethod
    def from_config(cls, entries: Iterable[dict]) -> "InMemoryCredentialStore":
        """Build from config ``principals`` entries (each with a ``token`` key)."""
        return cls({str(entry["token"]): Principal.from_dict(entry) for entry in entries})

    def resolve_principal(self, token: str) -> Optional[Principal]:
        self.lookups += 1
        return self._tokens.get(token)


class InMemoryResourceRepository:
    """id → Resource mapping."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: dict[int, Resource] = {r.id: r for r in resources}
        self.lookups: int = 0

    @classmethod
    def from_config(cls, entries: Iterable[dict]) -> "InMemoryResourceRepository":
        return cls(Resource.from_dict(entry) for entry in entries)

    def find(self, resource_id: int) -> Optional[Resource]:
        self.lookups += 1
        return self._resources.get(resource_id)


# ─── Protocol compliance assertion ────────────────────────────────────────────
# Runs at import time.
assert isinstance(InMemoryCredentialStore(), CredentialStore), (
    "InMemoryCredentialStore does not satisfy CredentialStore protocol"
)
assert isinstance(InMemoryResourceRepository(), ResourceRepository), (
    "InMemoryResourceRepository does not satisfy ResourceRepository protocol"
)
