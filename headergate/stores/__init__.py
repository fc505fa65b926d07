"""Collaborator interfaces consumed by the guards, plus reference implementations.

Public API:
  - CredentialStore / ResourceRepository / MetricsSink — runtime-checkable Protocols
  - InMemoryCredentialStore / InMemoryResourceRepository — dict-backed stores
  - SQLiteCredentialStore — aiosqlite + bcrypt token store
"""

from __future__ import annotations

from headergate.stores.memory import InMemoryCredentialStore, InMemoryResourceRepository
from headergate.stores.protocol import CredentialStore, MetricsSink, ResourceRepository
from headergate.stores.sqlite import SQLiteCredentialStore

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "InMemoryResourceRepository",
    "MetricsSink",
    "ResourceRepository",
    "SQLiteCredentialStore",
]
