"""Collaborator Protocols consumed by the gating pipeline.

The pipeline never owns principals, resources or metrics; it reaches them only
through these interfaces. Lookup methods may be plain or ``async``: the guard
lookup boundary awaits whatever is awaitable.

@runtime_checkable enables isinstance(obj, CredentialStore) structural checks
when wiring the demo application.
"""

from __future__ import annotations

from typing import Awaitable, Optional, Protocol, Union, runtime_checkable

from headergate.models.domain import Principal, Resource


@runtime_checkable
class CredentialStore(Protocol):
    """Resolves a credential token to the principal it belongs to."""

    def resolve_principal(
        self, token: str
    ) -> Union[Optional[Principal], Awaitable[Optional[Principal]]]:
        """Return the principal for ``token``, or None when unknown.

        May raise when the backing storage is unreachable; the guard boundary
        turns that into a denial.
        """
        ...


@runtime_checkable
class ResourceRepository(Protocol):
    """Finds resources by id."""

    def find(self, resource_id: int) -> Union[Optional[Resource], Awaitable[Optional[Resource]]]:
        """Return the resource, or None when it does not exist."""
        ...


@runtime_checkable
class MetricsSink(Protocol):
    """Receives elapsed-time measurements from the timing decorator."""

    def record_duration(self, label: str, millis: float) -> None:
        """Record one request duration. Must not raise."""
        ...
