"""Domain values carried through the context chain.

``Principal`` and ``Resource`` are frozen so that an inner guard or handler
receiving them by reference cannot alter what an outer layer validated.
``UserPayload`` is the pydantic schema decoded by the structured body consumer
of the "update user" action.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel


class Permission(str, Enum):
    """Permission level held by a principal."""

    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """Identity resolved from a credential token."""

    id: int
    name: str
    permission: Permission
    department: str = ""

    @classmethod
    def from_dict(cls, raw: dict) -> "Principal":
        return cls(
            id=int(raw["id"]),
            name=str(raw.get("name", "")),
            permission=Permission(raw.get("permission", Permission.USER.value)),
            department=str(raw.get("department", "")),
        )


@dataclass(frozen=True)
class Resource:
    """An inventory record guarded by department."""

    id: int
    name: str
    department: str

    @classmethod
    def from_dict(cls, raw: dict) -> "Resource":
        return cls(
            id=int(raw["id"]),
            name=str(raw.get("name", "")),
            department=str(raw.get("department", "")),
        )


class Access(NamedTuple):
    """Context produced by the resource ownership guard."""

    principal: Principal
    resource: Resource


class UserPayload(BaseModel):
    """JSON body accepted when updating a user."""

    id: int
    name: str
    permission: Permission = Permission.USER
    department: str = ""
