"""Value types passed through the gating pipeline."""

from __future__ import annotations

from headergate.models.domain import Access, Permission, Principal, Resource, UserPayload
from headergate.models.result import HeaderView, Result

__all__ = [
    "Access",
    "HeaderView",
    "Permission",
    "Principal",
    "Resource",
    "Result",
    "UserPayload",
]
