"""Guard construction API: outcomes, combinators and the reference layers."""

from __future__ import annotations

from headergate.guards.core import (
    Allow,
    Deny,
    Guard,
    GuardOutcome,
    allow_all,
    bind,
    chain,
    deny_with,
    evaluate,
    pure,
)
from headergate.guards.library import (
    can_access_resource,
    can_edit_user,
    has_permission,
    has_token,
)

__all__ = [
    "Allow",
    "Deny",
    "Guard",
    "GuardOutcome",
    "allow_all",
    "bind",
    "can_access_resource",
    "can_edit_user",
    "chain",
    "deny_with",
    "evaluate",
    "has_permission",
    "has_token",
    "pure",
]
