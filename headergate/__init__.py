"""headergate — header-gated request authorization.

Public API:
  - Guards:    Allow, Deny, bind, chain, pure, has_token, has_permission,
               can_edit_user, can_access_resource
  - Handlers:  HeaderGatedHandler, gated, run_handler
  - Bodies:    BodyConsumer, BodyStrategy, no_body, structured, raw, respond
  - Timing:    TimeElapsed, time_elapsed
  - Values:    HeaderView, Result, Denial, Permission, Principal, Resource, Access
  - Transport: as_endpoint, as_route_endpoint
"""

from __future__ import annotations

from headergate.body import BodyConsumer, BodyStrategy, no_body, raw, respond, structured
from headergate.errors import (
    ConsumerReusedError,
    Denial,
    HeaderGateError,
    InvalidOutcomeError,
    InvalidResultError,
    StoreUnavailableError,
)
from headergate.guards import (
    Allow,
    Deny,
    Guard,
    GuardOutcome,
    allow_all,
    bind,
    can_access_resource,
    can_edit_user,
    chain,
    deny_with,
    evaluate,
    has_permission,
    has_token,
    pure,
)
from headergate.handler import HeaderGatedHandler, gated, run_handler
from headergate.models import Access, HeaderView, Permission, Principal, Resource, Result
from headergate.timing import TimeElapsed, time_elapsed
from headergate.transport import as_endpoint, as_route_endpoint

__version__ = "0.1.0"

__all__ = [
    "Access",
    "Allow",
    "BodyConsumer",
    "BodyStrategy",
    "ConsumerReusedError",
    "Deny",
    "Denial",
    "Guard",
    "GuardOutcome",
    "HeaderGateError",
    "HeaderGatedHandler",
    "HeaderView",
    "InvalidOutcomeError",
    "InvalidResultError",
    "Permission",
    "Principal",
    "Resource",
    "Result",
    "StoreUnavailableError",
    "TimeElapsed",
    "allow_all",
    "as_endpoint",
    "as_route_endpoint",
    "bind",
    "can_access_resource",
    "can_edit_user",
    "chain",
    "deny_with",
    "evaluate",
    "gated",
    "has_permission",
    "has_token",
    "no_body",
    "pure",
    "raw",
    "respond",
    "run_handler",
    "structured",
    "time_elapsed",
]
