"""Reference guard library: token, permission and ownership layers.

Each layer is built on the previous one with ``bind()``, never by subclassing:

    has_token                       → Allow(token)
      └ has_permission(*allowed)    → Allow(principal)
          ├ can_edit_user(id)       → Allow(principal)        (USER, self only)
          └ can_access_resource(id) → Allow(Access(principal, resource))
                                                               (ADMIN, same department)

Status precedence (most specific layer last):
    credential header absent                     → 401
    credential valid but principal not found     → 404
    principal found, permission insufficient     → 403
    permission sufficient, resource not found    → 404
    resource found, ownership/department mismatch → 403

Lookup boundary: every call into a credential store or repository goes through
``_lookup()``. A lookup that raises, or that does not complete within
``LookupConfig.timeout_ms``, becomes ``Deny`` with ``LookupConfig.failure_status``
(default 503). Store faults never propagate through the chain.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional, TypeVar

from headergate.config import AuthConfig, LookupConfig
from headergate.errors import Denial
from headergate.guards.core import Allow, Deny, Guard, GuardOutcome, bind
from headergate.models.domain import Access, Permission, Principal
from headergate.models.result import HeaderView, Result
from headergate.stores.protocol import CredentialStore, ResourceRepository
from headergate.utils.logger import get_logger

logger = get_logger(__name__)

X = TypeVar("X")

_DEFAULT_AUTH = AuthConfig()
_DEFAULT_LOOKUP = LookupConfig()

# Text of the 403 returned when a user addresses another user's record.
NOT_ALLOWED_FOR_USER = "403 Not allowed to access this user."


def _deny(denial: Denial, message: Optional[str] = None, status: Optional[int] = None) -> Deny:
    return Deny(Result.from_denial(denial, message=message, status=status))


async def _lookup(
    what: str,
    call: Callable[..., Any],
    *args: Any,
    lookup: LookupConfig,
    header: HeaderView,
) -> GuardOutcome[Any]:
    """Run one collaborator lookup; translate faults and timeouts into a denial.

    Returns ``Allow(found)`` where ``found`` may be None (a miss), or the
    lookup-unavailable ``Deny``.
    """
    try:
        found = call(*args)
        if inspect.isawaitable(found):
            timeout = lookup.timeout_s
            found = await (asyncio.wait_for(found, timeout) if timeout else found)
    except asyncio.TimeoutError:
        logger.warning(
            "Lookup timed out",
            lookup=what,
            timeout_ms=lookup.timeout_ms,
            path=header.path,
            method=header.method,
        )
        return _deny(Denial.LOOKUP_UNAVAILABLE, status=lookup.failure_status)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "Lookup failed",
            lookup=what,
            error=str(exc),
            error_type=type(exc).__name__,
            path=header.path,
            method=header.method,
        )
        return _deny(Denial.LOOKUP_UNAVAILABLE, status=lookup.failure_status)
    return Allow(found)


# ─── Token ────────────────────────────────────────────────────────────────────


def has_token(auth: AuthConfig = _DEFAULT_AUTH) -> Guard[str]:
    """Require the credential header; allow with its value.

    Missing or empty header → 401 ``No Security Token``.
    """
    header_name = auth.token_header

    def token_guard(header: HeaderView) -> GuardOutcome[str]:
        token = header.header(header_name)
        if not token:
            logger.info(
                "Request denied: no security token",
                path=header.path,
                method=header.method,
            )
            return _deny(Denial.MISSING_CREDENTIAL)
        return Allow(token)

    return token_guard


# ─── Permission ───────────────────────────────────────────────────────────────


def has_permission(
    store: CredentialStore,
    *allowed: Permission,
    auth: AuthConfig = _DEFAULT_AUTH,
    lookup: LookupConfig = _DEFAULT_LOOKUP,
) -> Guard[Principal]:
    """Require a token that resolves to a principal holding one of ``allowed``.

    Unknown token → 404. Known principal with another permission → 403.
    """
    permissions = frozenset(allowed)

    def resolve(token: str) -> Guard[Principal]:
        async def permission_guard(header: HeaderView) -> GuardOutcome[Principal]:
            outcome = await _lookup(
                "principal", store.resolve_principal, token, lookup=lookup, header=header
            )
            if isinstance(outcome, Deny):
                return outcome
            principal: Optional[Principal] = outcome.value
            if principal is None:
                logger.info("Request denied: unknown token", path=header.path)
                return _deny(Denial.PRINCIPAL_NOT_FOUND)
            if principal.permission not in permissions:
                logger.info(
                    "Request denied: insufficient permission",
                    principal_id=principal.id,
                    permission=principal.permission.value,
                    path=header.path,
                )
                return _deny(Denial.INSUFFICIENT_PERMISSION)
            return Allow(principal)

        return permission_guard

    return bind(has_token(auth), resolve)


# ─── Ownership ────────────────────────────────────────────────────────────────


def can_edit_user(
    store: CredentialStore,
    user_id: int,
    auth: AuthConfig = _DEFAULT_AUTH,
    lookup: LookupConfig = _DEFAULT_LOOKUP,
) -> Guard[Principal]:
    """Require a USER principal addressing its own record (``principal.id == user_id``)."""

    def owns(principal: Principal) -> Guard[Principal]:
        def self_guard(header: HeaderView) -> GuardOutcome[Principal]:
            if principal.id != user_id:
                logger.info(
                    "Request denied: not the addressed user",
                    principal_id=principal.id,
                    user_id=user_id,
                )
                return _deny(Denial.OWNERSHIP_MISMATCH, message=NOT_ALLOWED_FOR_USER)
            return Allow(principal)

        return self_guard

    return bind(has_permission(store, Permission.USER, auth=auth, lookup=lookup), owns)


def can_access_resource(
    store: CredentialStore,
    repository: ResourceRepository,
    resource_id: int,
    *allowed: Permission,
    auth: AuthConfig = _DEFAULT_AUTH,
    lookup: LookupConfig = _DEFAULT_LOOKUP,
) -> Guard[Access]:
    """Require a principal (ADMIN unless ``allowed`` says otherwise) from the
    resource's department.

    Resource missing → 404. Department mismatch → 403. The repository is only
    consulted once the permission layer has allowed.
    """
    permissions = allowed or (Permission.ADMIN,)

    def fetch(principal: Principal) -> Guard[Access]:
        async def resource_guard(header: HeaderView) -> GuardOutcome[Access]:
            outcome = await _lookup(
                "resource", repository.find, resource_id, lookup=lookup, header=header
            )
            if isinstance(outcome, Deny):
                return outcome
            resource = outcome.value
            if resource is None:
                logger.info("Request denied: resource not found", resource_id=resource_id)
                return _deny(Denial.RESOURCE_NOT_FOUND)
            if resource.department != principal.department:
                logger.info(
                    "Request denied: department mismatch",
                    principal_id=principal.id,
                    resource_id=resource_id,
                )
                return _deny(Denial.OWNERSHIP_MISMATCH)
            return Allow(Access(principal, resource))

        return resource_guard

    return bind(has_permission(store, *permissions, auth=auth, lookup=lookup), fetch)
