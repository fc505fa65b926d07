"""Example gated actions and their routes.

Each action shows one way of stacking layers:

  GET    /ea/short                  timed, no guard
  GET    /ea/short-async            timed, no guard, async action
  GET    /ea/token                  token
  GET    /ea/token-async            token, async action
  GET    /ea/admin                  permission ADMIN
  GET    /ea/admin-async            permission ADMIN, async action
  GET    /ea/users/{id}             USER + self, no body
  PUT    /ea/users/{id}             USER + self, JSON UserPayload body
  DELETE /ea/users/{id}             permission USER, no body
  DELETE /ea/users/{id}/essential   permission USER, build returns the Result itself
  GET    /ea/inventory/{id}         ADMIN + same department, timed

Try it::

    curl -H "X-SECRET-TOKEN: secret-123" localhost:9000/ea/token   # 200
    curl localhost:9000/ea/token                                    # 401
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from starlette.routing import Route

from headergate.body import no_body, structured
from headergate.config import Config
from headergate.guards.library import can_access_resource, can_edit_user, has_permission, has_token
from headergate.handler import HeaderGatedHandler, gated
from headergate.models.domain import Access, Permission, Principal, UserPayload
from headergate.models.result import Result
from headergate.stores.protocol import CredentialStore, MetricsSink, ResourceRepository
from headergate.timing import TimeElapsed
from headergate.transport import as_endpoint, as_route_endpoint
from headergate.utils.logger import get_logger

logger = get_logger(__name__)

ACCESS_GRANTED = "Access granted.\n"
ADMIN_ACCESS_GRANTED = "Admin Access granted.\n"


def _count_to(limit: int = 100_000) -> str:
    return ", ".join(str(i) for i in range(limit))


@dataclass
class EssentialActions:
    """Builds the example handlers over one set of collaborators."""

    store: CredentialStore
    repository: ResourceRepository
    sink: MetricsSink
    config: Config

    def _permission(self, *allowed: Permission):
        return has_permission(
            self.store, *allowed, auth=self.config.auth, lookup=self.config.lookup
        )

    # ── Timing only ───────────────────────────────────────────────────────────

    def short(self) -> TimeElapsed:
        @gated(name="short")
        def build(_):
            return no_body(lambda: Result.ok(_count_to()), self.config.body)

        return TimeElapsed(build, sink=self.sink)

    def short_async(self) -> TimeElapsed:
        async def action() -> Result:
            return Result.ok(await asyncio.to_thread(_count_to))

        @gated(name="short_async")
        def build(_):
            return no_body(action, self.config.body)

        return TimeElapsed(build, sink=self.sink)

    # ── Token ─────────────────────────────────────────────────────────────────

    def with_token(self) -> HeaderGatedHandler:
        @gated(has_token(self.config.auth), name="with_token")
        def build(token: str):
            return no_body(lambda: Result.ok(ACCESS_GRANTED), self.config.body)

        return build

    def with_token_long_running(self) -> HeaderGatedHandler:
        async def action() -> Result:
            await asyncio.sleep(0)
            return Result.ok(ACCESS_GRANTED)

        @gated(has_token(self.config.auth), name="with_token_long_running")
        def build(token: str):
            return no_body(action, self.config.body)

        return build

    # ── Permission ────────────────────────────────────────────────────────────

    def admin_action(self) -> HeaderGatedHandler:
        @gated(self._permission(Permission.ADMIN), name="admin_action")
        def build(principal: Principal):
            return no_body(lambda: Result.ok(ADMIN_ACCESS_GRANTED), self.config.body)

        return build

    def admin_action_long(self) -> HeaderGatedHandler:
        async def action() -> Result:
            await asyncio.sleep(0)
            return Result.ok(ADMIN_ACCESS_GRANTED)

        @gated(self._permission(Permission.ADMIN), name="admin_action_long")
        async def build(principal: Principal):
            return no_body(action, self.config.body)

        return build

    # ── Users ─────────────────────────────────────────────────────────────────

    def _can_edit_user(self, user_id: int):
        return can_edit_user(
            self.store, user_id, auth=self.config.auth, lookup=self.config.lookup
        )

    def fetch_user(self, user_id: int) -> HeaderGatedHandler:
        @gated(self._can_edit_user(user_id), name="fetch_user")
        def build(principal: Principal):
            return no_body(Result.ok, self.config.body)

        return build

    def update_user(self, user_id: int) -> HeaderGatedHandler:
        def apply(payload: UserPayload) -> Result:
            # persisting the update belongs to the user repository
            logger.info("User update accepted", user_id=user_id, name=payload.name)
            return Result.ok()

        @gated(self._can_edit_user(user_id), name="update_user")
        def build(principal: Principal):
            return structured(UserPayload, apply, self.config.body)

        return build

    def delete(self, user_id: int) -> HeaderGatedHandler:
        @gated(self._permission(Permission.USER), name="delete")
        def build(principal: Principal):
            return no_body(lambda: Result.ok(f"Deleted {user_id}\n"), self.config.body)

        return build

    def delete_with_essentials(self, user_id: int) -> HeaderGatedHandler:
        @gated(self._permission(Permission.USER), name="delete_with_essentials")
        def build(principal: Principal):
            return Result.ok(f"Deleted {user_id}\n")

        return build

    # ── Inventory ─────────────────────────────────────────────────────────────

    def get_inventory(self, inventory_id: int) -> TimeElapsed:
        guard = can_access_resource(
            self.store,
            self.repository,
            inventory_id,
            auth=self.config.auth,
            lookup=self.config.lookup,
        )

        @gated(guard, name="get_inventory")
        def build(access: Access):
            return no_body(Result.ok, self.config.body)

        return TimeElapsed(build, sink=self.sink)

    # ── Routes ────────────────────────────────────────────────────────────────

    def routes(self) -> list[Route]:
        def by_id(build_handler):
            def factory(id: int):
                return build_handler(id)

            factory.__name__ = build_handler.__name__
            return as_route_endpoint(factory)

        return [
            Route("/ea/short", as_endpoint(self.short()), methods=["GET"]),
            Route("/ea/short-async", as_endpoint(self.short_async()), methods=["GET"]),
            Route("/ea/token", as_endpoint(self.with_token()), methods=["GET"]),
            Route(
                "/ea/token-async",
                as_endpoint(self.with_token_long_running()),
                methods=["GET"],
            ),
            Route("/ea/admin", as_endpoint(self.admin_action()), methods=["GET"]),
            Route("/ea/admin-async", as_endpoint(self.admin_action_long()), methods=["GET"]),
            Route("/ea/users/{id:int}", by_id(self.fetch_user), methods=["GET"]),
            Route("/ea/users/{id:int}", by_id(self.update_user), methods=["PUT"]),
            Route("/ea/users/{id:int}", by_id(self.delete), methods=["DELETE"]),
            Route(
                "/ea/users/{id:int}/essential",
                by_id(self.delete_with_essentials),
                methods=["DELETE"],
            ),
            Route("/ea/inventory/{id:int}", by_id(self.get_inventory), methods=["GET"]),
        ]
