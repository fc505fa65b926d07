"""End-to-end tests for the demo application built by create_app()."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from headergate.config import BodyConfig, Config, StoreConfig
from headergate.main import create_app
from headergate.stores.sqlite import SQLiteCredentialStore
from tests.helpers import ADMIN_TOKEN, USER_TOKEN

USER = {"X-SECRET-TOKEN": USER_TOKEN}
ADMIN = {"X-SECRET-TOKEN": ADMIN_TOKEN}


@pytest.fixture()
def client():
    with TestClient(create_app(config=Config())) as test_client:
        yield test_client


class TestTimedRoutes:
    @pytest.mark.parametrize("path", ["/ea/short", "/ea/short-async"])
    def test_no_guard(self, client, path) -> None:
        response = client.get(path)
        assert response.status_code == 200
        assert response.text.startswith("0, 1, 2")
        assert response.text.endswith("99999")

    def test_durations_reported_to_health(self, client) -> None:
        client.get("/ea/short")
        client.get("/ea/inventory/7", headers=ADMIN)
        durations = client.get("/health").json()["durations"]
        assert durations["short"]["count"] == 1
        assert durations["get_inventory"]["count"] == 1


class TestTokenRoutes:
    @pytest.mark.parametrize("path", ["/ea/token", "/ea/token-async"])
    def test_token_present(self, client, path) -> None:
        response = client.get(path, headers={"X-SECRET-TOKEN": "anything"})
        assert response.status_code == 200
        assert response.text == "Access granted.\n"

    @pytest.mark.parametrize("path", ["/ea/token", "/ea/token-async"])
    def test_token_missing(self, client, path) -> None:
        response = client.get(path)
        assert response.status_code == 401
        assert response.text == "No Security Token\n"


class TestAdminRoutes:
    @pytest.mark.parametrize("path", ["/ea/admin", "/ea/admin-async"])
    def test_admin(self, client, path) -> None:
        response = client.get(path, headers=ADMIN)
        assert response.status_code == 200
        assert response.text == "Admin Access granted.\n"

    @pytest.mark.parametrize(
        "headers, status",
        [({}, 401), ({"X-SECRET-TOKEN": "unknown"}, 404), (USER, 403)],
        ids=["no-token", "unknown-token", "user-token"],
    )
    def test_denials(self, client, headers, status) -> None:
        assert client.get("/ea/admin", headers=headers).status_code == status


class TestUserRoutes:
    def test_fetch_self(self, client) -> None:
        response = client.get("/ea/users/42", headers=USER)
        assert response.status_code == 200
        assert response.text == "OK"

    def test_fetch_other_user(self, client) -> None:
        assert client.get("/ea/users/99", headers=USER).status_code == 403

    def test_update_self(self, client) -> None:
        response = client.put("/ea/users/42", headers=USER, json={"id": 42, "name": "alice"})
        assert response.status_code == 200

    def test_update_bad_payload(self, client) -> None:
        response = client.put("/ea/users/42", headers=USER, json={"name": 5})
        assert response.status_code == 400

    def test_delete(self, client) -> None:
        response = client.delete("/ea/users/5", headers=USER)
        assert response.status_code == 200
        assert response.text == "Deleted 5\n"

    def test_delete_with_essentials(self, client) -> None:
        response = client.delete("/ea/users/5/essential", headers=USER)
        assert response.status_code == 200
        assert response.text == "Deleted 5\n"

    def test_delete_admin_is_not_user(self, client) -> None:
        assert client.delete("/ea/users/5", headers=ADMIN).status_code == 403


class TestInventory:
    def test_same_department(self, client) -> None:
        assert client.get("/ea/inventory/7", headers=ADMIN).status_code == 200

    def test_other_department(self, client) -> None:
        assert client.get("/ea/inventory/8", headers=ADMIN).status_code == 403

    def test_missing_item(self, client) -> None:
        assert client.get("/ea/inventory/999", headers=ADMIN).status_code == 404


class TestHealth:
    def test_ready(self, client) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["store_backend"] == "memory"
        assert body["unexpected_body"] == "ignore"

    def test_not_ready_before_startup(self) -> None:
        # Without the context manager the lifespan never runs
        client = TestClient(create_app(config=Config()))
        assert client.get("/health").status_code == 503


def test_reject_policy_refuses_body_on_get() -> None:
    config = Config(body=BodyConfig(unexpected_body="reject"))
    with TestClient(create_app(config=config)) as client:
        response = client.request("GET", "/ea/token", headers={"X-SECRET-TOKEN": "t"}, content=b"surprise")
        assert response.status_code == 400
        assert client.get("/ea/token", headers={"X-SECRET-TOKEN": "t"}).status_code == 200


def test_declared_body_over_cap_refused_on_get() -> None:
    config = Config(body=BodyConfig(max_bytes=16))
    with TestClient(create_app(config=config)) as client:
        response = client.request("GET", "/ea/token", headers={"X-SECRET-TOKEN": "t"}, content=b"x" * 17)
        assert response.status_code == 413
        response = client.request("GET", "/ea/token", headers={"X-SECRET-TOKEN": "t"}, content=b"x" * 16)
        assert response.status_code == 200


# ─── SQLite backend ───────────────────────────────────────────────────────────

CAROL = {"id": 3, "name": "carol", "permission": "admin", "department": "sales", "token": "secret-carol"}


def _sqlite_config(tmp_path, principals: list) -> Config:
    return Config(
        store=StoreConfig(backend="sqlite", path=str(tmp_path / "principals.db")),
        principals=principals,
    )


def test_sqlite_backend_seeds_configured_principals(tmp_path) -> None:
    app = create_app(config=_sqlite_config(tmp_path, [CAROL]))
    assert isinstance(app.state.store, SQLiteCredentialStore)
    with TestClient(app) as client:
        assert client.get("/health").json()["store_backend"] == "sqlite"
        assert client.get("/ea/admin", headers={"X-SECRET-TOKEN": "secret-carol"}).status_code == 200
        assert client.get("/ea/admin", headers={"X-SECRET-TOKEN": "secret-admin"}).status_code == 404


def test_sqlite_restart_keeps_configured_token(tmp_path) -> None:
    config = _sqlite_config(tmp_path, [CAROL])
    for _ in range(2):
        app = create_app(config=config)
        with TestClient(app) as client:
            assert client.get("/ea/admin", headers={"X-SECRET-TOKEN": "secret-carol"}).status_code == 200

    store = SQLiteCredentialStore(tmp_path / "principals.db")
    assert asyncio.run(store.count_active_tokens(3)) == 1


def test_sqlite_seeding_never_logs_plaintext(tmp_path) -> None:
    with capture_logs() as entries:
        with TestClient(create_app(config=_sqlite_config(tmp_path, [CAROL]))):
            pass
    seeded = [e for e in entries if e["event"] == "Principal seeded"]
    assert seeded and seeded[0]["principal_id"] == 3
    assert all("secret-carol" not in repr(e) for e in entries)


def test_sqlite_principal_without_token_is_warned(tmp_path) -> None:
    anonymous = {k: v for k, v in CAROL.items() if k != "token"}
    with capture_logs() as entries:
        with TestClient(create_app(config=_sqlite_config(tmp_path, [anonymous]))) as client:
            assert client.get("/ea/admin", headers={"X-SECRET-TOKEN": "secret-carol"}).status_code == 404
    warned = [e for e in entries if e["event"] == "Configured principal has no token; none issued"]
    assert len(warned) == 1
    assert warned[0]["log_level"] == "warning"
    assert warned[0]["principal_id"] == 3
