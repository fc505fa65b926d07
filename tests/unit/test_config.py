"""Unit tests for headergate/config.py — YAML loading, validation, env overrides."""

from __future__ import annotations

import pytest

from headergate.config import (
    UNEXPECTED_BODY_IGNORE,
    UNEXPECTED_BODY_REJECT,
    BodyConfig,
    Config,
    LookupConfig,
    load_config,
)
from headergate.constants import DEFAULT_LOOKUP_FAILURE_STATUS, MAX_REQUEST_BODY_BYTES, TOKEN_HEADER


def write_config(tmp_path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


class TestDefaults:
    def test_no_file_returns_defaults(self) -> None:
        config = load_config()
        assert config.path is None
        assert config.version == 1
        assert config.auth.token_header == TOKEN_HEADER
        assert config.body.unexpected_body == UNEXPECTED_BODY_IGNORE
        assert config.body.max_bytes == MAX_REQUEST_BODY_BYTES
        assert config.lookup.failure_status == DEFAULT_LOOKUP_FAILURE_STATUS
        assert config.store.backend == "memory"
        assert config.principals == []

    def test_lookup_timeout_seconds(self) -> None:
        assert LookupConfig(timeout_ms=1500).timeout_s == 1.5
        assert LookupConfig(timeout_ms=0).timeout_s is None
        assert LookupConfig(timeout_ms=None).timeout_s is None


class TestLoadFromFile:
    def test_full_file(self, tmp_path) -> None:
        path = write_config(
            tmp_path,
            """
version: 1
auth:
  token_header: X-Api-Key
lookup:
  timeout_ms: 500
  failure_status: 404
body:
  unexpected_body: reject
  max_bytes: 2048
timing:
  window: 10
  slow_threshold_ms: 5
store:
  backend: sqlite
  path: /tmp/hg.db
server:
  port: 9100
principals:
  - {token: t1, id: 5, name: bob, permission: admin, department: ops}
inventory:
  - {id: 3, name: pallets, department: ops}
""",
        )
        config = load_config(path)
        assert config.path == path
        assert config.auth.token_header == "X-Api-Key"
        assert config.lookup == LookupConfig(timeout_ms=500, failure_status=404)
        assert config.body == BodyConfig(unexpected_body=UNEXPECTED_BODY_REJECT, max_bytes=2048)
        assert config.timing.window == 10
        assert config.timing.slow_threshold_ms == 5.0
        assert config.store.backend == "sqlite"
        assert config.server.port == 9100
        assert config.principals[0]["name"] == "bob"
        assert config.inventory == [{"id": 3, "name": "pallets", "department": "ops"}]

    def test_env_config_path(self, tmp_path, monkeypatch) -> None:
        path = write_config(tmp_path, "version: 1\nserver:\n  port: 9200\n")
        monkeypatch.setenv("HEADERGATE_CONFIG", path)
        assert load_config().server.port == 9200

    def test_partial_file_keeps_defaults(self, tmp_path) -> None:
        config = load_config(write_config(tmp_path, "version: 1\n"))
        assert config.body.unexpected_body == UNEXPECTED_BODY_IGNORE
        assert config.server.host == "127.0.0.1"


class TestInvalidConfig:
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "server:\n  port: 1\n",
            "version: 2\n",
            "- just\n- a list\n",
            "version: 1\nbody: {unexpected_body: sometimes}\n",
            "version: 1\nstore: {backend: postgres}\n",
            "version: [1\n",
        ],
        ids=["empty", "no-version", "bad-version", "not-mapping", "bad-policy", "bad-backend", "bad-yaml"],
    )
    def test_exits(self, tmp_path, capsys, text: str) -> None:
        with pytest.raises(SystemExit) as exc_info:
            load_config(write_config(tmp_path, text))
        assert exc_info.value.code == 1
        assert "CONFIG ERROR" in capsys.readouterr().err


class TestEnvOverrides:
    def test_port_override(self, monkeypatch) -> None:
        monkeypatch.setenv("HEADERGATE_PORT", "9500")
        assert load_config().server.port == 9500

    def test_invalid_port_exits(self, monkeypatch) -> None:
        monkeypatch.setenv("HEADERGATE_PORT", "ninety")
        with pytest.raises(SystemExit):
            load_config()

    def test_unexpected_body_override(self, tmp_path, monkeypatch) -> None:
        path = write_config(tmp_path, "version: 1\nbody: {max_bytes: 64}\n")
        monkeypatch.setenv("HEADERGATE_UNEXPECTED_BODY", " Reject ")
        config = load_config(path)
        assert config.body.unexpected_body == UNEXPECTED_BODY_REJECT
        assert config.body.max_bytes == 64

    def test_invalid_unexpected_body_exits(self, monkeypatch) -> None:
        monkeypatch.setenv("HEADERGATE_UNEXPECTED_BODY", "maybe")
        with pytest.raises(SystemExit):
            load_config()


def test_from_dict_ignores_unknown_keys() -> None:
    config = Config.from_dict({"version": 1, "rate_limit": {"enabled": True}})
    assert config == Config(version=1)
