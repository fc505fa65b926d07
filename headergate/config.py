"""Config loading for headergate.

Reads `.headergate/config.yaml` (or `~/.headergate/config.yaml`).
Raises SystemExit on parse errors or a missing/unsupported `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. HEADERGATE_CONFIG environment variable (if set)
  3. `.headergate/config.yaml` (working directory — for development)
  4. `~/.headergate/config.yaml` (home directory — for deployments)

Environment variable overrides (applied after the file):
  HEADERGATE_PORT             — overrides server.port
  HEADERGATE_UNEXPECTED_BODY  — overrides body.unexpected_body ("ignore" | "reject")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import yaml

from headergate.constants import (
    DEFAULT_LOOKUP_FAILURE_STATUS,
    DEFAULT_LOOKUP_TIMEOUT_MS,
    DEFAULT_SLOW_THRESHOLD_MS,
    DEFAULT_TIMING_WINDOW,
    MAX_REQUEST_BODY_BYTES,
    TOKEN_HEADER,
)
from headergate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

# Policy for a non-empty body sent to a no-body route
UNEXPECTED_BODY_IGNORE = "ignore"
UNEXPECTED_BODY_REJECT = "reject"
VALID_UNEXPECTED_BODY: frozenset[str] = frozenset({UNEXPECTED_BODY_IGNORE, UNEXPECTED_BODY_REJECT})

VALID_STORE_BACKENDS: frozenset[str] = frozenset({"memory", "sqlite"})

DEFAULT_CONFIG_PATHS = [
    ".headergate/config.yaml",
    os.path.expanduser("~/.headergate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AuthConfig:
    """Credential extraction."""

    token_header: str = TOKEN_HEADER


@dataclass(frozen=True)
class LookupConfig:
    """Guard-boundary policy for credential store / repository calls.

    timeout_ms:     Applied to awaitable lookups; None or 0 disables the timeout.
    failure_status: Status of the denial produced when a lookup faults or times out.
    """

    timeout_ms: Optional[int] = DEFAULT_LOOKUP_TIMEOUT_MS
    failure_status: int = DEFAULT_LOOKUP_FAILURE_STATUS

    @property
    def timeout_s(self) -> Optional[float]:
        if not self.timeout_ms:
            return None
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class BodyConfig:
    """Body consumption policy.

    unexpected_body:           "ignore" never reads the body of a no-body route;
                               "reject" answers 400 when one is present.
    max_bytes:                 Largest declared body any consumer accepts (413 above);
                               also the structured consumer's buffering cap.
    require_json_content_type: Structured consumers answer 415 for other media types.
    """

    unexpected_body: str = UNEXPECTED_BODY_IGNORE
    max_bytes: int = MAX_REQUEST_BODY_BYTES
    require_json_content_type: bool = True


@dataclass
class TimingConfig:
    """Elapsed-time reporting."""

    window: int = DEFAULT_TIMING_WINDOW
    slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS


@dataclass
class StoreConfig:
    """Credential store selection for the demo application."""

    backend: str = "memory"  # "memory" | "sqlite"
    path: str = "~/.headergate/principals.db"


@dataclass
class ServerConfig:
    """uvicorn binding."""

    host: str = "127.0.0.1"
    port: int = 9000


@dataclass
class Config:
    """Root configuration object populated from .headergate/config.yaml.

    All fields have safe defaults — headergate can start without any config file.
    ``principals`` and ``inventory`` seed the demo application's stores; each
    principal entry carries a ``token``, stored as a bcrypt hash by the SQLite
    backend.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    auth: AuthConfig = field(default_factory=AuthConfig)
    lookup: LookupConfig = field(default_factory=LookupConfig)
    body: BodyConfig = field(default_factory=BodyConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    principals: list[dict] = field(default_factory=list)
    inventory: list[dict] = field(default_factory=list)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On an invalid body.unexpected_body or store.backend value.
        """
        # ── Body ──────────────────────────────────────────────────────────────
        body_raw = raw.get("body") or {}
        unexpected = body_raw.get("unexpected_body", UNEXPECTED_BODY_IGNORE)
        _require_choice("body.unexpected_body", unexpected, VALID_UNEXPECTED_BODY)
        body = BodyConfig(
            unexpected_body=unexpected,
            max_bytes=int(body_raw.get("max_bytes", MAX_REQUEST_BODY_BYTES)),
            require_json_content_type=bool(body_raw.get("require_json_content_type", True)),
        )

        # ── Lookup ────────────────────────────────────────────────────────────
        lookup_raw = raw.get("lookup") or {}
        lookup = LookupConfig(
            timeout_ms=lookup_raw.get("timeout_ms", DEFAULT_LOOKUP_TIMEOUT_MS),
            failure_status=int(lookup_raw.get("failure_status", DEFAULT_LOOKUP_FAILURE_STATUS)),
        )

        # ── Auth ──────────────────────────────────────────────────────────────
        auth_raw = raw.get("auth") or {}
        auth = AuthConfig(token_header=auth_raw.get("token_header", TOKEN_HEADER))

        # ── Timing ────────────────────────────────────────────────────────────
        timing_raw = raw.get("timing") or {}
        timing = TimingConfig(
            window=int(timing_raw.get("window", DEFAULT_TIMING_WINDOW)),
            slow_threshold_ms=float(
                timing_raw.get("slow_threshold_ms", DEFAULT_SLOW_THRESHOLD_MS)
            ),
        )

        # ── Store ─────────────────────────────────────────────────────────────
        store_raw = raw.get("store") or {}
        backend = store_raw.get("backend", "memory")
        _require_choice("store.backend", backend, VALID_STORE_BACKENDS)
        store = StoreConfig(
            backend=backend,
            path=store_raw.get("path", "~/.headergate/principals.db"),
        )

        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 9000),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            auth=auth,
            lookup=lookup,
            body=body,
            timing=timing,
            store=store,
            server=server,
            principals=list(raw.get("principals") or []),
            inventory=list(raw.get("inventory") or []),
            path=path,
        )


def _require_choice(name: str, value: str, allowed: frozenset[str]) -> None:
    if value not in allowed:
        msg = (
            f"CONFIG ERROR: Invalid {name}: '{value}'. "
            f"Supported values: {sorted(allowed)}."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate headergate configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).

    Returns:
        Config object with all values populated (file values merged onto defaults).

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid enumerated value, or invalid env override.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("HEADERGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        msg = (
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "headergate refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)
    except OSError as exc:
        msg = f"CONFIG ERROR: Could not read {found_path}: {exc}"
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if not isinstance(raw, dict):
        if raw is None:
            msg = (
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        else:
            msg = (
                f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
                "The config file must be a YAML dictionary at the top level."
            )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        msg = (
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if version not in SUPPORTED_VERSIONS:
        msg = (
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.lookup.timeout_s is None:
        logger.warning("lookup.timeout_ms disabled — slow stores will hold requests open")

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        unexpected_body=config.body.unexpected_body,
        store_backend=config.store.backend,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If HEADERGATE_PORT is not an integer or
                       HEADERGATE_UNEXPECTED_BODY is not a known policy.
    """
    env_port = os.environ.get("HEADERGATE_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            msg = (
                f"CONFIG ERROR: HEADERGATE_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )
            print(msg, file=sys.stderr)
            raise SystemExit(1)

    env_unexpected = os.environ.get("HEADERGATE_UNEXPECTED_BODY")
    if env_unexpected is not None:
        policy = env_unexpected.strip().lower()
        _require_choice("HEADERGATE_UNEXPECTED_BODY", policy, VALID_UNEXPECTED_BODY)
        config.body = BodyConfig(
            unexpected_body=policy,
            max_bytes=config.body.max_bytes,
            require_json_content_type=config.body.require_json_content_type,
        )
