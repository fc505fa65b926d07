"""SQLite-backed credential store.

Two kinds of token live in the ``tokens`` table:

  issued      ``hg-<ULID>`` from ``add_principal()``. The plaintext is returned
              exactly once; the row is keyed by the ULID part.
  configured  Any other value taken from the ``principals`` section of the
              config by ``seed_principal()``. The row is keyed by the SHA-256
              hex digest of the value.

Only the bcrypt hash of either kind is stored; the key merely locates the row
and bcrypt verifies it. Validated tokens are cached in a per-store LRU so
repeat requests skip bcrypt.

Non-negotiables:
  - Plaintext tokens are NEVER written to the database or to the log.
  - os.chmod(db_path, 0o600) on every initialize() call.
  - aiosqlite only; no synchronous sqlite3 calls.
  - The validation cache is cleared synchronously before revoke_token() returns.
  - Database errors surface as StoreUnavailableError so the guard boundary can
    deny with the configured lookup-failure status instead of a false 404.
"""


from __future__ import annotations

import hashlib
import os
from collections import OrderedDict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite
import bcrypt

from headergate.constants import BCRYPT_ROUNDS, TOKEN_CACHE_MAXSIZE, TOKEN_PREFIX
from headergate.errors import StoreUnavailableError
from headergate.models.domain import Permission, Principal
from headergate.utils.logger import get_logger
from headergate.utils.ulid import generate_ulid

logger = get_logger(__name__)

_DEFAULT_DB_PATH: str = str(Path.home() / ".headergate" / "principals.db")

# "hg-" + 26-char ULID
_TOKEN_LENGTH: int = len(TOKEN_PREFIX) + 26

SOURCE_ISSUED = "issued"
SOURCE_CONFIGURED = "configured"

# ─── Schema ───────────────────────────────────────────────────────────────────

_CREATE_PRINCIPALS_SQL = """
CREATE TABLE IF NOT EXISTS principals (
    id              INTEGER PRIMARY KEY,
    name            TEXT NOT NULL,
    permission      TEXT NOT NULL,
    department      TEXT NOT NULL DEFAULT ''
);
"""

_CREATE_TOKENS_SQL = """
CREATE TABLE IF NOT EXISTS tokens (
    id              TEXT PRIMARY KEY,
    token_hash      TEXT NOT NULL,
    principal_id    INTEGER NOT NULL REFERENCES principals (id),
    source          TEXT NOT NULL DEFAULT 'issued',
    created_at      TEXT NOT NULL,
    active          INTEGER NOT NULL DEFAULT 1
);
"""

_CREATE_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS idx_tokens_principal_active ON tokens (principal_id, active);
"""

_UPSERT_PRINCIPAL_SQL = """
INSERT INTO principals (id, name, permission, department) VALUES (?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET name = excluded.name,
    permission = excluded.permission, department = excluded.department
"""

_INSERT_TOKEN_SQL = """
INSERT INTO tokens (id, token_hash, principal_id, source, created_at, active)
VALUES (?, ?, ?, ?, ?, 1)
"""

_RESOLVE_SQL = """
SELECT t.token_hash, p.id, p.name, p.permission, p.department
FROM tokens t JOIN principals p ON p.id = t.principal_id
WHERE t.id = ? AND t.active = 1
"""


def _resolve_db_path(db_path: Optional[Path]) -> Path:
    """Resolve the database path from the argument or environment variable."""
    if db_path is not None:
        return Path(db_path).expanduser()
    env_path = os.environ.get("HEADERGATE_PRINCIPALS_DB_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return Path(_DEFAULT_DB_PATH)


class SQLiteCredentialStore:
    """CredentialStore persisted in SQLite with bcrypt-hashed tokens.

    Args:
        db_path: Database file. Defaults to HEADERGATE_PRINCIPALS_DB_PATH or
                 ``~/.headergate/principals.db``.
        rounds:  bcrypt cost factor for newly stored tokens.
    """

    def __init__(self, db_path: Optional[Path] = None, rounds: int = BCRYPT_ROUNDS) -> None:
        self.path = _resolve_db_path(db_path)
        self._rounds = rounds
        self._cache: OrderedDict[str, Principal] = OrderedDict()

    # ── Cache ─────────────────────────────────────────────────────────────────

    def _cache_get(self, token: str) -> Optional[Principal]:
        if token in self._cache:
            self._cache.move_to_end(token)
            return self._cache[token]
        return None

    def _cache_set(self, token: str, principal: Principal) -> None:
        if token in self._cache:
            self._cache.move_to_end(token)
        elif len(self._cache) >= TOKEN_CACHE_MAXSIZE:
            self._cache.popitem(last=False)
        self._cache[token] = principal

    def clear_cache(self) -> None:
        """Invalidate every cached token validation."""
        self._cache.clear()
        logger.debug("Token validation cache cleared")

    # ── Schema ────────────────────────────────────────────────────────────────

    async def initialize(self) -> Path:
        """Create the schema (idempotent) and restrict the file to 0600."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(str(self.path)) as db:
            await db.execute("PRAGMA journal_mode=WAL")
            await db.execute(_CREATE_PRINCIPALS_SQL)
            await db.execute(_CREATE_TOKENS_SQL)
            await db.execute(_CREATE_INDEX_SQL)
            await db.execute("PRAGMA user_version = 1")
            await db.commit()

        os.chmod(self.path, 0o600)

        logger.debug("Principal store initialized", path=str(self.path))
        return self.path

    def _hash(self, token: str) -> str:
        return bcrypt.hashpw(token.encode(), bcrypt.gensalt(rounds=self._rounds)).decode()

    # ── Issue / seed / revoke ─────────────────────────────────────────────────

    async def add_principal(self, principal: Principal) -> str:
        """Store (or update) ``principal`` and issue a new token for it.

        Returns:
            The plaintext ``hg-<ULID>`` token. Show it once; it cannot be
            recovered from the database.
        """
        await self.initialize()

        raw_ulid = generate_ulid()
        plaintext = f"{TOKEN_PREFIX}{raw_ulid}"
        now = datetime.now(timezone.utc).isoformat()

        async with aiosqlite.connect(str(self.path)) as db:
            await db.execute(_UPSERT_PRINCIPAL_SQL, _principal_row(principal))
            await db.execute(
                _INSERT_TOKEN_SQL,
                (raw_ulid, self._hash(plaintext), principal.id, SOURCE_ISSUED, now),
            )
            await db.commit()

        # Cached principals may carry the previous name/permission
        self.clear_cache()
        logger.info("Token issued", principal_id=principal.id, token_id=raw_ulid)
        return plaintext

    async def seed_principal(self, principal: Principal, token: Optional[str] = None) -> bool:
        """Store (or update) ``principal`` with an operator-chosen ``token``.

        Safe to call on every startup: a configured token that is already
        active is left alone, and configured tokens of this principal that no
        longer match ``token`` are deactivated. Issued tokens are untouched.
        Without a ``token`` only the principal row is written.

        Returns:
            True when a new token row was stored.
        """
        await self.initialize()

        token_id = _token_id(token) if token else None
        now = datetime.now(timezone.utc).isoformat()
        stored = False

        async with aiosqlite.connect(str(self.path)) as db:
            await db.execute(_UPSERT_PRINCIPAL_SQL, _principal_row(principal))
            await db.execute(
                "UPDATE tokens SET active = 0 "
                "WHERE principal_id = ? AND source = ? AND active = 1 AND id IS NOT ?",
                (principal.id, SOURCE_CONFIGURED, token_id),
            )
            if token_id is not None:
                async with db.execute(
                    "SELECT 1 FROM tokens WHERE id = ? AND principal_id = ? AND active = 1",
                    (token_id, principal.id),
                ) as cursor:
                    already_active = await cursor.fetchone() is not None
                if not already_active:
                    await db.execute(
                        "INSERT INTO tokens (id, token_hash, principal_id, source, created_at, active) "
                        "VALUES (?, ?, ?, ?, ?, 1) "
                        "ON CONFLICT(id) DO UPDATE SET token_hash = excluded.token_hash, "
                        "principal_id = excluded.principal_id, source = excluded.source, "
                        "created_at = excluded.created_at, active = 1",
                        (token_id, self._hash(token), principal.id, SOURCE_CONFIGURED, now),
                    )
                    stored = True
            await db.commit()

        self.clear_cache()
        logger.info(
            "Principal seeded",
            principal_id=principal.id,
            token_stored=stored,
            token_configured=token_id is not None,
        )
        return stored

    async def revoke_token(self, token: str) -> bool:
        """Deactivate ``token``. Returns False when it was unknown or already inactive."""
        token_id = _token_id(token)
        if token_id is None:
            return False
        async with aiosqlite.connect(str(self.path)) as db:
            cursor = await db.execute(
                "UPDATE tokens SET active = 0 WHERE id = ? AND active = 1",
                (token_id,),
            )
            await db.commit()
            changed = cursor.rowcount > 0

        self.clear_cache()
        if changed:
            logger.info("Token revoked", token_id=token_id)
        return changed

    async def count_active_tokens(self, principal_id: int) -> int:
        """Number of active tokens held by ``principal_id``."""
        async with aiosqlite.connect(str(self.path)) as db:
            async with db.execute(
                "SELECT COUNT(*) FROM tokens WHERE principal_id = ? AND active = 1",
                (principal_id,),
            ) as cursor:
                (count,) = await cursor.fetchone()
        return count

    # ── Resolution ────────────────────────────────────────────────────────────

    async def resolve_principal(self, token: str) -> Optional[Principal]:
        """Return the principal owning an active ``token``, or None.

        Raises:
            StoreUnavailableError: If the database cannot be read.
        """
        token_id = _token_id(token)
        if token_id is None:
            return None

        cached = self._cache_get(token)
        if cached is not None:
            return cached

        try:
            async with aiosqlite.connect(str(self.path)) as db:
                async with db.execute(_RESOLVE_SQL, (token_id,)) as cursor:
                    row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreUnavailableError(f"Principal store read failed: {exc}") from exc

        if row is None:
            return None

        token_hash, principal_id, name, permission, department = row
        if not bcrypt.checkpw(token.encode(), token_hash.encode()):
            return None

        principal = Principal(
            id=principal_id,
            name=name,
            permission=Permission(permission),
            department=department,
        )
        self._cache_set(token, principal)
        return principal


def _principal_row(principal: Principal) -> tuple:
    return (principal.id, principal.name, principal.permission.value, principal.department)


def _well_formed(token: str) -> bool:
    return bool(token) and token.startswith(TOKEN_PREFIX) and len(token) == _TOKEN_LENGTH


def _token_id(token: Optional[str]) -> Optional[str]:
    """Row key for ``token``: the ULID of an issued token, else a SHA-256 digest."""
    if not token:
        return None
    if _well_formed(token):
        return token[len(TOKEN_PREFIX):]
    return hashlib.sha256(token.encode()).hexdigest()
