"""Connections for SQLite (aiosqlite, default) and PostgreSQL (asyncpg).

DATABASE_URL starting with "postgresql://" selects asyncpg; otherwise the
SQLite file at DATABASE_PATH is used.

Services only speak the aiosqlite dialect: "?" parameters, cursor.lastrowid,
cursor.rowcount and rows indexed by column name. PgConnection translates those
for asyncpg.
"""

import re
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from pathlib import Path

from alembic import command
from alembic.config import Config

from learnsphere.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def _is_postgres() -> bool:
    return settings.database_url.startswith("postgresql://")


def utcnow() -> str:
    """Timestamp format stored in every *_at column."""
    return datetime.now(timezone.utc).isoformat()


# ── SQLite ────────────────────────────────────────────────────────────

async def connect_sqlite(path: str | None = None):
    import aiosqlite

    db = await aiosqlite.connect(path or settings.database_path)
    db.row_factory = aiosqlite.Row
    # Lesson/enrollment cleanup relies on ON DELETE CASCADE
    await db.execute("PRAGMA foreign_keys = ON")
    return db


async def apply_schema(db) -> None:
    """Create every table on a SQLite connection without going through Alembic."""
    await db.executescript(SCHEMA_PATH.read_text())
    await db.commit()


# ── PostgreSQL ────────────────────────────────────────────────────────

_pool = None


async def _postgres_pool():
    global _pool
    if _pool is None:
        import asyncpg

        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.pg_pool_min,
            max_size=settings.pg_pool_max,
        )
    return _pool


def _as_text(value):
    # SQLite returns timestamps as text; keep asyncpg results the same shape
    return value.isoformat() if isinstance(value, (datetime, date)) else value


class PgRow:
    """asyncpg Record viewed through the aiosqlite.Row interface."""

    __slots__ = ("_record",)

    def __init__(self, record):
        self._record = record

    def __getitem__(self, key):
        return _as_text(self._record[key])

    def __contains__(self, key):
        return key in self._record.keys()

    def __len__(self):
        return len(self._record)

    def keys(self):
        return list(self._record.keys())

    def get(self, key, default=None):
        return self[key] if key in self else default


# "?" outside single-quoted literals
_QMARK = re.compile(r"'[^']*'|(\?)")


def _numbered_params(sql: str) -> str:
    """Rewrite "?" parameters as asyncpg's $1, $2, ..."""
    n = 0

    def _sub(match):
        nonlocal n
        if match.group(1) is None:
            return match.group(0)
        n += 1
        return f"${n}"

    return _QMARK.sub(_sub, sql)


class PgCursor:
    """Materialised result with the fetch methods services call."""

    def __init__(self, rows=(), lastrowid=None, rowcount=-1):
        self._rows = [PgRow(r) for r in rows]
        self.lastrowid = lastrowid
        self.rowcount = rowcount

    @classmethod
    def from_status(cls, status: str) -> "PgCursor":
        # Command tags look like "UPDATE 3" or "DELETE 0"
        tail = status.rsplit(" ", 1)[-1] if status else ""
        return cls(rowcount=int(tail) if tail.isdigit() else -1)

    async def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    async def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class PgConnection:
    """Pooled asyncpg connection exposing execute/commit like aiosqlite."""

    def __init__(self, conn):
        self._conn = conn

    async def execute(self, sql: str, params=None):
        query = _numbered_params(sql)
        args = tuple(params or ())
        head = query.lstrip().upper()

        if head.startswith("INSERT"):
            # lastrowid comes from RETURNING id; a DO NOTHING conflict returns no row
            if "RETURNING" not in head:
                query = query.rstrip().rstrip(";") + " RETURNING id"
            row = await self._conn.fetchrow(query, *args)
            if row is None:
                return PgCursor(rowcount=0)
            return PgCursor([row], lastrowid=row["id"], rowcount=1)

        if head.startswith("SELECT") or "RETURNING" in head:
            rows = await self._conn.fetch(query, *args)
            return PgCursor(rows, rowcount=len(rows))

        return PgCursor.from_status(await self._conn.execute(query, *args))

    def transaction(self):
        return self._conn.transaction()

    async def commit(self):
        # asyncpg autocommits outside transaction()
        return None

    async def rollback(self):
        return None

    async def close(self):
        # Released back to the pool by get_db()
        return None


@asynccontextmanager
async def transaction(db):
    """Commit the block's statements together, or roll all of them back."""
    if isinstance(db, PgConnection):
        async with db.transaction():
            yield db
        return

    try:
        yield db
    except BaseException:
        await db.rollback()
        raise
    await db.commit()


# ── Lifecycle ─────────────────────────────────────────────────────────

async def get_db() -> AsyncGenerator:
    """FastAPI dependency: one connection per request."""
    if _is_postgres():
        pool = await _postgres_pool()
        async with pool.acquire() as conn:
            yield PgConnection(conn)
        return

    db = await connect_sqlite()
    try:
        yield db
    finally:
        await db.close()


def _alembic_upgrade() -> None:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.attributes["skip_logging_config"] = True
    url = settings.database_url if _is_postgres() else f"sqlite:///{settings.database_path}"
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")


async def init_db():
    """Startup hook: bring the schema to the latest migration."""
    if _is_postgres():
        logger.info("Database: PostgreSQL at %s", settings.database_url.split("@")[-1])
    else:
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info("Database: SQLite file %s", settings.database_path)
    _alembic_upgrade()


async def close_db():
    """Shutdown hook: close the asyncpg pool if one was opened."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
