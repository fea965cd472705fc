# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import logging
import os
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .db_models import Base

lib_logger = logging.getLogger("tutor_engine")


def get_database_url(root_dir: Path) -> str:
    configured = os.getenv("DATABASE_URL")
    if configured:
        return configured
    db_dir = root_dir / "data"
    db_dir.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{db_dir / 'ledger.db'}"


def _is_sqlite_url(database_url: str) -> bool:
    driver = make_url(database_url).get_backend_name()
    return driver == "sqlite"


def _get_sqlite_busy_timeout_ms() -> int:
    raw = os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")
    try:
        timeout = int(raw)
    except ValueError:
        timeout = 5000
    return max(1000, timeout)


def _configure_sqlite_engine(engine: AsyncEngine) -> None:
    busy_timeout_ms = _get_sqlite_busy_timeout_ms()

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
        cursor.close()


def create_db_engine(database_url: str) -> AsyncEngine:
    connect_args = {}
    if _is_sqlite_url(database_url):
        connect_args["timeout"] = _get_sqlite_busy_timeout_ms() / 1000

    engine = create_async_engine(database_url, future=True, connect_args=connect_args)
    if _is_sqlite_url(database_url) and ":memory:" not in database_url:
        _configure_sqlite_engine(engine)
    return engine


async def init_db_runtime(
    database_url: str,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_db_engine(database_url)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    lib_logger.info("Ledger database ready at %s", make_url(database_url).render_as_string(hide_password=True))
    return engine, session_maker
