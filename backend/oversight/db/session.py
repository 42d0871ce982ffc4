# backend/oversight/db/session.py
from __future__ import annotations

"""
Database engine/session helpers and the declarative Base.

This module depends on:
- oversight.config.settings.get_settings for the DATABASE_URL
It is imported by:
- oversight.models (for Base)
- oversight.services.jobs.store (SqlJobStore)
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from oversight.config import get_settings

# Seconds a SQLite connection waits for another writer's lock
SQLITE_BUSY_TIMEOUT_SECONDS = 30

# Base class for all ORM models
Base = declarative_base()


def build_engine(database_url: str | None = None) -> Engine:
    """
    Create an engine for the configured database.

    SQLite needs ``check_same_thread=False`` because scans run on worker
    threads while the API reads from the request thread. SQLite allows one
    writer at a time, so concurrent scan updates wait up to
    SQLITE_BUSY_TIMEOUT_SECONDS for the lock instead of failing with
    "database is locked". Transactions start with BEGIN IMMEDIATE so a
    read-then-write update takes the write lock up front; a deferred
    transaction would fail immediately when two writers try to upgrade.
    """
    url = database_url or get_settings().database_url
    connect_args: dict = {}
    if url.startswith("sqlite"):
        connect_args = {
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
        }
    engine = create_engine(url, future=True, connect_args=connect_args)
    if url.startswith("sqlite"):
        _begin_immediate(engine)
    return engine


def _begin_immediate(engine: Engine) -> None:
    # pysqlite issues its own deferred BEGIN unless told not to
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``; tables are created on first use."""
    Base.metadata.create_all(bind=engine)
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
        expire_on_commit=False,
    )
