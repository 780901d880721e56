"""Database backed quota counters (``api_usage`` rows)."""
from __future__ import annotations

import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from roadcast.entities import QuotaRecord

try:  # Optional import for MySQL support
    import pymysql
    from pymysql.cursors import DictCursor
except ImportError:  # pragma: no cover - pymysql is optional
    pymysql = None  # type: ignore
    DictCursor = None  # type: ignore


class DatabaseSession:
    """Minimal DB-API session wrapper with context aware placeholders."""

    def __init__(self, connection, placeholder: str, driver: str):
        self.connection = connection
        self.placeholder = placeholder
        self.driver = driver

    def _prepare_sql(self, sql: str) -> str:
        if self.placeholder == "?":
            return sql
        return sql.replace("?", self.placeholder)

    def execute(self, sql: str, params: tuple = ()):
        cursor = self.connection.cursor()
        cursor.execute(self._prepare_sql(sql), params)
        return cursor

    def fetchone(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        cursor.close()
        return row

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        self.connection.close()


class SessionFactory:
    def __init__(self, url: str, placeholder: str, driver: str):
        self.url = url
        self.placeholder = placeholder
        self.driver = driver

    def __call__(self) -> DatabaseSession:
        connection = create_connection(self.url, self.driver)
        return DatabaseSession(connection, self.placeholder, self.driver)


_engine_lock = threading.Lock()
_session_factory: Optional[SessionFactory] = None


# ---------------------------------------------------------------------------

def _default_database_url() -> str:
    return os.getenv("WEATHER_QUOTA_DATABASE_URL", "sqlite:///./roadcast.db")


def configure_engine(url: Optional[str] = None, **_: Any) -> SessionFactory:
    """Point the quota tables at ``url`` and make sure they exist."""

    global _session_factory
    with _engine_lock:
        database_url = url or _default_database_url()
        driver, placeholder = detect_driver(database_url)
        _session_factory = SessionFactory(database_url, placeholder, driver)
    run_migrations(_session_factory)
    return _session_factory


def detect_driver(url: str) -> tuple[str, str]:
    parsed = urlparse(url)
    if parsed.scheme.startswith("mysql"):
        if pymysql is None:
            raise RuntimeError("PyMySQL is required for MySQL connections")
        return "mysql", "%s"
    if parsed.scheme.startswith("sqlite") or parsed.scheme == "":
        return "sqlite", "?"
    raise ValueError(f"Unsupported database scheme: {parsed.scheme}")


def create_connection(url: str, driver: str):
    parsed = urlparse(url)
    if driver == "sqlite":
        path = unquote(parsed.path)
        if parsed.scheme and path.startswith("/"):
            # sqlite:///relative.db is relative to the cwd, sqlite:////abs.db is absolute.
            path = path[1:]
        path = path or parsed.netloc or ":memory:"
        db_path = path if os.path.isabs(path) or path == ":memory:" else os.path.abspath(path)
        # Writers wait for each other instead of failing with "database is locked".
        connection = sqlite3.connect(db_path, timeout=30, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        return connection

    if driver == "mysql":
        assert pymysql is not None and DictCursor is not None
        params = {
            "host": parsed.hostname or "localhost",
            "user": parsed.username,
            "password": parsed.password,
            "database": parsed.path.lstrip("/") or None,
            "port": parsed.port or 3306,
            "cursorclass": DictCursor,
            "autocommit": False,
        }
        return pymysql.connect(**params)

    raise ValueError(f"Unsupported driver: {driver}")


def get_session_factory() -> SessionFactory:
    if _session_factory is None:
        return configure_engine()
    return _session_factory


@contextmanager
def session_scope(session_factory: Optional[SessionFactory] = None):
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------

def run_migrations(session_factory: Optional[SessionFactory] = None) -> None:
    with session_scope(session_factory) as session:
        session.execute(
            """
            CREATE TABLE IF NOT EXISTS api_usage (
                id VARCHAR(255) PRIMARY KEY,
                usage_date VARCHAR(10) NOT NULL,
                provider VARCHAR(64) NOT NULL,
                endpoint VARCHAR(128) NOT NULL,
                call_count INTEGER NOT NULL DEFAULT 0,
                created_at VARCHAR(40) NOT NULL
            )
            """
        )
        if session.driver == "sqlite":
            session.execute(
                """
                CREATE INDEX IF NOT EXISTS api_usage_date_provider_idx
                ON api_usage (usage_date, provider)
                """
            )


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _scalar(row, column: str) -> int:
    if row is None:
        return 0
    value = row[column] if isinstance(row, dict) else row[0]
    return int(value or 0)


def usage_id(day: date, provider: str, endpoint: str) -> str:
    return f"{provider}:{day.isoformat()}:{endpoint}"


class SqlQuotaStore:
    """Quota counters in ``api_usage``; each call is one upsert increment.

    The increment happens inside the database (``call_count = call_count +
    ?``), so concurrent workers sharing the table never lose updates.
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> SessionFactory:
        return self._session_factory or get_session_factory()

    def increment(self, day: date, provider: str, endpoint: str, amount: int = 1) -> QuotaRecord:
        if amount <= 0:
            raise ValueError("amount must be positive")
        row_id = usage_id(day, provider, endpoint)
        with session_scope(self.session_factory) as session:
            params = (row_id, day.isoformat(), provider, endpoint, amount, utcnow_iso())
            if session.driver == "mysql":
                session.execute(
                    """
                    INSERT INTO api_usage (id, usage_date, provider, endpoint, call_count, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON DUPLICATE KEY UPDATE call_count = call_count + VALUES(call_count)
                    """,
                    params,
                )
            else:
                session.execute(
                    """
                    INSERT INTO api_usage (id, usage_date, provider, endpoint, call_count, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET call_count = call_count + excluded.call_count
                    """,
                    params,
                )
            row = session.fetchone("SELECT call_count AS cnt FROM api_usage WHERE id = ?", (row_id,))
        return QuotaRecord(date=day, provider=provider, endpoint=endpoint, call_count=_scalar(row, "cnt"))

    def used(self, day: date, provider: str) -> int:
        with session_scope(self.session_factory) as session:
            row = session.fetchone(
                "SELECT COALESCE(SUM(call_count), 0) AS cnt FROM api_usage WHERE usage_date = ? AND provider = ?",
                (day.isoformat(), provider),
            )
        return _scalar(row, "cnt")


__all__ = [
    "DatabaseSession",
    "SessionFactory",
    "SqlQuotaStore",
    "configure_engine",
    "get_session_factory",
    "run_migrations",
    "session_scope",
]
