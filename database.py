"""
Database access for the reviews API.

A thin gateway over a pooled SQLAlchemy engine. Statements are plain SQL
with named bind parameters; values are never formatted into the SQL text.

The process shares one lazily created Database (see get_database). Code that
needs the store takes a Database as an argument so tests can hand in their own.
"""

import logging
import os
import threading
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    text,
)
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.pool import QueuePool

logger = logging.getLogger(__name__)

# Native duplicate-key codes
MYSQL_DUP_ENTRY = 1062
SQLITE_UNIQUE_MESSAGE = "UNIQUE constraint failed"

metadata = MetaData()

review_table = Table(
    "review",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("serial_no", Integer, nullable=False, unique=True),
    Column("review", Text, nullable=False),
    Column("status", Enum("PASS", "FAIL", name="review_status"), nullable=False),
    Column("mobile_no", String(10), nullable=False),
    Column("email", String(255), nullable=False),
    Column("createdAt", DateTime, nullable=False, server_default=func.current_timestamp()),
)


class StoreError(Exception):
    """A statement failed in the store or its driver."""


class DuplicateKeyError(StoreError):
    """A write hit a unique constraint."""


class DatabaseConfig(BaseModel):
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "review"
    connection_limit: int = 10
    url: Optional[str] = None

    def sqlalchemy_url(self):
        if self.url:
            return make_url(self.url)
        return URL.create(
            "mysql+pymysql",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


def load_database_config() -> DatabaseConfig:
    return DatabaseConfig(
        host=os.getenv("DB_HOST", "localhost"),
        port=int(os.getenv("DB_PORT", "3306")),
        user=os.getenv("DB_USER", "root"),
        password=os.getenv("DB_PASSWORD", ""),
        database=os.getenv("DB_NAME", "review"),
        connection_limit=int(os.getenv("DB_CONNECTION_LIMIT", "10")),
        url=os.getenv("DATABASE_URL") or None,
    )


def is_duplicate_key_error(exc: DBAPIError) -> bool:
    orig = exc.orig
    args = getattr(orig, "args", ())
    if args and args[0] == MYSQL_DUP_ENTRY:
        return True
    return SQLITE_UNIQUE_MESSAGE in str(orig)


def create_database_engine(config: DatabaseConfig) -> Engine:
    url = config.sqlalchemy_url()
    connect_args: Dict[str, Any] = {}
    if url.get_backend_name() == "sqlite":
        # Pooled connections are handed to whichever worker thread asks
        connect_args["check_same_thread"] = False
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=config.connection_limit,
        max_overflow=0,
        pool_timeout=None,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


class Database:
    """
    Runs parameterized statements through a connection pool.

    Failures come back as StoreError, or DuplicateKeyError when the store
    reports a unique constraint violation.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "Database":
        return cls(create_database_engine(config))

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run a SELECT and return its rows as dicts keyed by column name."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(sql), params or {})
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise self._translate(e) from e

    def execute(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Optional[int]:
        """Run a write in its own transaction.

        Returns the surrogate key of the inserted row, when there is one.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(text(sql), params or {})
                return result.lastrowid
        except SQLAlchemyError as e:
            raise self._translate(e) from e

    def ping(self) -> bool:
        try:
            self.query("SELECT 1")
        except StoreError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    def dispose(self) -> None:
        self.engine.dispose()

    @staticmethod
    def _translate(exc: SQLAlchemyError) -> StoreError:
        if isinstance(exc, IntegrityError) and is_duplicate_key_error(exc):
            return DuplicateKeyError(str(exc.orig))
        return StoreError(str(exc))


def create_schema(db: Database) -> None:
    metadata.create_all(db.engine)


_database: Optional[Database] = None
_database_lock = threading.Lock()


def get_database() -> Database:
    """Return the process-wide Database, creating its pool on first use."""
    global _database
    if _database is None:
        with _database_lock:
            if _database is None:
                config = load_database_config()
                _database = Database.from_config(config)
                logger.info(
                    f"Created database pool for {config.sqlalchemy_url().render_as_string(hide_password=True)} "
                    f"(limit={config.connection_limit})"
                )
    return _database


def close_database() -> None:
    """Dispose of the process-wide pool. The next get_database() builds a new one."""
    global _database
    with _database_lock:
        if _database is not None:
            _database.dispose()
            _database = None
            logger.info("Closed database pool")
