"""Connection pool ownership.

`ConnectionPool` wraps a mysql.connector pool bound to one DatabaseConfig.
`PoolManager` owns the single live pool, builds it lazily and swaps it on
reconnect.
"""

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence

from mysql.connector import Error as MySQLError
from mysql.connector import pooling

from . import statements
from .config import DatabaseConfig
from .errors import DatabaseConnectionError

logger = logging.getLogger(__name__)

_pool_ids = itertools.count(1)


class ExecuteResult(NamedTuple):
    affected_rows: int
    insert_id: int


class ConnectionPool:
    """MySQL connection pool bound to one configuration."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        # Database selected through use_database; applied on every checkout.
        self.database = config.database
        self.name = f"mcp_mysql_{next(_pool_ids)}"
        self._slots = threading.BoundedSemaphore(config.connection_limit)
        self._waiting = 0
        self._waiting_lock = threading.Lock()
        self._closed = False
        try:
            self._pool = pooling.MySQLConnectionPool(
                pool_name=self.name,
                pool_size=config.connection_limit,
                **config.connect_args(),
            )
        except MySQLError as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL server at {config.host}:{config.port}: {e}"
            ) from e
        logger.info(f"Created connection pool {self.name} for {config.describe()}")

    @property
    def closed(self) -> bool:
        return self._closed

    def _acquire_slot(self):
        if self._slots.acquire(blocking=False):
            return
        if not self.config.wait_for_connections:
            raise DatabaseConnectionError("No connections available.")
        with self._waiting_lock:
            if self.config.queue_limit and self._waiting >= self.config.queue_limit:
                raise DatabaseConnectionError("Queue limit reached.")
            self._waiting += 1
        try:
            self._slots.acquire()
        finally:
            with self._waiting_lock:
                self._waiting -= 1

    @contextmanager
    def connection(self, apply_database: bool = True) -> Iterator[Any]:
        """Check out a connection, returning it to the pool afterwards.

        Pooled connections keep whatever schema they last selected, so the
        current database is re-selected on every checkout unless
        `apply_database` is false.
        """
        if self._closed:
            raise DatabaseConnectionError(f"Connection pool {self.name} is closed")
        self._acquire_slot()
        try:
            cnx = self._pool.get_connection()
            try:
                if apply_database and self.database:
                    cursor = cnx.cursor()
                    try:
                        cursor.execute(statements.use_database(self.database).sql)
                    finally:
                        cursor.close()
                yield cnx
            finally:
                cnx.close()
        finally:
            self._slots.release()

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a statement and return its rows as dictionaries."""
        with self.connection() as cnx:
            cursor = cnx.cursor(dictionary=True)
            try:
                cursor.execute(sql, params or None)
                if cursor.description:
                    return cursor.fetchall()
                return []
            finally:
                cursor.close()

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecuteResult:
        """Run a statement and return its affected-row count and insert id."""
        with self.connection() as cnx:
            cursor = cnx.cursor()
            try:
                cursor.execute(sql, params or None)
                if cursor.description:
                    # Drain any result set so the connection can be reused.
                    cursor.fetchall()
                return ExecuteResult(
                    affected_rows=max(cursor.rowcount or 0, 0),
                    insert_id=cursor.lastrowid or 0,
                )
            finally:
                cursor.close()

    def use_database(self, database: str):
        """Switch the current database for every connection handed out later."""
        with self.connection(apply_database=False) as cnx:
            cursor = cnx.cursor()
            try:
                cursor.execute(statements.use_database(database).sql)
            finally:
                cursor.close()
        self.database = database

    def forget_database(self, database: str):
        """Stop selecting `database` on checkout once it has been dropped."""
        if self.database != database:
            return
        fallback = self.config.database if self.config.database != database else None
        logger.info(f"Database {database} dropped; pool {self.name} now uses {fallback or 'no database'}")
        self.database = fallback

    def ping(self):
        with self.connection(apply_database=False) as cnx:
            cnx.ping(reconnect=False)

    def close(self):
        if self._closed:
            return
        self._closed = True
        # mysql.connector exposes no public way to close idle pooled connections.
        removed = self._pool._remove_connections()
        logger.info(f"Closed connection pool {self.name} ({removed} connections)")


class PoolManager:
    """Owns the single live ConnectionPool.

    Operations borrow the pool through `lease()`. `reconnect()` waits for
    outstanding leases, then swaps the pool while new leases wait.
    """

    def __init__(
        self,
        defaults: DatabaseConfig,
        pool_factory: Callable[[DatabaseConfig], ConnectionPool] = ConnectionPool,
    ):
        self.defaults = defaults
        self._pool_factory = pool_factory
        self._pool: Optional[ConnectionPool] = None
        self._condition = threading.Condition()
        self._leases = 0
        self._swapping = False

    @property
    def current(self) -> Optional[ConnectionPool]:
        """The live pool, or None if none has been built yet."""
        return self._pool

    def _ensure_pool(self) -> ConnectionPool:
        if self._pool is None:
            self._pool = self._pool_factory(self.defaults)
        return self._pool

    def get_pool(self) -> ConnectionPool:
        """Return the current pool, building it from the defaults if needed."""
        with self._condition:
            while self._swapping:
                self._condition.wait()
            return self._ensure_pool()

    @contextmanager
    def lease(self) -> Iterator[ConnectionPool]:
        with self._condition:
            while self._swapping:
                self._condition.wait()
            pool = self._ensure_pool()
            self._leases += 1
        try:
            yield pool
        finally:
            with self._condition:
                self._leases -= 1
                self._condition.notify_all()

    def reconnect(self, **overrides: Any) -> DatabaseConfig:
        """Replace the pool with one built from the defaults plus overrides.

        The old pool is closed first and is not restored if the new one fails
        its liveness check.
        """
        config = self.defaults.merged(**overrides)
        with self._condition:
            self._swapping = True
            try:
                while self._leases:
                    self._condition.wait()
                old, self._pool = self._pool, None
                if old is not None:
                    old.close()
                pool = self._pool_factory(config)
                try:
                    pool.ping()
                except (MySQLError, DatabaseConnectionError) as e:
                    pool.close()
                    logger.error(f"Liveness check failed for {config.describe()}: {e}")
                    raise DatabaseConnectionError(
                        f"Failed to connect to MySQL server at {config.host}:{config.port}: {e}"
                    ) from e
                self._pool = pool
            finally:
                self._swapping = False
                self._condition.notify_all()
        logger.info(f"Connected to MySQL database: {config.describe()}")
        return config

    def close(self):
        with self._condition:
            while self._leases:
                self._condition.wait()
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.close()
