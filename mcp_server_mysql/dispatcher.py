"""Operation dispatch.

`Dispatcher.dispatch` maps an operation name and its arguments to SQL, runs it
on the pool manager's current pool and returns exactly one OperationResult.
Nothing raised inside an operation escapes `dispatch`.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from mysql.connector import Error as MySQLError

from . import operations as ops
from . import statements
from .config import PermissionPolicy
from .errors import BackingStoreError, MySQLServerError
from .permissions import check_mutation_permission, check_read_only, leading_keyword
from .pool import PoolManager

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Outcome of one dispatched operation."""
    success: bool
    message: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)
    error_type: Optional[str] = None

    @classmethod
    def ok(cls, message: str, **payload: Any) -> "OperationResult":
        return cls(success=True, message=message, payload=payload)

    @classmethod
    def failure(cls, error: Exception) -> "OperationResult":
        return cls(success=False, message=str(error), error_type=type(error).__name__)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "message": self.message, **self.payload}
        return {"success": False, "error": self.message, "error_type": self.error_type}


def _plain(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def _plain_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [{key: _plain(value) for key, value in row.items()} for row in rows]


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class Dispatcher:
    """Runs catalog operations against an injected PoolManager."""

    def __init__(self, pools: PoolManager, policy: Optional[PermissionPolicy] = None):
        self.pools = pools
        self.policy = policy or PermissionPolicy()
        self._handlers: Dict[str, Callable[[Any], OperationResult]] = {
            "connect": self._connect,
            "query": self._query,
            "execute": self._execute,
            "list_databases": self._list_databases,
            "list_tables": self._list_tables,
            "describe_table": self._describe_table,
            "create_table": self._create_table,
            "alter_table": self._alter_table,
            "drop_table": self._drop_table,
            "create_database": self._create_database,
            "drop_database": self._drop_database,
            "use_database": self._use_database,
            "create_index": self._create_index,
            "drop_index": self._drop_index,
            "health_check": self._health_check,
        }

    def dispatch(self, operation: str, arguments: Optional[Mapping[str, Any]] = None) -> OperationResult:
        """Validate, gate, build and run one operation."""
        try:
            args = ops.parse_arguments(operation, arguments)
            logger.debug(f"Dispatching {operation}")
            return self._handlers[operation](args)
        except MySQLError as e:
            error = BackingStoreError(str(e), errno=getattr(e, "errno", None))
            logger.warning(f"{operation} failed in MySQL: {error}")
            return OperationResult.failure(error)
        except MySQLServerError as e:
            logger.warning(f"{operation} rejected: {e}")
            return OperationResult.failure(e)
        except Exception as e:
            logger.exception(f"Unexpected error while running {operation}")
            return OperationResult.failure(e)

    def _connect(self, args: ops.ConnectArgs) -> OperationResult:
        config = self.pools.reconnect(
            host=args.host,
            port=args.port,
            user=args.user,
            password=args.password,
            database=args.database,
        )
        return OperationResult.ok(
            f"Successfully connected to MySQL server at {config.describe()}",
            host=config.host,
            port=config.port,
            database=config.database,
        )

    def _query(self, args: ops.QueryArgs) -> OperationResult:
        check_read_only(args.sql)
        with self.pools.lease() as pool:
            rows = _plain_rows(pool.query(args.sql, args.params))
        return OperationResult.ok(f"Query returned {len(rows)} row(s)", rows=rows, row_count=len(rows))

    def _execute(self, args: ops.ExecuteArgs) -> OperationResult:
        check_mutation_permission(args.sql, self.policy)
        with self.pools.lease() as pool:
            result = pool.execute(args.sql, args.params)
        # Under the driver's default client flags an UPDATE reports rows changed.
        changed = result.affected_rows if leading_keyword(args.sql) == "UPDATE" else 0
        return OperationResult.ok(
            f"Statement executed, {result.affected_rows} row(s) affected",
            affected_rows=result.affected_rows,
            insert_id=result.insert_id,
            changed_rows=changed,
        )

    def _list_databases(self, args: ops.ListDatabasesArgs) -> OperationResult:
        with self.pools.lease() as pool:
            rows = pool.query(statements.show_databases().sql)
        databases = [_plain(row["Database"]) for row in rows]
        return OperationResult.ok(f"Found {len(databases)} database(s)", databases=databases)

    def _list_tables(self, args: ops.ListTablesArgs) -> OperationResult:
        with self.pools.lease() as pool:
            rows = pool.query(statements.show_tables(args.database).sql)
        tables = [_plain(next(iter(row.values()))) for row in rows]
        return OperationResult.ok(f"Found {len(tables)} table(s)", tables=tables, database=args.database)

    def _describe_table(self, args: ops.DescribeTableArgs) -> OperationResult:
        with self.pools.lease() as pool:
            columns = _plain_rows(pool.query(statements.describe_table(args.table, args.database).sql))
        return OperationResult.ok(
            f"Table {args.table} has {len(columns)} column(s)",
            table=args.table,
            database=args.database,
            columns=columns,
        )

    def _create_table(self, args: ops.CreateTableArgs) -> OperationResult:
        statement = statements.create_table(args.table, args.columns, args.database)
        with self.pools.lease() as pool:
            pool.execute(statement.sql)
        return OperationResult.ok(f"Table {args.table} created successfully", table=args.table, database=args.database)

    def _alter_table(self, args: ops.AlterTableArgs) -> OperationResult:
        statement = statements.alter_table(
            args.table,
            args.operation,
            args.column,
            definition=args.definition,
            new_name=args.new_name,
            database=args.database,
        )
        with self.pools.lease() as pool:
            pool.execute(statement.sql)
        return OperationResult.ok(
            f"Table {args.table} altered successfully ({args.operation} {args.column})",
            table=args.table,
            operation=args.operation,
            column=args.column,
            new_name=args.new_name,
            database=args.database,
        )

    def _drop_table(self, args: ops.DropTableArgs) -> OperationResult:
        statement = statements.drop_table(args.table, args.database)
        with self.pools.lease() as pool:
            pool.execute(statement.sql)
        return OperationResult.ok(f"Table {args.table} dropped successfully", table=args.table, database=args.database)

    def _create_database(self, args: ops.CreateDatabaseArgs) -> OperationResult:
        statement = statements.create_database(args.database, args.charset, args.collation)
        with self.pools.lease() as pool:
            pool.execute(statement.sql)
        return OperationResult.ok(
            f"Database {args.database} created successfully",
            database=args.database,
            charset=args.charset,
            collation=args.collation,
        )

    def _drop_database(self, args: ops.DropDatabaseArgs) -> OperationResult:
        statement = statements.drop_database(args.database)
        with self.pools.lease() as pool:
            pool.execute(statement.sql)
            pool.forget_database(args.database)
        return OperationResult.ok(f"Database {args.database} dropped successfully", database=args.database)

    def _use_database(self, args: ops.UseDatabaseArgs) -> OperationResult:
        with self.pools.lease() as pool:
            pool.use_database(args.database)
        return OperationResult.ok(f"Switched to database {args.database}", database=args.database)

    def _create_index(self, args: ops.CreateIndexArgs) -> OperationResult:
        statement = statements.create_index(args.table, args.index_name, args.columns, args.unique, args.database)
        with self.pools.lease() as pool:
            pool.execute(statement.sql)
        return OperationResult.ok(
            f"Index {args.index_name} created successfully on {args.table}",
            table=args.table,
            index_name=args.index_name,
            columns=list(args.columns),
            unique=args.unique,
            database=args.database,
        )

    def _drop_index(self, args: ops.DropIndexArgs) -> OperationResult:
        statement = statements.drop_index(args.table, args.index_name, args.database)
        with self.pools.lease() as pool:
            pool.execute(statement.sql)
        return OperationResult.ok(
            f"Index {args.index_name} dropped from {args.table}",
            table=args.table,
            index_name=args.index_name,
            database=args.database,
        )

    def _health_check(self, args: ops.HealthCheckArgs) -> OperationResult:
        started = time.perf_counter()
        with self.pools.lease() as pool:
            pool.ping()
            latency_ms = round((time.perf_counter() - started) * 1000)
            version_rows = pool.query(statements.server_version().sql)
            status_rows = pool.query(statements.server_status().sql)

        version = _plain(version_rows[0]["version"]) if version_rows else "unknown"
        status = {row["Variable_name"]: row["Value"] for row in status_rows}
        return OperationResult.ok(
            f"Database connection healthy (ping: {latency_ms}ms, version: {version})",
            healthy=True,
            ping_latency_ms=latency_ms,
            server_version=version,
            uptime=_int_or_none(status.get("Uptime")),
            threads_connected=_int_or_none(status.get("Threads_connected")),
            total_queries=_int_or_none(status.get("Questions")),
        )
