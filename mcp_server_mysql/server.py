#!/usr/bin/env python3
"""
MCP MySQL Server

A Model Context Protocol server that provides MySQL database access.
Allows LLMs to query databases, inspect and change schemas, and modify data
through a fixed set of permission-gated tools.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from mcp.server.fastmcp import Context, FastMCP

from . import __version__
from .config import load_database_config, load_permission_policy
from .dispatcher import Dispatcher
from .operations import ColumnDefinition
from .pool import PoolManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def database_lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
    """Manage the connection pool lifecycle."""
    config = load_database_config()
    policy = load_permission_policy()
    pools = PoolManager(config)
    logger.info(
        f"MySQL target {config.describe()}; insert={policy.allow_insert} "
        f"update={policy.allow_update} delete={policy.allow_delete}"
    )
    try:
        yield {"dispatcher": Dispatcher(pools, policy), "pools": pools}
    finally:
        pools.close()


mcp = FastMCP("mcp-server-mysql", lifespan=database_lifespan)


def _run(ctx: Context, operation: str, **arguments: Any) -> Dict[str, Any]:
    dispatcher: Dispatcher = ctx.request_context.lifespan_context["dispatcher"]
    supplied = {name: value for name, value in arguments.items() if value is not None}
    return dispatcher.dispatch(operation, supplied).to_dict()


@mcp.tool()
def connect(
    ctx: Context,
    host: Optional[str] = None,
    port: Optional[int] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    database: Optional[str] = None,
) -> Dict[str, Any]:
    """Connect to a MySQL database. If not called explicitly, will use environment variables for connection.

    Args:
        host: Database host
        port: Database port
        user: Database user
        password: Database password
        database: Database name
    """
    return _run(ctx, "connect", host=host, port=port, user=user, password=password, database=database)


@mcp.tool()
def query(sql: str, ctx: Context, params: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Execute a SELECT query and return results. Use this for reading data.

    Args:
        sql: SQL SELECT query to execute
        params: Query parameters for prepared statement
    """
    return _run(ctx, "query", sql=sql, params=params)


@mcp.tool()
def execute(sql: str, ctx: Context, params: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Execute an INSERT, UPDATE, DELETE or other modifying query. Returns affected rows count.

    Args:
        sql: SQL query to execute
        params: Query parameters for prepared statement
    """
    return _run(ctx, "execute", sql=sql, params=params)


@mcp.tool()
def list_databases(ctx: Context) -> Dict[str, Any]:
    """List all databases on the MySQL server."""
    return _run(ctx, "list_databases")


@mcp.tool()
def list_tables(ctx: Context, database: Optional[str] = None) -> Dict[str, Any]:
    """List all tables in the current or specified database.

    Args:
        database: Database name (optional, uses current if not specified)
    """
    return _run(ctx, "list_tables", database=database)


@mcp.tool()
def describe_table(table: str, ctx: Context, database: Optional[str] = None) -> Dict[str, Any]:
    """Get the structure/schema of a table.

    Args:
        table: Table name
        database: Database name (optional)
    """
    return _run(ctx, "describe_table", table=table, database=database)


@mcp.tool()
def create_table(
    table: str,
    columns: List[ColumnDefinition],
    ctx: Context,
    database: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a new table with specified columns.

    Args:
        table: Table name
        columns: Column definitions (name, type, nullable, primaryKey, autoIncrement, default)
        database: Database name (optional)
    """
    return _run(ctx, "create_table", table=table, columns=columns, database=database)


@mcp.tool()
def alter_table(
    table: str,
    operation: str,
    column: str,
    ctx: Context,
    definition: Optional[str] = None,
    newName: Optional[str] = None,  # noqa: N803
    database: Optional[str] = None,
) -> Dict[str, Any]:
    """Modify an existing table structure.

    Args:
        table: Table name
        operation: Type of alteration (ADD, DROP, MODIFY or RENAME)
        column: Column name
        definition: Column definition for ADD/MODIFY (e.g., 'VARCHAR(255) NOT NULL')
        newName: New name for RENAME operation
        database: Database name (optional)
    """
    return _run(
        ctx,
        "alter_table",
        table=table,
        operation=operation,
        column=column,
        definition=definition,
        newName=newName,
        database=database,
    )


@mcp.tool()
def drop_table(table: str, ctx: Context, database: Optional[str] = None) -> Dict[str, Any]:
    """Drop/delete a table.

    Args:
        table: Table name
        database: Database name (optional)
    """
    return _run(ctx, "drop_table", table=table, database=database)


@mcp.tool()
def create_database(
    database: str,
    ctx: Context,
    charset: Optional[str] = None,
    collation: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a new database.

    Args:
        database: Database name
        charset: Character set (default: utf8mb4)
        collation: Collation (default: utf8mb4_unicode_ci)
    """
    return _run(ctx, "create_database", database=database, charset=charset, collation=collation)


@mcp.tool()
def drop_database(database: str, ctx: Context) -> Dict[str, Any]:
    """Drop/delete a database.

    Args:
        database: Database name
    """
    return _run(ctx, "drop_database", database=database)


@mcp.tool()
def use_database(database: str, ctx: Context) -> Dict[str, Any]:
    """Switch to a different database.

    Args:
        database: Database name
    """
    return _run(ctx, "use_database", database=database)


@mcp.tool()
def create_index(
    table: str,
    indexName: str,  # noqa: N803
    columns: List[str],
    ctx: Context,
    unique: bool = False,
    database: Optional[str] = None,
) -> Dict[str, Any]:
    """Create an index on a table.

    Args:
        table: Table name
        indexName: Index name
        columns: Column names to index
        unique: Whether this is a unique index
        database: Database name (optional)
    """
    return _run(
        ctx,
        "create_index",
        table=table,
        indexName=indexName,
        columns=columns,
        unique=unique,
        database=database,
    )


@mcp.tool()
def drop_index(
    table: str,
    indexName: str,  # noqa: N803
    ctx: Context,
    database: Optional[str] = None,
) -> Dict[str, Any]:
    """Drop an index from a table.

    Args:
        table: Table name
        indexName: Index name
        database: Database name (optional)
    """
    return _run(ctx, "drop_index", table=table, indexName=indexName, database=database)


@mcp.tool()
def health_check(ctx: Context) -> Dict[str, Any]:
    """Check database connection health and get server status."""
    return _run(ctx, "health_check")


USAGE = f"""
MySQL MCP Server {__version__}

Environment Variables:
  MYSQL_HOST                   MySQL host (default: localhost)
  MYSQL_PORT                   MySQL port (default: 3306)
  MYSQL_USER                   MySQL username (default: root)
  MYSQL_PASSWORD               MySQL password (default: empty)
  MYSQL_DATABASE               MySQL database name (default: none)
  MYSQL_CONNECTION_LIMIT       Pool size (default: 10, max 32)
  MYSQL_QUEUE_LIMIT            Max callers waiting for a connection (default: 0, unlimited)
  MYSQL_WAIT_FOR_CONNECTIONS   Wait when the pool is exhausted (default: true)
  MYSQL_ALLOW_INSERT           Allow INSERT through execute (default: true)
  MYSQL_ALLOW_UPDATE           Allow UPDATE through execute (default: true)
  MYSQL_ALLOW_DELETE           Allow DELETE through execute (default: true)

Usage:
  mcp-server-mysql                      # Run with stdio transport
  mcp-server-mysql --transport sse      # Run with SSE transport
"""


def main():
    """Main entry point for the MySQL MCP server."""
    # Logs go to stderr; stdout carries the stdio transport.
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if len(sys.argv) > 1 and sys.argv[1] == "--help":
        print(USAGE)
        return

    transport = "stdio"
    if "--transport" in sys.argv:
        idx = sys.argv.index("--transport")
        if idx + 1 < len(sys.argv):
            transport = sys.argv[idx + 1]

    logger.info(f"MCP MySQL Server running on {transport}")
    mcp.run(transport=transport)


if __name__ == "__main__":
    main()
