"""Exception hierarchy for the MySQL MCP server.

Every error raised inside the dispatch path derives from MySQLServerError and is
turned into a failure result by the dispatcher, never propagated to the client.
"""

from typing import Optional


class MySQLServerError(Exception):
    """Base exception for all server errors."""
    pass


class ConfigurationError(MySQLServerError):
    """Invalid environment configuration (bad integer, out-of-range limit)."""
    pass


class ValidationError(MySQLServerError):
    """Missing or malformed operation argument."""
    pass


class UnknownOperation(MySQLServerError):
    """Unrecognized operation name or alter-table operation tag."""
    pass


class PermissionDenied(MySQLServerError):
    """Mutating statement blocked by the permission policy."""

    def __init__(self, keyword: str, toggle: str):
        self.keyword = keyword
        self.toggle = toggle
        super().__init__(f"{keyword} operations are disabled. Set {toggle}=true to enable.")


class ReadOnlyViolation(MySQLServerError):
    """Forbidden keyword submitted through the read-only query path."""

    def __init__(self, keyword: str):
        self.keyword = keyword
        super().__init__(
            f"{keyword} operations are not allowed in query tool. Use the execute tool "
            "for data modifications or appropriate DDL tools for schema changes."
        )


class DatabaseConnectionError(MySQLServerError):
    """Pool construction, checkout or liveness check failed."""
    pass


class BackingStoreError(MySQLServerError):
    """MySQL rejected a statement during execution."""

    def __init__(self, message: str, errno: Optional[int] = None):
        self.errno = errno
        super().__init__(message)
