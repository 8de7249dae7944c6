"""MySQL operations for LLM clients over the Model Context Protocol."""

__version__ = "1.0.0"

from .config import DatabaseConfig, PermissionPolicy, load_database_config, load_permission_policy
from .dispatcher import Dispatcher, OperationResult
from .pool import ConnectionPool, PoolManager

__all__ = [
    "ConnectionPool",
    "DatabaseConfig",
    "Dispatcher",
    "OperationResult",
    "PermissionPolicy",
    "PoolManager",
    "load_database_config",
    "load_permission_policy",
    "__version__",
]
