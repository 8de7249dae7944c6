"""Connection and permission settings read from the environment."""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigurationError

# mysql.connector.pooling refuses pools larger than this
MAX_CONNECTION_LIMIT = 32


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: Optional[str] = None
    connection_limit: int = 10
    queue_limit: int = 0
    wait_for_connections: bool = True

    def __post_init__(self):
        if not 1 <= self.connection_limit <= MAX_CONNECTION_LIMIT:
            raise ConfigurationError(
                f"Connection limit must be between 1 and {MAX_CONNECTION_LIMIT}, "
                f"got {self.connection_limit}"
            )
        if self.queue_limit < 0:
            raise ConfigurationError(f"Queue limit must not be negative, got {self.queue_limit}")

    def merged(self, **overrides: Any) -> "DatabaseConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

    def connect_args(self) -> Dict[str, Any]:
        """Keyword arguments for mysql.connector."""
        args: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "autocommit": True,
        }
        if self.database:
            args["database"] = self.database
        return args

    def describe(self) -> str:
        target = f"{self.host}:{self.port}"
        return f"{target} (database: {self.database})" if self.database else target


@dataclass(frozen=True)
class PermissionPolicy:
    """Which data-modification statements the execute tool may run."""
    allow_insert: bool = True
    allow_update: bool = True
    allow_delete: bool = True


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    # Only the literal "false" turns a toggle off.
    return env.get(name) != "false"


def load_database_config(env: Optional[Mapping[str, str]] = None) -> DatabaseConfig:
    """Build the default connection configuration from MYSQL_* variables."""
    env = os.environ if env is None else env
    return DatabaseConfig(
        host=env.get("MYSQL_HOST") or "localhost",
        port=_env_int(env, "MYSQL_PORT", 3306),
        user=env.get("MYSQL_USER") or "root",
        password=env.get("MYSQL_PASSWORD", ""),
        database=env.get("MYSQL_DATABASE") or None,
        connection_limit=_env_int(env, "MYSQL_CONNECTION_LIMIT", 10),
        queue_limit=_env_int(env, "MYSQL_QUEUE_LIMIT", 0),
        wait_for_connections=_env_flag(env, "MYSQL_WAIT_FOR_CONNECTIONS"),
    )


def load_permission_policy(env: Optional[Mapping[str, str]] = None) -> PermissionPolicy:
    env = os.environ if env is None else env
    return PermissionPolicy(
        allow_insert=_env_flag(env, "MYSQL_ALLOW_INSERT"),
        allow_update=_env_flag(env, "MYSQL_ALLOW_UPDATE"),
        allow_delete=_env_flag(env, "MYSQL_ALLOW_DELETE"),
    )
