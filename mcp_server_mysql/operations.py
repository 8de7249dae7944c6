"""Argument models for the operation catalog.

Each operation validates its arguments through one pydantic model before the
dispatcher touches the database. Caller-facing names follow the catalog
(`indexName`, `newName`, `primaryKey`, `autoIncrement`).
"""

from typing import Annotated, Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import UnknownOperation, ValidationError

NonEmptyStr = Annotated[str, Field(min_length=1)]
Identifier = NonEmptyStr
# Charset and collation names are spliced into CREATE DATABASE unquoted.
CharsetName = Annotated[str, Field(pattern=r"^[A-Za-z0-9_]+$")]


class OperationArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ConnectArgs(OperationArgs):
    host: Optional[str] = Field(default=None, description="Database host")
    port: Optional[int] = Field(default=None, ge=1, le=65535, description="Database port")
    user: Optional[str] = Field(default=None, description="Database user")
    password: Optional[str] = Field(default=None, description="Database password")
    database: Optional[str] = Field(default=None, description="Database name")


class QueryArgs(OperationArgs):
    sql: NonEmptyStr = Field(description="SQL SELECT query to execute")
    params: Optional[List[Any]] = Field(default=None, description="Query parameters for prepared statement")


class ExecuteArgs(OperationArgs):
    sql: NonEmptyStr = Field(description="SQL query to execute")
    params: Optional[List[Any]] = Field(default=None, description="Query parameters for prepared statement")


class ListDatabasesArgs(OperationArgs):
    pass


class ListTablesArgs(OperationArgs):
    database: Optional[Identifier] = None


class DescribeTableArgs(OperationArgs):
    table: Identifier
    database: Optional[Identifier] = None


class ColumnDefinition(OperationArgs):
    """One column of a CREATE TABLE statement."""
    name: Identifier = Field(description="Column name")
    type: Identifier = Field(description="Column type (e.g., VARCHAR(255), INT, TEXT)")
    nullable: bool = Field(default=True, description="Whether column can be null")
    primary_key: bool = Field(default=False, alias="primaryKey", description="Whether this is the primary key")
    auto_increment: bool = Field(default=False, alias="autoIncrement", description="Whether to auto increment")
    default: Optional[str] = Field(default=None, description="Default value (raw SQL literal)")


class CreateTableArgs(OperationArgs):
    table: Identifier
    columns: List[ColumnDefinition] = Field(min_length=1)
    database: Optional[Identifier] = None


class AlterTableArgs(OperationArgs):
    table: Identifier
    # Checked by the statement builder so an unknown tag is an UnknownOperation.
    operation: str
    column: Identifier
    definition: Optional[str] = None
    new_name: Optional[Identifier] = Field(default=None, alias="newName")
    database: Optional[Identifier] = None


class DropTableArgs(OperationArgs):
    table: Identifier
    database: Optional[Identifier] = None


class CreateDatabaseArgs(OperationArgs):
    database: Identifier
    charset: CharsetName = "utf8mb4"
    collation: CharsetName = "utf8mb4_unicode_ci"


class DropDatabaseArgs(OperationArgs):
    database: Identifier


class UseDatabaseArgs(OperationArgs):
    database: Identifier


class CreateIndexArgs(OperationArgs):
    table: Identifier
    index_name: Identifier = Field(alias="indexName")
    columns: List[Identifier] = Field(min_length=1)
    unique: bool = False
    database: Optional[Identifier] = None


class DropIndexArgs(OperationArgs):
    table: Identifier
    index_name: Identifier = Field(alias="indexName")
    database: Optional[Identifier] = None


class HealthCheckArgs(OperationArgs):
    pass


OPERATIONS: Dict[str, Type[OperationArgs]] = {
    "connect": ConnectArgs,
    "query": QueryArgs,
    "execute": ExecuteArgs,
    "list_databases": ListDatabasesArgs,
    "list_tables": ListTablesArgs,
    "describe_table": DescribeTableArgs,
    "create_table": CreateTableArgs,
    "alter_table": AlterTableArgs,
    "drop_table": DropTableArgs,
    "create_database": CreateDatabaseArgs,
    "drop_database": DropDatabaseArgs,
    "use_database": UseDatabaseArgs,
    "create_index": CreateIndexArgs,
    "drop_index": DropIndexArgs,
    "health_check": HealthCheckArgs,
}


def _format_errors(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "arguments"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_arguments(operation: str, arguments: Optional[Mapping[str, Any]] = None) -> OperationArgs:
    """Validate an argument bundle against the operation's model."""
    model = OPERATIONS.get(operation)
    if model is None:
        raise UnknownOperation(f"Unknown operation: {operation}")
    try:
        return model.model_validate(dict(arguments or {}))
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid arguments for {operation}: {_format_errors(e)}") from None
