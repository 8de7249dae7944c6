"""SQL statement construction for every catalog operation.

Identifiers are always backtick-quoted. Values travel as separate parameters.
Column types, default literals, alter definitions, charsets and collations are
caller-supplied SQL fragments inserted verbatim.
"""

from typing import Any, Iterable, List, NamedTuple, Optional, Sequence

from .errors import UnknownOperation, ValidationError


class Statement(NamedTuple):
    sql: str
    params: Sequence[Any] = ()


ALTER_OPERATIONS = ("ADD", "DROP", "MODIFY", "RENAME")

HEALTH_STATUS_VARIABLES = ("Uptime", "Threads_connected", "Questions")


def quote_identifier(name: str) -> str:
    """Wrap an identifier in backticks, doubling any embedded backtick."""
    return "`" + name.replace("`", "``") + "`"


def qualified_name(table: str, database: Optional[str] = None) -> str:
    if database:
        return f"{quote_identifier(database)}.{quote_identifier(table)}"
    return quote_identifier(table)


def column_clause(column: Any) -> str:
    """Render one column definition.

    Modifier order is fixed: NOT NULL, AUTO_INCREMENT, DEFAULT, PRIMARY KEY.
    """
    clause = f"{quote_identifier(column.name)} {column.type}"
    if column.nullable is False:
        clause += " NOT NULL"
    if column.auto_increment:
        clause += " AUTO_INCREMENT"
    if column.default is not None:
        clause += f" DEFAULT {column.default}"
    if column.primary_key:
        clause += " PRIMARY KEY"
    return clause


def show_databases() -> Statement:
    return Statement("SHOW DATABASES")


def show_tables(database: Optional[str] = None) -> Statement:
    if database:
        return Statement(f"SHOW TABLES FROM {quote_identifier(database)}")
    return Statement("SHOW TABLES")


def describe_table(table: str, database: Optional[str] = None) -> Statement:
    return Statement(f"DESCRIBE {qualified_name(table, database)}")


def create_table(table: str, columns: Iterable[Any], database: Optional[str] = None) -> Statement:
    clauses = [column_clause(column) for column in columns]
    if not clauses:
        raise ValidationError("columns: at least one column must be specified")
    return Statement(f"CREATE TABLE {qualified_name(table, database)} ({', '.join(clauses)})")


def alter_table(
    table: str,
    operation: str,
    column: str,
    definition: Optional[str] = None,
    new_name: Optional[str] = None,
    database: Optional[str] = None,
) -> Statement:
    target = f"ALTER TABLE {qualified_name(table, database)}"
    quoted_column = quote_identifier(column)

    if operation == "ADD":
        if not definition:
            raise ValidationError("definition: required for ADD operation")
        return Statement(f"{target} ADD COLUMN {quoted_column} {definition}")
    if operation == "DROP":
        return Statement(f"{target} DROP COLUMN {quoted_column}")
    if operation == "MODIFY":
        if not definition:
            raise ValidationError("definition: required for MODIFY operation")
        return Statement(f"{target} MODIFY COLUMN {quoted_column} {definition}")
    if operation == "RENAME":
        if not new_name:
            raise ValidationError("newName: required for RENAME operation")
        return Statement(f"{target} RENAME COLUMN {quoted_column} TO {quote_identifier(new_name)}")
    raise UnknownOperation(f"Unknown operation: {operation}")


def drop_table(table: str, database: Optional[str] = None) -> Statement:
    return Statement(f"DROP TABLE {qualified_name(table, database)}")


def create_database(database: str, charset: str = "utf8mb4", collation: str = "utf8mb4_unicode_ci") -> Statement:
    return Statement(f"CREATE DATABASE {quote_identifier(database)} CHARACTER SET {charset} COLLATE {collation}")


def drop_database(database: str) -> Statement:
    return Statement(f"DROP DATABASE {quote_identifier(database)}")


def use_database(database: str) -> Statement:
    return Statement(f"USE {quote_identifier(database)}")


def create_index(
    table: str,
    index_name: str,
    columns: Iterable[str],
    unique: bool = False,
    database: Optional[str] = None,
) -> Statement:
    column_list: List[str] = [quote_identifier(column) for column in columns]
    if not column_list:
        raise ValidationError("columns: at least one column must be specified")
    unique_clause = "UNIQUE " if unique else ""
    return Statement(
        f"CREATE {unique_clause}INDEX {quote_identifier(index_name)} "
        f"ON {qualified_name(table, database)} ({', '.join(column_list)})"
    )


def drop_index(table: str, index_name: str, database: Optional[str] = None) -> Statement:
    return Statement(f"DROP INDEX {quote_identifier(index_name)} ON {qualified_name(table, database)}")


def server_version() -> Statement:
    return Statement("SELECT VERSION() AS version")


def server_status() -> Statement:
    names = ", ".join(f"'{name}'" for name in HEALTH_STATUS_VARIABLES)
    return Statement(f"SHOW STATUS WHERE Variable_name IN ({names})")
