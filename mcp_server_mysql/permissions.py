"""Leading-keyword classification of SQL statements.

Statements are classified only by their first keyword after trimming; nothing
past it is parsed. A statement opening with a comment or a CTE is classified
by whatever comes first. Replace `leading_keyword` to upgrade the heuristic.
"""

import re
from typing import Dict, Tuple

from .config import PermissionPolicy
from .errors import PermissionDenied, ReadOnlyViolation

_KEYWORD = re.compile(r"[A-Z]+")

# keyword -> (policy attribute, environment toggle)
MUTATION_TOGGLES: Dict[str, Tuple[str, str]] = {
    "INSERT": ("allow_insert", "MYSQL_ALLOW_INSERT"),
    "UPDATE": ("allow_update", "MYSQL_ALLOW_UPDATE"),
    "DELETE": ("allow_delete", "MYSQL_ALLOW_DELETE"),
}

READ_ONLY_FORBIDDEN = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "RENAME",
    "REPLACE",
    "GRANT",
    "REVOKE",
    "LOCK",
    "UNLOCK",
)


def leading_keyword(sql: str) -> str:
    """Return the upper-cased leading keyword of a statement, or '' if none."""
    match = _KEYWORD.match(sql.strip().upper())
    return match.group(0) if match else ""


def check_mutation_permission(sql: str, policy: PermissionPolicy) -> None:
    """Raise PermissionDenied if the statement's data modification is disabled.

    Schema statements (CREATE, ALTER, DROP, ...) are never gated here.
    """
    keyword = leading_keyword(sql)
    toggle = MUTATION_TOGGLES.get(keyword)
    if toggle is None:
        return
    attribute, env_name = toggle
    if not getattr(policy, attribute):
        raise PermissionDenied(keyword, env_name)


def check_read_only(sql: str) -> None:
    """Raise ReadOnlyViolation if the statement starts with a forbidden keyword."""
    keyword = leading_keyword(sql)
    if keyword in READ_ONLY_FORBIDDEN:
        raise ReadOnlyViolation(keyword)
