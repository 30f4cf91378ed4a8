"""
Driver-independent database error signatures.

SQLAlchemy wraps DBAPI exceptions; the original driver error is available as
``exc.orig``. asyncpg errors expose their SQLSTATE through ``sqlstate`` /
``pgcode``; SQLite only offers a message, so each check also recognises the
SQLite wording used by the test database.
"""

from typing import Optional

from sqlalchemy.exc import DBAPIError

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
UNDEFINED_TABLE = "42P01"

_CONNECTION_FAILURE_MARKERS = (
    "econnrefused",
    "connection refused",
    "enotfound",
    "name or service not known",
    "nodename nor servname",
    "timeout",
    "timed out",
)


def sqlstate(exc: BaseException) -> Optional[str]:
    """
    Extract the SQLSTATE code carried by a database error.

    Args:
        exc: Exception raised by SQLAlchemy or the driver

    Returns:
        Five character SQLSTATE, or None when the driver does not report one
    """
    orig = getattr(exc, "orig", None) or exc
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code).strip()
    return None


def _message(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    return f"{exc} {orig or ''}".lower()


def is_unique_violation(exc: BaseException) -> bool:
    code = sqlstate(exc)
    if code is not None:
        return code == UNIQUE_VIOLATION
    return "unique constraint failed" in _message(exc)


def is_foreign_key_violation(exc: BaseException) -> bool:
    code = sqlstate(exc)
    if code is not None:
        return code == FOREIGN_KEY_VIOLATION
    return "foreign key constraint failed" in _message(exc)


def is_undefined_table(exc: BaseException) -> bool:
    """
    Whether the error means a referenced table does not exist.

    Used to detect databases that have not received the migration adding
    ``order_item_additions``.
    """
    code = sqlstate(exc)
    if code is not None:
        return code == UNDEFINED_TABLE
    return "no such table" in _message(exc)


def is_connection_failure(exc: BaseException) -> bool:
    """
    Whether the error means the database could not be reached at all.

    Args:
        exc: Any exception surfacing from the persistence layer

    Returns:
        True for refused connections, unresolved hosts and timeouts
    """
    if isinstance(exc, OSError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    message = _message(exc)
    return any(marker in message for marker in _CONNECTION_FAILURE_MARKERS)
