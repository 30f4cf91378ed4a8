"""
Tests for database error classification and connection helpers.
"""

from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, ProgrammingError

from garment_orders.database.connection import (
    check_database_health,
    convert_database_url_to_async,
)
from garment_orders.database.errors import (
    is_connection_failure,
    is_foreign_key_violation,
    is_undefined_table,
    is_unique_violation,
    sqlstate,
)


class FakeDriverError(Exception):
    """Driver exception reporting a SQLSTATE the way asyncpg does."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.sqlstate = code


def _integrity(message: str, code: str | None = None) -> IntegrityError:
    return IntegrityError("INSERT INTO orders ...", {}, FakeDriverError(message, code))


# ============================================================================
# SQLSTATE Extraction
# ============================================================================


class TestSqlstate:
    def test_reads_wrapped_driver_code(self):
        assert sqlstate(_integrity("duplicate key", "23505")) == "23505"

    def test_reads_pgcode(self):
        orig = Exception("boom")
        orig.pgcode = "42P01"

        assert sqlstate(ProgrammingError("SELECT", {}, orig)) == "42P01"

    def test_missing_code(self):
        assert sqlstate(_integrity("UNIQUE constraint failed: orders.code")) is None


class TestConstraintViolations:
    def test_unique_by_code(self):
        assert is_unique_violation(_integrity("duplicate key value", "23505")) is True
        assert is_unique_violation(_integrity("violates foreign key", "23503")) is False

    def test_unique_by_sqlite_message(self):
        assert is_unique_violation(_integrity("UNIQUE constraint failed: orders.code"))

    def test_foreign_key(self):
        assert is_foreign_key_violation(_integrity("violates foreign key", "23503"))
        assert is_foreign_key_violation(_integrity("FOREIGN KEY constraint failed"))
        assert not is_foreign_key_violation(_integrity("duplicate key", "23505"))

    def test_undefined_table(self):
        missing = ProgrammingError(
            "SELECT", {}, FakeDriverError('relation "order_item_additions" does not exist', "42P01")
        )
        sqlite_missing = OperationalError(
            "SELECT", {}, FakeDriverError("no such table: order_item_additions")
        )

        assert is_undefined_table(missing) is True
        assert is_undefined_table(sqlite_missing) is True
        assert is_undefined_table(_integrity("duplicate key", "23505")) is False


class TestConnectionFailure:
    def test_os_error(self):
        assert is_connection_failure(ConnectionRefusedError("refused")) is True

    def test_invalidated_connection(self):
        error = DBAPIError("SELECT 1", {}, Exception("closed"), connection_invalidated=True)

        assert is_connection_failure(error) is True

    @pytest.mark.parametrize(
        "message",
        ["connect ECONNREFUSED 127.0.0.1:5432", "getaddrinfo ENOTFOUND db", "query timed out"],
    )
    def test_markers(self, message):
        assert is_connection_failure(OperationalError("SELECT 1", {}, Exception(message)))

    def test_constraint_violation_is_not_connection_failure(self):
        assert is_connection_failure(_integrity("duplicate key", "23505")) is False


# ============================================================================
# Connection Helpers
# ============================================================================


class TestConvertDatabaseUrl:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgresql://u:p@db/pedidos", "postgresql+asyncpg://u:p@db/pedidos"),
            ("postgresql+asyncpg://u:p@db/pedidos", "postgresql+asyncpg://u:p@db/pedidos"),
            ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ],
    )
    def test_conversion(self, url, expected):
        assert convert_database_url_to_async(url) == expected


class TestDatabaseHealth:
    async def test_healthy(self, engine):
        with patch("garment_orders.database.connection.get_engine", return_value=engine):
            assert await check_database_health(max_retries=1) is True

    async def test_unreachable_after_retries(self):
        broken = Mock()
        broken.connect.side_effect = OperationalError(
            "SELECT 1", {}, Exception("connection refused")
        )

        with patch("garment_orders.database.connection.get_engine", return_value=broken):
            healthy = await check_database_health(max_retries=2, retry_delay=0)

        assert healthy is False
        assert broken.connect.call_count == 2
