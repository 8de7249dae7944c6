"""Tests for ConnectionPool and PoolManager."""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest
from mysql.connector import Error as MySQLError

from mcp_server_mysql.config import DatabaseConfig
from mcp_server_mysql.errors import DatabaseConnectionError
from mcp_server_mysql.pool import ConnectionPool, ExecuteResult, PoolManager


@pytest.fixture
def driver_pool():
    """Patch mysql.connector's pool class; yields (class mock, instance, connection, cursor)."""
    cursor = MagicMock()
    cursor.description = None
    cursor.rowcount = 0
    cursor.lastrowid = None
    cnx = MagicMock()
    cnx.cursor.return_value = cursor
    instance = MagicMock()
    instance.get_connection.return_value = cnx
    instance._remove_connections.return_value = 3
    with patch("mcp_server_mysql.pool.pooling.MySQLConnectionPool", return_value=instance) as cls:
        yield cls, instance, cnx, cursor


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestConnectionPool:

    def test_builds_driver_pool_from_config(self, driver_pool):
        cls, _, _, _ = driver_pool
        config = DatabaseConfig(host="h", port=3310, user="u", password="p", connection_limit=4)

        pool = ConnectionPool(config)

        kwargs = cls.call_args.kwargs
        assert kwargs["pool_size"] == 4
        assert kwargs["pool_name"] == pool.name
        assert kwargs["host"] == "h"
        assert kwargs["port"] == 3310
        assert kwargs["autocommit"] is True
        assert "database" not in kwargs

    def test_construction_failure_is_connection_error(self, driver_pool):
        cls, _, _, _ = driver_pool
        cls.side_effect = MySQLError("Can't connect to MySQL server")

        with pytest.raises(DatabaseConnectionError, match="Can't connect"):
            ConnectionPool(DatabaseConfig())

    def test_query_returns_rows(self, driver_pool):
        _, _, cnx, cursor = driver_pool
        cursor.description = [("id",)]
        cursor.fetchall.return_value = [{"id": 1}]

        rows = ConnectionPool(DatabaseConfig()).query("SELECT id FROM t WHERE id = %s", [1])

        assert rows == [{"id": 1}]
        cnx.cursor.assert_called_with(dictionary=True)
        cursor.execute.assert_called_once_with("SELECT id FROM t WHERE id = %s", [1])
        cursor.close.assert_called_once()
        cnx.close.assert_called_once()

    def test_query_without_params_passes_none(self, driver_pool):
        _, _, _, cursor = driver_pool

        assert ConnectionPool(DatabaseConfig()).query("SHOW TABLES", []) == []

        cursor.execute.assert_called_once_with("SHOW TABLES", None)

    def test_execute_reports_counts(self, driver_pool):
        _, _, _, cursor = driver_pool
        cursor.rowcount = 2
        cursor.lastrowid = 17

        result = ConnectionPool(DatabaseConfig()).execute("INSERT INTO t VALUES (%s), (%s)", [1, 2])

        assert result == ExecuteResult(affected_rows=2, insert_id=17)

    def test_execute_drains_result_set(self, driver_pool):
        _, _, _, cursor = driver_pool
        cursor.description = [("x",)]
        cursor.rowcount = -1

        result = ConnectionPool(DatabaseConfig()).execute("SELECT 1")

        cursor.fetchall.assert_called_once()
        assert result.affected_rows == 0

    def test_connection_returned_on_error(self, driver_pool):
        _, _, cnx, cursor = driver_pool
        cursor.execute.side_effect = MySQLError("syntax error")
        pool = ConnectionPool(DatabaseConfig(connection_limit=1, wait_for_connections=False))

        with pytest.raises(MySQLError):
            pool.query("SELEC 1")

        cnx.close.assert_called_once()
        # The slot was released, so another checkout succeeds.
        with pool.connection():
            pass

    def test_use_database_applies_to_later_checkouts(self, driver_pool):
        _, _, _, cursor = driver_pool
        pool = ConnectionPool(DatabaseConfig())

        pool.use_database("analytics")
        cursor.execute.reset_mock()
        pool.query("SHOW TABLES")

        executed = [call.args[0] for call in cursor.execute.call_args_list]
        assert executed == ["USE `analytics`", "SHOW TABLES"]
        assert pool.database == "analytics"

    def test_configured_database_selected_on_checkout(self, driver_pool):
        _, _, _, cursor = driver_pool
        pool = ConnectionPool(DatabaseConfig(database="shop"))

        pool.query("SHOW TABLES")

        executed = [call.args[0] for call in cursor.execute.call_args_list]
        assert executed == ["USE `shop`", "SHOW TABLES"]

    def test_switching_back_to_configured_database(self, driver_pool):
        _, _, _, cursor = driver_pool
        pool = ConnectionPool(DatabaseConfig(database="shop"))

        pool.use_database("analytics")
        pool.query("SELECT 1")
        pool.use_database("shop")
        cursor.execute.reset_mock()
        pool.query("SHOW TABLES")

        executed = [call.args[0] for call in cursor.execute.call_args_list]
        assert executed == ["USE `shop`", "SHOW TABLES"]
        assert pool.database == "shop"

    def test_use_database_skips_stale_selection(self, driver_pool):
        _, _, _, cursor = driver_pool
        pool = ConnectionPool(DatabaseConfig(database="shop"))
        pool.use_database("tmp")
        cursor.execute.reset_mock()

        pool.use_database("shop")

        cursor.execute.assert_called_once_with("USE `shop`")

    def test_forget_dropped_database_falls_back_to_configured(self, driver_pool):
        _, _, _, cursor = driver_pool
        pool = ConnectionPool(DatabaseConfig(database="shop"))
        pool.use_database("tmp")

        pool.forget_database("tmp")
        cursor.execute.reset_mock()
        pool.query("SHOW TABLES")

        assert pool.database == "shop"
        executed = [call.args[0] for call in cursor.execute.call_args_list]
        assert executed == ["USE `shop`", "SHOW TABLES"]

    def test_forget_configured_database(self, driver_pool):
        _, _, _, cursor = driver_pool
        pool = ConnectionPool(DatabaseConfig(database="shop"))

        pool.forget_database("shop")
        pool.query("SHOW DATABASES")

        assert pool.database is None
        cursor.execute.assert_called_once_with("SHOW DATABASES", None)

    def test_forget_other_database_keeps_current(self, driver_pool):
        pool = ConnectionPool(DatabaseConfig(database="shop"))
        pool.use_database("analytics")

        pool.forget_database("tmp")

        assert pool.database == "analytics"

    def test_ping(self, driver_pool):
        _, _, cnx, _ = driver_pool

        ConnectionPool(DatabaseConfig()).ping()

        cnx.ping.assert_called_once_with(reconnect=False)

    def test_close_removes_connections_once(self, driver_pool):
        _, instance, _, _ = driver_pool
        pool = ConnectionPool(DatabaseConfig())

        pool.close()
        pool.close()

        instance._remove_connections.assert_called_once()
        assert pool.closed
        with pytest.raises(DatabaseConnectionError, match="closed"):
            pool.query("SELECT 1")

    def test_exhausted_without_waiting(self, driver_pool):
        pool = ConnectionPool(DatabaseConfig(connection_limit=1, wait_for_connections=False))

        with pool.connection():
            with pytest.raises(DatabaseConnectionError, match="No connections available"):
                with pool.connection():
                    pass

    def test_queue_limit(self, driver_pool):
        pool = ConnectionPool(DatabaseConfig(connection_limit=1, queue_limit=1))
        waiter_done = threading.Event()

        def waiter():
            with pool.connection():
                waiter_done.set()

        with pool.connection():
            thread = threading.Thread(target=waiter)
            thread.start()
            assert wait_until(lambda: pool._waiting == 1)

            with pytest.raises(DatabaseConnectionError, match="Queue limit reached"):
                with pool.connection():
                    pass

        thread.join(timeout=2)
        assert waiter_done.is_set()


class TestPoolManager:

    def test_pool_is_lazy(self, pools, pool_factory, defaults, fake_pool):
        assert pools.current is None
        pool_factory.assert_not_called()

        assert pools.get_pool() is fake_pool
        assert pools.get_pool() is fake_pool
        pool_factory.assert_called_once_with(defaults)

    def test_lease_builds_pool(self, pools, fake_pool):
        with pools.lease() as pool:
            assert pool is fake_pool

    def test_reconnect_merges_over_defaults(self, pools, pool_factory, defaults):
        pools.reconnect(host="other.internal", database="staging")
        config = pools.reconnect(database="x")

        assert config.database == "x"
        assert config.host == defaults.host
        assert config.port == defaults.port
        assert config.user == defaults.user
        assert config.password == defaults.password
        assert pool_factory.call_args.args[0] == config

    def test_reconnect_closes_old_pool_first(self, defaults):
        old, new = MagicMock(), MagicMock()
        factory = MagicMock(side_effect=[old, new])
        pools = PoolManager(defaults, pool_factory=factory)
        pools.get_pool()

        pools.reconnect(database="x")

        old.close.assert_called_once()
        new.ping.assert_called_once()
        assert pools.current is new

    def test_failed_ping_leaves_no_pool(self, defaults):
        old, new = MagicMock(), MagicMock()
        new.ping.side_effect = MySQLError("Access denied for user")
        pools = PoolManager(defaults, pool_factory=MagicMock(side_effect=[old, new]))
        pools.get_pool()

        with pytest.raises(DatabaseConnectionError, match="Access denied"):
            pools.reconnect(password="wrong")

        old.close.assert_called_once()
        new.close.assert_called_once()
        assert pools.current is None

    def test_failed_construction_leaves_no_pool(self, defaults):
        factory = MagicMock(side_effect=DatabaseConnectionError("refused"))
        pools = PoolManager(defaults, pool_factory=factory)

        with pytest.raises(DatabaseConnectionError):
            pools.reconnect(host="nowhere")

        assert pools.current is None

    def test_reconnect_waits_for_leases(self, defaults):
        old, new = MagicMock(), MagicMock()
        pools = PoolManager(defaults, pool_factory=MagicMock(side_effect=[old, new]))
        release = threading.Event()
        leased = threading.Event()

        def hold_lease():
            with pools.lease():
                leased.set()
                release.wait(timeout=5)

        holder = threading.Thread(target=hold_lease)
        holder.start()
        assert leased.wait(timeout=2)

        swapper = threading.Thread(target=pools.reconnect, kwargs={"database": "x"})
        swapper.start()
        swapper.join(timeout=0.2)
        assert swapper.is_alive()
        old.close.assert_not_called()

        release.set()
        holder.join(timeout=2)
        swapper.join(timeout=2)
        old.close.assert_called_once()
        assert pools.current is new

    def test_close(self, pools, fake_pool):
        pools.get_pool()

        pools.close()

        fake_pool.close.assert_called_once()
        assert pools.current is None
