"""Shared fixtures: a PoolManager whose pools are mocks."""

from unittest.mock import MagicMock

import pytest

from mcp_server_mysql.config import DatabaseConfig, PermissionPolicy
from mcp_server_mysql.dispatcher import Dispatcher
from mcp_server_mysql.pool import ConnectionPool, ExecuteResult, PoolManager


@pytest.fixture
def defaults():
    return DatabaseConfig(host="db.internal", port=3307, user="app", password="secret", database="shop")


@pytest.fixture
def fake_pool():
    """A ConnectionPool stand-in returning empty results."""
    pool = MagicMock(spec=ConnectionPool)
    pool.query.return_value = []
    pool.execute.return_value = ExecuteResult(affected_rows=0, insert_id=0)
    return pool


@pytest.fixture
def pool_factory(fake_pool):
    return MagicMock(return_value=fake_pool)


@pytest.fixture
def pools(defaults, pool_factory):
    return PoolManager(defaults, pool_factory=pool_factory)


@pytest.fixture
def policy():
    return PermissionPolicy()


@pytest.fixture
def dispatcher(pools, policy):
    return Dispatcher(pools, policy)
