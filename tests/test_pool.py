"""Tests for ConnectionPool startup and shutdown."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tributary.errors import ServerConnectionError
from tributary.servers import ConnectionPool, ServerDefinition
from tributary.servers.connection import ConnectionState

SERVER = Path(__file__).parent / "servers" / "fake_tool_server.py"


def _fake_factory(failing=()):
    """Connection factory producing mocks; names in ``failing`` refuse to start."""
    created = []

    def factory(definition):
        conn = MagicMock()
        conn.name = definition.name
        conn.state = ConnectionState.UNINITIALIZED

        def initialize():
            if definition.name in failing:
                conn.state = ConnectionState.FAILED
                raise ServerConnectionError("no token", origin=definition.name)
            conn.state = ConnectionState.READY

        conn.initialize.side_effect = initialize
        created.append(conn)
        return conn

    return factory, created


def _defs(*names):
    return [ServerDefinition(name=n, command="unused") for n in names]


class TestOpen:

    def test_all_ready(self):
        factory, created = _fake_factory()
        pool = ConnectionPool(_defs("github", "slack"), connection_factory=factory)
        ready = pool.open_all()
        assert [c.name for c in ready] == ["github", "slack"]
        assert pool.degraded is False

    def test_degraded_startup_continues(self):
        factory, created = _fake_factory(failing=("github",))
        reported = []
        pool = ConnectionPool(
            _defs("github", "slack"), connection_factory=factory, on_failure=reported.append,
        )
        ready = pool.open_all()

        assert [c.name for c in ready] == ["slack"]
        assert pool.degraded is True
        assert [f.server for f in pool.failures] == ["github"]
        assert reported[0].server == "github"
        assert "no token" in reported[0].error

    def test_unexpected_error_closes_opened(self):
        factory, created = _fake_factory()

        def exploding(definition):
            if definition.name == "boom":
                raise RuntimeError("factory bug")
            return factory(definition)

        with pytest.raises(RuntimeError):
            with ConnectionPool(_defs("github", "boom"), connection_factory=exploding):
                pass
        created[0].close.assert_called_once()


class TestClose:

    def test_closes_each_once_in_reverse(self):
        factory, created = _fake_factory()
        order = []
        pool = ConnectionPool(_defs("a", "b", "c"), connection_factory=factory)
        pool.open_all()
        for conn in created:
            conn.close.side_effect = lambda name=conn.name: order.append(name)

        pool.close_all()
        pool.close_all()

        assert order == ["c", "b", "a"]
        for conn in created:
            conn.close.assert_called_once()

    def test_failed_connections_closed_too(self):
        factory, created = _fake_factory(failing=("a",))
        with ConnectionPool(_defs("a", "b"), connection_factory=factory):
            pass
        for conn in created:
            conn.close.assert_called_once()

    def test_close_error_does_not_stop_others(self):
        factory, created = _fake_factory()
        pool = ConnectionPool(_defs("a", "b"), connection_factory=factory)
        pool.open_all()
        created[1].close.side_effect = OSError("gone")
        pool.close_all()
        created[0].close.assert_called_once()

    def test_closed_on_exception(self):
        factory, created = _fake_factory()
        with pytest.raises(ValueError):
            with ConnectionPool(_defs("a"), connection_factory=factory):
                raise ValueError("body failed")
        created[0].close.assert_called_once()


class TestLive:

    def test_real_servers_released(self):
        definitions = [
            ServerDefinition(name="maps", command=sys.executable, args=(str(SERVER),)),
            ServerDefinition(name="broken", command="/nonexistent/tool-server"),
        ]
        with ConnectionPool(definitions) as pool:
            assert [c.name for c in pool.ready] == ["maps"]
            assert pool.describe()[0]["server"] == "fake"
            connections = pool.connections

        assert all(c.state is ConnectionState.CLOSED for c in connections)
