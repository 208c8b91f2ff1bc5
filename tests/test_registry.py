"""Tests for ToolRegistry aggregation and dispatch."""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tributary.errors import (
    DuplicateToolError,
    ProtocolError,
    ToolInvocationError,
    ToolTimeoutError,
    UnknownToolError,
)
from tributary.servers import ConnectionPool, ServerDefinition
from tributary.servers.connection import ConnectionState
from tributary.tools.registry import ToolRegistry
from tributary.tools.schema import ToolDescriptor, ToolResult

SERVER = Path(__file__).parent / "servers" / "fake_tool_server.py"


def _connection(name, tools, ready=True):
    conn = MagicMock()
    conn.name = name
    conn.is_ready = ready
    conn.state = ConnectionState.READY if ready else ConnectionState.FAILED
    conn.list_tools.return_value = [ToolDescriptor(name=t, description=f"{t} on {name}") for t in tools]
    conn.invoke.side_effect = lambda tool, args, timeout=None: ToolResult(
        content=({"type": "text", "text": f"{name}:{tool}"},),
    )
    return conn


class TestBuild:
    """Tests for ToolRegistry.build()."""

    def test_union_of_tools(self):
        a = _connection("maps", ["search_places", "directions"])
        b = _connection("slack", ["post_message"])
        registry = ToolRegistry.build([a, b])
        assert registry.names() == ["search_places", "directions", "post_message"]
        assert len(registry) == 3

    def test_last_writer_wins(self):
        a = _connection("A", ["search"])
        b = _connection("B", ["search", "notify"])
        registry = ToolRegistry.build([a, b])

        assert registry.dispatch("search", {}).text == "B:search"
        assert registry.dispatch("notify", {}).text == "B:notify"
        with pytest.raises(UnknownToolError):
            registry.dispatch("email", {})
        a.invoke.assert_not_called()

    def test_duplicate_logged(self, caplog):
        a = _connection("A", ["search"])
        b = _connection("B", ["search"])
        ToolRegistry.build([a, b])
        assert "overrides" in caplog.text

    def test_strict_rejects_duplicates(self):
        a = _connection("A", ["search"])
        b = _connection("B", ["search"])
        with pytest.raises(DuplicateToolError):
            ToolRegistry.build([a, b], strict=True)

    def test_skips_connections_not_ready(self):
        a = _connection("A", ["search"], ready=False)
        b = _connection("B", ["notify"])
        registry = ToolRegistry.build([a, b])
        assert registry.names() == ["notify"]
        a.list_tools.assert_not_called()

    def test_skips_connection_whose_listing_fails(self):
        a = _connection("A", ["search"])
        a.list_tools.side_effect = ProtocolError("garbage", origin="A")
        b = _connection("B", ["notify"])
        registry = ToolRegistry.build([a, b])
        assert "search" not in registry
        assert "notify" in registry

    def test_empty(self):
        registry = ToolRegistry.build([])
        assert len(registry) == 0
        assert registry.list() == []


class TestReadOnly:
    """The built registry never changes."""

    def test_rebuild_does_not_mutate(self):
        a = _connection("A", ["search"])
        first = ToolRegistry.build([a])
        a.list_tools.return_value = [ToolDescriptor(name="other")]
        second = ToolRegistry.build([a])
        assert first.names() == ["search"]
        assert second.names() == ["other"]

    def test_mapping_is_immutable(self):
        registry = ToolRegistry.build([_connection("A", ["search"])])
        with pytest.raises(TypeError):
            registry._tools["x"] = None


class TestDispatch:
    """Tests for routing calls to owning connections."""

    def test_passes_arguments_and_timeout(self):
        a = _connection("A", ["search"])
        registry = ToolRegistry.build([a])
        registry.dispatch("search", {"query": "q"}, timeout=2.5)
        a.invoke.assert_called_once_with("search", {"query": "q"}, timeout=2.5)

    def test_unknown_tool_contacts_nobody(self):
        a = _connection("A", ["search"])
        registry = ToolRegistry.build([a])
        with pytest.raises(UnknownToolError):
            registry.dispatch("missing")
        a.invoke.assert_not_called()

    def test_error_tagged_with_origin(self):
        a = _connection("maps", ["search"])
        a.invoke.side_effect = ToolTimeoutError("too slow")
        registry = ToolRegistry.build([a])
        with pytest.raises(ToolTimeoutError) as excinfo:
            registry.dispatch("search", {})
        assert excinfo.value.origin == "maps"
        assert str(excinfo.value).startswith("[maps]")

    def test_existing_origin_preserved(self):
        a = _connection("maps", ["search"])
        a.invoke.side_effect = ToolInvocationError("bad", origin="upstream")
        registry = ToolRegistry.build([a])
        with pytest.raises(ToolInvocationError) as excinfo:
            registry.dispatch("search", {})
        assert excinfo.value.origin == "upstream"

    def test_owner_of(self):
        a = _connection("A", ["search"])
        registry = ToolRegistry.build([a])
        assert registry.owner_of("search") is a
        with pytest.raises(UnknownToolError):
            registry.owner_of("nope")

    def test_describe(self):
        registry = ToolRegistry.build([_connection("A", ["search"])])
        assert registry.describe() == [
            {"name": "search", "server": "A", "description": "search on A"},
        ]


class TestLiveServers:
    """Aggregation across two real subprocess servers."""

    def test_routes_to_last_server(self):
        definitions = [
            ServerDefinition(
                name=name, command=sys.executable, args=(str(SERVER),),
                env={"FAKE_SERVER_NAME": name, "FAKE_TOOLS": tools},
            )
            for name, tools in (("A", "search"), ("B", "search,notify"))
        ]
        with ConnectionPool(definitions) as pool:
            registry = ToolRegistry.build(pool.ready)
            assert registry.dispatch("search", {"query": "x"}).text == "B results for x"
            assert registry.dispatch("notify", {"channel": "#lunch"}).text == "B sent to #lunch"
            with pytest.raises(UnknownToolError):
                registry.dispatch("email", {})
