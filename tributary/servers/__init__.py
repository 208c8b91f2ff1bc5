"""Subprocess tool servers: stdio JSON-RPC transport, connections and pools."""

from .connection import ConnectionState, ToolServerConnection
from .definition import ServerDefinition, load_servers_from_config
from .pool import ConnectionPool, StartupFailure
from .transport import JsonRpcRequest, JsonRpcResponse, StdioTransport

__all__ = [
    "ConnectionState",
    "ToolServerConnection",
    "ServerDefinition",
    "load_servers_from_config",
    "ConnectionPool",
    "StartupFailure",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "StdioTransport",
]
