"""A single subprocess-backed tool server connection.

Lifecycle::

    UNINITIALIZED -> INITIALIZING -> READY -> CLOSED
                          |
                          +-> FAILED -> CLOSED

A connection owns its subprocess exclusively. Only one request is ever in
flight on the channel; concurrent callers queue on a lock.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

from .. import __version__
from ..errors import (
    NotReadyError,
    ProtocolError,
    ServerConnectionError,
    ToolInvocationError,
    ToolTimeoutError,
    TributaryError,
)
from ..tools.schema import ToolDescriptor, ToolResult
from .definition import ServerDefinition
from .transport import JsonRpcRequest, StdioTransport

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "tributary", "version": __version__}


class ConnectionState(str, Enum):
    """Channel state of a ToolServerConnection."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


TransportFactory = Callable[..., StdioTransport]


class ToolServerConnection:
    """Launch, handshake, list tools, invoke tools, and shut down one server."""

    def __init__(
        self,
        definition: ServerDefinition,
        transport_factory: TransportFactory = StdioTransport,
    ):
        self.definition = definition
        self._transport_factory = transport_factory
        self._transport: Optional[StdioTransport] = None
        self._state = ConnectionState.UNINITIALIZED
        self._server_info: dict[str, Any] = {}
        self._request_lock = threading.Lock()
        self._state_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"ToolServerConnection({self.name!r}, state={self._state.value})"

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ConnectionState.READY

    @property
    def timeout(self) -> float:
        return self.definition.timeout

    @property
    def server_info(self) -> dict[str, Any]:
        """``serverInfo`` reported by the handshake (empty before READY)."""
        return dict(self._server_info)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> dict[str, Any]:
        """Launch the server and perform the MCP handshake.

        Returns:
            The ``initialize`` result from the server.

        Raises:
            ServerConnectionError: the environment is incomplete, the process
                cannot start, the handshake fails or times out. The
                connection is left FAILED with its subprocess released.
        """
        with self._state_lock:
            if self._state is not ConnectionState.UNINITIALIZED:
                raise ServerConnectionError(
                    f"Cannot initialize a connection in state {self._state.value}",
                    origin=self.name,
                )
            self._state = ConnectionState.INITIALIZING

        try:
            env = self.definition.resolve_env()
            self._transport = self._transport_factory(
                self.definition.argv, env=env, cwd=self.definition.cwd,
            )
            self._transport.start()

            request = JsonRpcRequest(
                method="initialize",
                params={
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": CLIENT_INFO,
                },
            )
            response = self._transport.send(request, timeout=self.timeout)
            if response.is_error:
                raise ServerConnectionError(f"Handshake rejected: {response.error_message}")
            if not isinstance(response.result, dict):
                raise ProtocolError(f"Malformed initialize result: {response.result!r}")

            self._transport.notify(JsonRpcRequest(method="notifications/initialized"))
        except ToolTimeoutError as e:
            self._fail()
            raise ServerConnectionError(
                f"Handshake did not complete within {self.timeout}s", origin=self.name,
            ) from e
        except TributaryError as e:
            self._fail()
            if isinstance(e, ServerConnectionError):
                e.origin = e.origin or self.name
                raise
            raise ServerConnectionError(f"Initialization failed: {e}", origin=self.name) from e
        except BaseException:
            self._fail()
            raise

        result = response.result
        self._server_info = dict(result.get("serverInfo") or {})
        with self._state_lock:
            if self._state is not ConnectionState.INITIALIZING:
                # Closed from another thread mid-handshake.
                raise ServerConnectionError("Connection closed during handshake", origin=self.name)
            self._state = ConnectionState.READY

        logger.info(f"MCP {self.name} client initialized: {self._server_info or result}")
        return result

    def close(self) -> bool:
        """Release the subprocess. Idempotent.

        Returns:
            True if this call closed the connection, False if it was
            already closed.
        """
        with self._state_lock:
            if self._state is ConnectionState.CLOSED:
                return False
            self._state = ConnectionState.CLOSED
            transport, self._transport = self._transport, None

        if transport is not None:
            transport.stop()
        logger.info(f"Closed tool server {self.name}")
        return True

    def __enter__(self) -> "ToolServerConnection":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fail(self) -> None:
        with self._state_lock:
            if self._state is not ConnectionState.CLOSED:
                self._state = ConnectionState.FAILED
            transport, self._transport = self._transport, None
        if transport is not None:
            transport.stop()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def list_tools(self) -> list[ToolDescriptor]:
        """Return the tools the server currently advertises, in order."""
        descriptors: list[ToolDescriptor] = []
        cursor = None

        while True:
            params = {"cursor": cursor} if cursor else {}
            result = self._request("tools/list", params, self.timeout)
            if not isinstance(result, dict) or not isinstance(result.get("tools"), list):
                raise ProtocolError(f"Malformed tools/list result: {result!r}", origin=self.name)

            for entry in result["tools"]:
                if not isinstance(entry, dict):
                    raise ProtocolError(f"Malformed tool entry: {entry!r}", origin=self.name)
                try:
                    descriptors.append(ToolDescriptor.from_dict(entry))
                except ProtocolError as e:
                    e.origin = self.name
                    raise

            cursor = result.get("nextCursor")
            if not cursor:
                return descriptors

    def invoke(
        self,
        tool_name: str,
        arguments: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ToolResult:
        """Call a tool and block until it answers or ``timeout`` elapses.

        A timed-out call leaves the connection READY; its late reply is
        discarded.

        Raises:
            NotReadyError: the connection is not READY.
            ToolTimeoutError: no answer in time.
            ProtocolError: the reply is malformed.
            ToolInvocationError: the server reported an error.
        """
        result = self._request(
            "tools/call",
            {"name": tool_name, "arguments": arguments or {}},
            self.timeout if timeout is None else timeout,
        )
        if not isinstance(result, dict):
            raise ProtocolError(f"Malformed tools/call result: {result!r}", origin=self.name)

        try:
            tool_result = ToolResult.from_dict(result)
        except ProtocolError as e:
            e.origin = self.name
            raise
        if tool_result.is_error:
            raise ToolInvocationError(
                f"Tool {tool_name} failed: {tool_result.text}", origin=self.name,
            )
        return tool_result

    def _request(self, method: str, params: dict[str, Any], timeout: float) -> Any:
        self._require_ready(method)

        with self._request_lock:
            transport = self._transport
            if transport is None or not self.is_ready:
                raise NotReadyError(f"Cannot call {method}: connection closed", origin=self.name)
            try:
                response = transport.send(JsonRpcRequest(method=method, params=params), timeout=timeout)
            except ServerConnectionError as e:
                logger.error(f"Tool server {self.name} went away: {e}")
                self._fail()
                e.origin = e.origin or self.name
                raise
            except TributaryError as e:
                e.origin = e.origin or self.name
                raise

        if response.is_error:
            raise ToolInvocationError(
                f"{method} failed: {response.error_message}", origin=self.name,
            )
        return response.result

    def _require_ready(self, operation: str) -> None:
        if not self.is_ready:
            raise NotReadyError(
                f"Cannot call {operation}: connection is {self._state.value}",
                origin=self.name,
            )
