"""Open a set of tool servers together and guarantee they are all closed.

Usage:
    with ConnectionPool(definitions) as pool:
        registry = ToolRegistry.build(pool.ready)
        ...
    # every connection is closed exactly once here, on every exit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..errors import ServerConnectionError
from .connection import ConnectionState, ToolServerConnection
from .definition import ServerDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartupFailure:
    """A server that could not be brought up."""

    server: str
    error: str


class ConnectionPool:
    """Owns every ToolServerConnection opened for a process or session.

    Startup failures are fatal to that connection only: the pool proceeds
    with whatever connections became READY and records the rest in
    ``failures`` so callers can report the degraded capability set.
    """

    def __init__(
        self,
        definitions: Iterable[ServerDefinition] = (),
        connection_factory: Callable[[ServerDefinition], ToolServerConnection] = ToolServerConnection,
        on_failure: Optional[Callable[[StartupFailure], None]] = None,
    ):
        self._definitions = tuple(definitions)
        self._factory = connection_factory
        self._on_failure = on_failure
        self._connections: list[ToolServerConnection] = []
        self._failures: list[StartupFailure] = []
        self._closed = False

    @property
    def connections(self) -> tuple[ToolServerConnection, ...]:
        return tuple(self._connections)

    @property
    def ready(self) -> tuple[ToolServerConnection, ...]:
        return tuple(c for c in self._connections if c.state is ConnectionState.READY)

    @property
    def failures(self) -> tuple[StartupFailure, ...]:
        return tuple(self._failures)

    @property
    def degraded(self) -> bool:
        return bool(self._failures)

    def open_all(self) -> tuple[ToolServerConnection, ...]:
        """Initialize every definition in order; return the READY ones."""
        for definition in self._definitions:
            connection = self._factory(definition)
            self._connections.append(connection)
            try:
                connection.initialize()
            except ServerConnectionError as e:
                failure = StartupFailure(server=definition.name, error=str(e))
                self._failures.append(failure)
                logger.warning(f"Tool server {definition.name} unavailable: {e}")
                if self._on_failure:
                    self._on_failure(failure)

        if self._failures:
            logger.warning(
                f"Running with a degraded tool set: {len(self.ready)}/{len(self._connections)} "
                f"servers ready (failed: {', '.join(f.server for f in self._failures)})"
            )
        return self.ready

    def close_all(self) -> None:
        """Close every connection once. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        for connection in reversed(self._connections):
            try:
                connection.close()
            except Exception as e:
                logger.error(f"Error closing {connection.name}: {e}")

    def describe(self) -> list[dict]:
        """Return a summary of connections for display."""
        return [
            {
                "name": c.name,
                "state": c.state.value,
                "server": c.server_info.get("name", ""),
                "version": c.server_info.get("version", ""),
            }
            for c in self._connections
        ]

    def __enter__(self) -> "ConnectionPool":
        try:
            self.open_all()
        except BaseException:
            self.close_all()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close_all()
