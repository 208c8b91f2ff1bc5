"""JSON-RPC over stdin/stdout pipes to a tool-server subprocess.

One line = one message. A daemon reader thread drains the child's stdout
into a queue so that reads can honour a deadline; responses are matched
to requests by id, and replies to abandoned (timed-out) requests are
dropped when they eventually arrive.
"""

from __future__ import annotations

import json
import logging
import queue
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import ProtocolError, ServerConnectionError, ToolTimeoutError

logger = logging.getLogger(__name__)

_EOF = object()


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request. ``id=None`` makes it a notification."""
    method: str
    params: dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None

    def to_json(self) -> str:
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": self.method}
        if self.params:
            message["params"] = self.params
        if self.id is not None:
            message["id"] = self.id
        return json.dumps(message)


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""
    id: Any
    result: Any = None
    error: Optional[dict] = None

    @classmethod
    def from_message(cls, message: Any) -> "JsonRpcResponse":
        if not isinstance(message, dict):
            raise ProtocolError(f"Expected a JSON object, got {type(message).__name__}")
        if "result" not in message and "error" not in message:
            raise ProtocolError(f"Response has neither result nor error: {message}")
        error = message.get("error")
        if error is not None and not isinstance(error, dict):
            raise ProtocolError(f"Malformed error payload: {error!r}")
        return cls(id=message.get("id"), result=message.get("result"), error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def error_message(self) -> str:
        if not self.error:
            return ""
        return str(self.error.get("message", self.error))


class StdioTransport:
    """Line-delimited JSON-RPC channel to a child process.

    Not thread-safe: the owning connection serializes access so only one
    request is ever in flight.
    """

    def __init__(
        self,
        command: list[str],
        env: Optional[dict[str, str]] = None,
        cwd: Optional[str] = None,
    ):
        self.command = command
        self.env = env
        self.cwd = cwd
        self._process: Optional[subprocess.Popen] = None
        self._lines: "queue.Queue[Any]" = queue.Queue()
        self._reader: Optional[threading.Thread] = None
        self._stderr_reader: Optional[threading.Thread] = None
        self._stderr_tail: list[str] = []
        self._request_id = 0

    def start(self) -> None:
        """Launch the tool server subprocess."""
        logger.info(f"Starting stdio transport: {' '.join(self.command)}")
        try:
            self._process = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=self.env,
                cwd=self.cwd,
                bufsize=1,  # Line-buffered
            )
        except OSError as e:
            raise ServerConnectionError(f"Cannot launch {self.command[0]}: {e}") from e

        self._reader = threading.Thread(
            target=self._read_stdout, args=(self._process,), name=f"stdio-reader-{self._process.pid}", daemon=True,
        )
        self._reader.start()
        self._stderr_reader = threading.Thread(
            target=self._read_stderr, args=(self._process,), name=f"stdio-stderr-{self._process.pid}", daemon=True,
        )
        self._stderr_reader.start()

    def stop(self, grace: float = 5.0) -> None:
        """Terminate the tool server subprocess."""
        process = self._process
        if process is None:
            return
        self._process = None
        try:
            process.stdin.close()
        except OSError:
            pass
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
        logger.info("Stdio transport stopped")

    def is_alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def notify(self, request: JsonRpcRequest) -> None:
        """Send a notification; no response is expected."""
        self._write(request)

    def send(self, request: JsonRpcRequest, timeout: Optional[float] = None) -> JsonRpcResponse:
        """Send a request and block until its response or the deadline.

        Raises:
            ToolTimeoutError: no matching response within ``timeout`` seconds.
            ProtocolError: the server wrote something that is not JSON-RPC.
            ServerConnectionError: the process exited or the pipe broke.
        """
        if request.id is None:
            request.id = self.next_id()
        self._write(request)

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                raise ToolTimeoutError(
                    f"No response to '{request.method}' within {timeout}s"
                )
            try:
                line = self._lines.get(timeout=remaining)
            except queue.Empty:
                continue
            if line is _EOF:
                self._lines.put(_EOF)
                raise ServerConnectionError(
                    f"Tool server process exited. stderr: {self.stderr_tail()[:500]}"
                )

            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                raise ProtocolError(f"Invalid JSON from tool server: {line[:200]!r}") from e

            if isinstance(message, dict) and "method" in message and "id" not in message:
                logger.debug(f"Ignoring server notification: {message.get('method')}")
                continue
            if isinstance(message, dict) and "method" in message:
                # Server-initiated requests (sampling, roots) are not supported.
                self._write_error(message.get("id"), -32601, "Method not supported by client")
                continue

            response = JsonRpcResponse.from_message(message)
            if response.id != request.id:
                logger.debug(f"Discarding stale response id={response.id} (waiting for {request.id})")
                continue
            return response

    def stderr_tail(self) -> str:
        return "".join(self._stderr_tail)

    def _write(self, request: JsonRpcRequest) -> None:
        if not self.is_alive():
            raise ServerConnectionError("Transport not running. Call start() first.")
        try:
            self._process.stdin.write(request.to_json() + "\n")
            self._process.stdin.flush()
        except (BrokenPipeError, OSError) as e:
            raise ServerConnectionError(f"Tool server pipe closed: {e}") from e

    def _write_error(self, request_id: Any, code: int, message: str) -> None:
        if not self.is_alive():
            return
        line = json.dumps({
            "jsonrpc": "2.0",
            "id": request_id,
            "error": {"code": code, "message": message},
        })
        try:
            self._process.stdin.write(line + "\n")
            self._process.stdin.flush()
        except (BrokenPipeError, OSError):
            pass

    def _read_stdout(self, process: subprocess.Popen) -> None:
        for line in process.stdout:
            line = line.strip()
            if line:
                self._lines.put(line)
        self._lines.put(_EOF)

    def _read_stderr(self, process: subprocess.Popen) -> None:
        for line in process.stderr:
            self._stderr_tail.append(line)
            del self._stderr_tail[:-20]
            logger.debug(f"[stderr {process.pid}] {line.rstrip()}")
