"""Lightweight client for daemon communication.

This module provides a thin client that connects to the daemon via Unix socket.
It only uses the standard library socket module so `chitin ask` starts fast.

Usage:
    client = DaemonClient()
    command = client.ask("list files", pwd=os.getcwd())
"""

import os
import socket
import time
from pathlib import Path
from typing import Any, Dict, Optional

from chitin.config import DEFAULT_SOCKET_PATH
from chitin.daemon.protocol import (
    DEFAULT_SESSION_ID,
    deserialize_response,
    serialize_request,
)


class DaemonError(RuntimeError):
    """The daemon answered with an error object."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class DaemonNotRunning(ConnectionError):
    """No daemon is listening on the configured socket."""


def default_session_id() -> str:
    """Session key for this shell: $CHITIN_SESSION_ID, then $USER, then 'default'."""
    return os.environ.get("CHITIN_SESSION_ID") or os.environ.get("USER") or DEFAULT_SESSION_ID


def new_request_id() -> str:
    """Millisecond timestamp, unique enough for one exchange per connection."""
    return str(int(time.time() * 1000))


class DaemonClient:
    """
    Lightweight client for daemon communication.

    Designed for minimal overhead:
    - Uses stdlib socket (no external deps)
    - One connection per request, half-closed after writing
    """

    def __init__(
        self,
        socket_path: Optional[Path] = None,
        timeout: float = 60.0,
    ):
        """
        Initialize client.

        Args:
            socket_path: Path to Unix socket
            timeout: Socket timeout in seconds (covers the backend call)
        """
        self.socket_path = Path(socket_path or DEFAULT_SOCKET_PATH)
        self.timeout = timeout

    def ask(
        self,
        prompt: str,
        pwd: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> str:
        """
        Ask the daemon for a command.

        Returns:
            The generated shell command

        Raises:
            DaemonNotRunning: If the socket is missing or refuses connections
            DaemonError: If the daemon answered with an error
        """
        response = self.send(
            serialize_request(
                prompt=prompt,
                pwd=pwd or os.getcwd(),
                session_id=session_id or default_session_id(),
                request_id=new_request_id(),
            )
        )

        error = response.get("error")
        if error:
            raise DaemonError(error.get("code", 0), error.get("message", "Unknown error"))

        result = response.get("result") or {}
        return result.get("command", "")

    def send(self, payload: bytes) -> Dict[str, Any]:
        """
        Send raw request bytes and return the decoded response.

        Raises:
            DaemonNotRunning: If the daemon is not reachable
            socket.timeout: If the daemon does not answer in time
            ValueError: If the response is empty or not JSON
        """
        if not self.socket_path.exists():
            raise DaemonNotRunning(
                f"Chitin daemon is not running (socket not found at {self.socket_path})"
            )

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)

        try:
            try:
                sock.connect(str(self.socket_path))
            except (ConnectionRefusedError, FileNotFoundError) as e:
                raise DaemonNotRunning(
                    f"Chitin daemon is not running ({self.socket_path}: {e})"
                ) from e

            sock.sendall(payload)
            sock.shutdown(socket.SHUT_WR)

            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        finally:
            sock.close()

        if not chunks:
            raise ValueError("Empty response from daemon")

        return deserialize_response(b"".join(chunks))
