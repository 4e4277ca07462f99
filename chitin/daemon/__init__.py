"""Daemon architecture for Chitin.

A long-running background process that turns short natural-language
requests from shell clients into single shell commands.

Architecture:
- SessionStore: bounded per-session prompt history and last command
- BackendRegistry: swappable slot for the active generation backend
- ConnectionHandler: one request/response exchange per connection
- DaemonServer: async Unix socket server, reloads the backend on SIGHUP
- DaemonClient: lightweight client used by `chitin ask`
"""

from chitin.daemon.state import SessionSnapshot, SessionStore
from chitin.daemon.registry import BackendRegistry
from chitin.daemon.client import DaemonClient, DaemonError, DaemonNotRunning
from chitin.daemon.protocol import (
    serialize_request,
    deserialize_request,
    serialize_response,
    deserialize_response,
)

__all__ = [
    "SessionSnapshot",
    "SessionStore",
    "BackendRegistry",
    "DaemonClient",
    "DaemonError",
    "DaemonNotRunning",
    "serialize_request",
    "deserialize_request",
    "serialize_response",
    "deserialize_response",
]
