"""Per-connection request handling.

Each accepted connection goes through:

    AwaitRequest -> Validate -> Enrich -> Generate -> RecordAndRespond -> Closed

Read, decode and validation failures short-circuit to Closed after a
structured error response. Backend failures become an internal_error
response and leave the session's last command untouched.
"""

import asyncio
import logging
from typing import Optional

from chitin.daemon import protocol
from chitin.daemon.protocol import ProtocolError, Request, Response
from chitin.daemon.registry import BackendRegistry
from chitin.daemon.state import SessionStore
from chitin.providers.base import GenerationContext

logger = logging.getLogger(__name__)

HANDSHAKE_TIMEOUT = 0.2  # seconds

# Peer went away before we could answer
DISCONNECT_ERRORS = (BrokenPipeError, ConnectionResetError)


class ConnectionHandler:
    """
    Serves one request/response exchange per connection.

    Holds explicit references to the shared session store and backend
    registry; it keeps no per-connection state of its own, so one instance
    serves every connection of a DaemonServer.
    """

    def __init__(
        self,
        sessions: SessionStore,
        registry: BackendRegistry,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
    ):
        self.sessions = sessions
        self.registry = registry
        self.handshake_timeout = handshake_timeout

    async def handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Read one request, answer it and close the connection."""
        try:
            response = await self._read_and_process(reader)
            await self._send_response(writer, response)
        except DISCONNECT_ERRORS as e:
            logger.debug("Client disconnected before response was sent: %s", e)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except DISCONNECT_ERRORS:
                pass

    async def _read_and_process(self, reader: asyncio.StreamReader) -> Response:
        # AwaitRequest: the client half-closes after writing, so read to EOF
        try:
            data = await asyncio.wait_for(reader.read(), timeout=self.handshake_timeout)
        except asyncio.TimeoutError:
            logger.warning("Client did not send a request within %.0fms", self.handshake_timeout * 1000)
            return protocol.invalid_request(None, "timeout waiting for request")

        if not data:
            return protocol.invalid_request(None, "empty request")

        try:
            request = protocol.deserialize_request(data)
        except ProtocolError as e:
            return protocol.invalid_request(None, f"invalid json: {e}")

        return await self.handle_request(request)

    async def handle_request(self, request: Request) -> Response:
        """
        Validate a decoded request, generate a command and record it.

        Never raises for request or backend problems; those become error
        responses.
        """
        error = self.validate(request)
        if error is not None:
            return error

        params = request.params
        context = self.enrich(request)

        logger.info("Chitin: generating command...")
        try:
            async with self.registry.current() as backend:
                command = await asyncio.to_thread(backend.generate, context)
        except Exception as e:
            logger.error("Chitin: failed - %s", e)
            return protocol.internal_error(request.id, str(e) or type(e).__name__)

        self.sessions.record_output(params.session_id, command)
        logger.info("Chitin: done")
        return protocol.success(request.id, command)

    @staticmethod
    def validate(request: Request) -> Optional[Response]:
        """Return an error response if the request is not acceptable, else None."""
        if request.jsonrpc != protocol.JSONRPC_VERSION:
            return protocol.invalid_request(request.id, "jsonrpc must be 2.0")
        if request.method != protocol.METHOD_INPUT:
            return protocol.method_not_found(request.id, "unknown method")
        if not request.params.prompt.strip():
            return protocol.invalid_params(request.id, "prompt is required")
        return None

    def enrich(self, request: Request) -> GenerationContext:
        """Record the prompt and build the backend context from the updated session."""
        params = request.params
        snapshot = self.sessions.record_input_and_snapshot(params.session_id, params.prompt)
        return GenerationContext(
            prompt=params.prompt,
            pwd=params.pwd,
            session_id=params.session_id,
            history=snapshot.history,
            last_command=snapshot.last_command,
        )

    async def _send_response(self, writer: asyncio.StreamWriter, response: Response) -> None:
        """Write the response and half-close."""
        writer.write(protocol.serialize_response(response))
        await writer.drain()
        if writer.can_write_eof():
            writer.write_eof()
