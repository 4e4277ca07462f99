"""Async Unix socket server for the Chitin daemon.

This module implements the long-running daemon process that:
1. Binds the Unix socket (replacing a stale one from a previous run)
2. Serves every connection in its own task via ConnectionHandler
3. Swaps the generation backend on SIGHUP without dropping connections

Usage:
    python -m chitin.daemon.server [--socket-path PATH]

    Or use the CLI:
    chitin daemon
"""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Callable, Optional

import setproctitle

from chitin.config import ChitinConfig, load_config
from chitin.daemon.handler import ConnectionHandler
from chitin.daemon.registry import BackendRegistry
from chitin.daemon.state import SessionStore
from chitin.providers import build_provider

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

RELOAD = "reload"
SHUTDOWN = "shutdown"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the daemon process (CHITIN_LOG_LEVEL, default INFO)."""
    level_name = (level or os.environ.get("CHITIN_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


class DaemonServer:
    """
    Async Unix socket server for the daemon.

    Owns the session store and the backend registry and hands both to the
    connection handler. Reload and shutdown requests arrive as control
    messages on a queue consumed by a single control task, which is also the
    only caller of ``BackendRegistry.replace``.
    """

    def __init__(
        self,
        config: ChitinConfig,
        registry: Optional[BackendRegistry] = None,
        sessions: Optional[SessionStore] = None,
        config_loader: Callable[[], ChitinConfig] = load_config,
        socket_path: Optional[str] = None,
    ):
        """
        Initialize daemon server.

        Args:
            config: Configuration loaded at startup
            registry: Pre-built backend registry (built from config if omitted)
            sessions: Pre-built session store (built from config if omitted)
            config_loader: Called on every reload to reread configuration
            socket_path: Override for the configured socket path
        """
        self.config = config
        self.socket_path = Path(socket_path or config.server.socket_path)
        self.pid_path = Path(config.server.pid_path) if config.server.pid_path else None
        self.config_loader = config_loader

        self.sessions = sessions or SessionStore(config.server.history_limit)
        self.registry = registry
        self.handler: Optional[ConnectionHandler] = None
        self.server: Optional[asyncio.AbstractServer] = None

        self._control: "asyncio.Queue[str]" = asyncio.Queue()
        self._control_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()
        self._signals_installed = False
        # Only files this instance created are removed on stop
        self._socket_created = False
        self._pid_written = False

    async def start(self, install_signal_handlers: bool = True) -> None:
        """
        Bind the socket and start accepting connections.

        Raises:
            ValueError: If the configured backend cannot be built
            OSError: If the socket cannot be bound
        """
        logger.info("Starting Chitin daemon...")

        if self.registry is None:
            backend = await asyncio.to_thread(build_provider, self.config.provider)
            self.registry = BackendRegistry(backend)
        logger.info("Backend: %s", self.registry.backend.name)

        self.handler = ConnectionHandler(
            self.sessions,
            self.registry,
            handshake_timeout=self.config.server.handshake_timeout_ms / 1000.0,
        )

        # Clean up stale socket
        if self.socket_path.exists() or self.socket_path.is_symlink():
            self.socket_path.unlink()
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)

        self.server = await asyncio.start_unix_server(
            self._handle_client,
            path=str(self.socket_path),
        )
        self._socket_created = True

        # Set socket permissions (owner only)
        os.chmod(self.socket_path, 0o600)

        if self.pid_path is not None:
            self.pid_path.parent.mkdir(parents=True, exist_ok=True)
            self.pid_path.write_text(str(os.getpid()))
            self._pid_written = True

        if install_signal_handlers:
            self._install_signal_handlers()

        self._control_task = asyncio.create_task(self._control_loop())
        logger.info("Chitin: listening on %s", self.socket_path)

    async def serve_forever(self, install_signal_handlers: bool = True) -> None:
        """Start, serve until a shutdown is requested, then clean up."""
        await self.start(install_signal_handlers=install_signal_handlers)
        try:
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Per-connection task; failures stay confined to this connection."""
        try:
            await self.handler.handle_connection(reader, writer)
        except Exception as e:
            logger.exception(f"Chitin error: {e}")

    def request_reload(self) -> None:
        """Queue a backend reload (what SIGHUP does)."""
        self._control.put_nowait(RELOAD)

    def request_shutdown(self) -> None:
        """Queue a graceful shutdown (what SIGTERM/SIGINT do)."""
        self._control.put_nowait(SHUTDOWN)

    async def _control_loop(self) -> None:
        while True:
            message = await self._control.get()
            if message == RELOAD:
                await self.reload()
            elif message == SHUTDOWN:
                logger.info("Shutdown requested")
                self._shutdown_event.set()
                return

    async def reload(self) -> bool:
        """
        Reread configuration and swap in a freshly built backend.

        On any failure the previous backend stays active.

        Returns:
            True if the backend was replaced
        """
        logger.info("Reloading configuration...")
        try:
            config = await asyncio.to_thread(self.config_loader)
            backend = await asyncio.to_thread(build_provider, config.provider)
        except Exception as e:
            logger.error(f"Reload failed, keeping {self.registry.backend.name} backend: {e}")
            return False

        old_backend = await self.registry.replace(backend)
        self.config.provider = config.provider
        if config.server.socket_path != self.config.server.socket_path:
            logger.warning("socket_path changes take effect after a restart")
        self._close_backend(old_backend)
        logger.info("Reload complete (backend: %s)", backend.name)
        return True

    @staticmethod
    def _close_backend(backend) -> None:
        try:
            backend.close()
        except Exception as e:
            logger.warning(f"Error closing backend {backend.name}: {e}")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGHUP, self._reload_signal_handler)
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._shutdown_signal_handler)
        self._signals_installed = True

    def _remove_signal_handlers(self) -> None:
        if not self._signals_installed:
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGHUP, signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        self._signals_installed = False

    def _reload_signal_handler(self) -> None:
        logger.info("Received SIGHUP")
        self.request_reload()

    def _shutdown_signal_handler(self) -> None:
        logger.info("Received shutdown signal")
        self.request_shutdown()

    async def stop(self) -> None:
        """Stop accepting, retire the backend and remove socket and PID file."""
        logger.info("Cleaning up...")
        self._remove_signal_handlers()

        if self._control_task is not None and not self._control_task.done():
            self._control_task.cancel()
            try:
                await self._control_task
            except asyncio.CancelledError:
                pass

        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        if self.registry is not None:
            self._close_backend(self.registry.backend)

        if self._socket_created and self.socket_path.exists():
            self.socket_path.unlink()
        self._socket_created = False
        if self._pid_written and self.pid_path.exists():
            self.pid_path.unlink()
        self._pid_written = False

        stats = self.sessions.stats()
        logger.info("Daemon stopped (%d sessions)", stats["active_sessions"])


def read_pid(pid_path: Path) -> Optional[int]:
    """Read the daemon PID from its PID file, or None if absent or unreadable."""
    try:
        return int(pid_path.read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def run_daemon(socket_path: Optional[str] = None) -> None:
    """
    Run the daemon server in the foreground until SIGTERM/SIGINT.

    Args:
        socket_path: Override for the configured socket path
    """
    setup_logging()
    config = load_config()

    setproctitle.setproctitle("chitin-daemon")

    server = DaemonServer(config, socket_path=socket_path)
    asyncio.run(server.serve_forever())


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Chitin daemon server")
    parser.add_argument(
        "--socket-path",
        help="Path to Unix socket",
    )

    args = parser.parse_args()

    run_daemon(socket_path=args.socket_path)
