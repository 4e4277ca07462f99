"""Command-generation backend interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple


class GenerationError(RuntimeError):
    """Raised when a backend fails to produce a command."""


@dataclass(frozen=True)
class GenerationContext:
    """
    Everything a backend gets to see for one request.

    Built by the connection handler from the request parameters and a
    session snapshot taken after the prompt was recorded, so ``history``
    ends with ``prompt``.
    """
    prompt: str
    pwd: str
    session_id: str
    history: Tuple[str, ...] = ()
    last_command: Optional[str] = None


class CommandGenerator(ABC):
    """
    Abstract base class for command-generation backends.

    ``generate`` is a plain blocking call. The daemon runs it in a worker
    thread, so implementations are free to use synchronous HTTP clients.
    """

    name = "base"

    @abstractmethod
    def generate(self, context: GenerationContext) -> str:
        """
        Turn a request context into a single shell command.

        Raises:
            GenerationError: If the backend could not produce a command
        """

    def close(self) -> None:
        """Release network resources. Called once the backend is retired."""
