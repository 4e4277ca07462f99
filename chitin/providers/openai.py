"""OpenAI-compatible chat-completions backend.

Works against api.openai.com and any server that speaks the same
``/v1/chat/completions`` dialect (local llama.cpp, vLLM, Ollama's OpenAI
endpoint, ...).
"""

import logging
from typing import Any, Dict, Optional

import requests

from chitin.providers.base import CommandGenerator, GenerationContext, GenerationError
from chitin.providers.prompt import build_messages, first_command_line

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.openai.com"
DEFAULT_MODEL = "gpt-4.1-mini"


class OpenAICompatibleProvider(CommandGenerator):
    """
    Backend that asks an OpenAI-compatible endpoint for a single command.

    A ``requests.Session`` is kept for the lifetime of the backend so that
    consecutive requests reuse the HTTP connection.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        api_base: Optional[str] = None,
        temperature: float = 0.2,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            api_key: Bearer token for the endpoint
            model: Model name (default: gpt-4.1-mini)
            api_base: Base URL without the /v1 suffix
            temperature: Sampling temperature
            timeout: Per-request HTTP timeout in seconds
            session: Pre-built HTTP session (tests)
        """
        if not api_key:
            raise ValueError("API key is required for openai provider")
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.temperature = temperature
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/v1/chat/completions"

    def _build_payload(self, context: GenerationContext) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": build_messages(context),
            "temperature": self.temperature,
        }

    def generate(self, context: GenerationContext) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            resp = self.session.post(
                self.endpoint,
                headers=headers,
                json=self._build_payload(context),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.HTTPError as e:
            status = getattr(e.response, "status_code", None)
            raise GenerationError(f"{self.name} request failed (HTTP {status}): {e}") from e
        except requests.RequestException as e:
            raise GenerationError(f"{self.name} request failed: {e}") from e
        except ValueError as e:
            raise GenerationError(f"{self.name} returned invalid JSON: {e}") from e

        try:
            content = data["choices"][0]["message"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            content = None
        if content is None:
            raise GenerationError("model response missing content")

        command = first_command_line(content)
        if not command:
            raise GenerationError("model returned empty command")
        logger.debug("%s generated: %s", self.model, command)
        return command

    def close(self) -> None:
        self.session.close()
