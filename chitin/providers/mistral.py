"""Mistral backend using the native tool calling API."""

import json
import logging
from typing import Any, Optional, TYPE_CHECKING

from chitin.providers.base import CommandGenerator, GenerationContext, GenerationError
from chitin.providers.prompt import build_messages, first_command_line

if TYPE_CHECKING:
    from mistralai import Mistral

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "mistral-small-latest"
TOOL_NAME = "execute_shell_command"


def build_tool_schema() -> list[dict]:
    """
    Build the Mistral tool schema for shell command output.

    Forcing the model through a single tool call returns the command in a
    structured field, which avoids scraping it out of free text.
    """
    return [{
        "type": "function",
        "function": {
            "name": TOOL_NAME,
            "description": (
                "Return the shell command that fulfils the user's request. "
                "It will be placed on the user's prompt line for review."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "command": {
                        "type": "string",
                        "description": (
                            "The exact shell command to run, on a single line."
                        )
                    }
                },
                "required": ["command"]
            }
        }
    }]


class MistralProvider(CommandGenerator):
    """
    Backend built on the ``mistralai`` SDK.

    The SDK import is deferred to construction time so that selecting a
    different backend never pays for it.
    """

    name = "mistralai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.2,
        timeout: float = 30.0,
        client: Optional["Mistral"] = None,
    ):
        """
        Args:
            api_key: Mistral API key (not needed if client is provided)
            model: Model name (default: mistral-small-latest)
            temperature: Sampling temperature
            timeout: Request timeout in seconds
            client: Pre-initialized Mistral client (tests)
        """
        if client is not None:
            self.client = client
        elif api_key:
            from mistralai import Mistral
            self.client = Mistral(api_key=api_key, timeout_ms=int(timeout * 1000))
        else:
            raise ValueError("Either api_key or client must be provided")

        self.model = model or DEFAULT_MODEL
        self.temperature = temperature

    def generate(self, context: GenerationContext) -> str:
        try:
            response = self.client.chat.complete(
                model=self.model,
                messages=build_messages(context),
                tools=build_tool_schema(),
                tool_choice="any",
                temperature=self.temperature,
            )
        except Exception as e:
            raise GenerationError(f"mistralai request failed: {e}") from e

        try:
            message = response.choices[0].message
        except (AttributeError, IndexError, TypeError) as e:
            raise GenerationError("model response missing content") from e

        command = self._command_from_tool_calls(message)
        if not command:
            command = first_command_line(self._text_content(message))
        if not command:
            raise GenerationError("model returned empty command")
        logger.debug("%s generated: %s", self.model, command)
        return command

    @staticmethod
    def _command_from_tool_calls(message: Any) -> str:
        # Structure: message.tool_calls[0].function.arguments (JSON string or dict)
        tool_calls = getattr(message, "tool_calls", None) or []
        for tool_call in tool_calls:
            function = getattr(tool_call, "function", None)
            if function is None or getattr(function, "name", TOOL_NAME) != TOOL_NAME:
                continue
            arguments = function.arguments
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError as e:
                    raise GenerationError(f"invalid tool arguments: {e}") from e
            if isinstance(arguments, dict):
                return first_command_line(arguments.get("command"))
        return ""

    @staticmethod
    def _text_content(message: Any) -> str:
        content = getattr(message, "content", "")
        if isinstance(content, list):
            return "\n".join(str(part) for part in content)
        return "" if content is None else str(content)
