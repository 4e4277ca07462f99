"""
Tests for the command-generation backends and build_provider.

Network access is never used: the OpenAI-compatible backend gets a mocked
requests.Session and the Mistral backend a mocked SDK client.
"""

import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock

import requests

from chitin.config import ProviderConfig
from chitin.providers import NoopProvider, build_provider
from chitin.providers.base import GenerationContext, GenerationError
from chitin.providers.mistral import MistralProvider, TOOL_NAME
from chitin.providers.openai import OpenAICompatibleProvider
from chitin.providers.prompt import build_context_details, build_messages, first_command_line


def make_context(**overrides):
    values = dict(
        prompt="list files",
        pwd="/home/me",
        session_id="s1",
        history=("show disk usage", "list files"),
        last_command="df -h",
    )
    values.update(overrides)
    return GenerationContext(**values)


class TestNoopProvider(unittest.TestCase):
    """Test cases for NoopProvider."""

    def test_echoes_prompt(self):
        self.assertEqual(NoopProvider().generate(make_context()), 'echo "Chitin: list files"')

    def test_blank_prompt_is_shell_noop(self):
        self.assertEqual(NoopProvider().generate(make_context(prompt="  ")), ":")


class TestPrompt(unittest.TestCase):
    """Test cases for prompt construction and reply parsing."""

    def test_context_details(self):
        self.assertEqual(
            build_context_details(make_context()),
            "pwd: /home/me; last_command: df -h; recent_prompts: show disk usage | list files",
        )
        self.assertEqual(
            build_context_details(make_context(history=(), last_command=None)),
            "pwd: /home/me",
        )

    def test_messages(self):
        system, user = build_messages(make_context())
        self.assertEqual(system["role"], "system")
        self.assertIn("exactly one executable command", system["content"])
        self.assertEqual(user["role"], "user")
        self.assertTrue(user["content"].startswith("Task: list files\nContext: pwd: /home/me"))

    def test_first_command_line(self):
        self.assertEqual(first_command_line("ls -la\nexplanation"), "ls -la")
        self.assertEqual(first_command_line("```bash\nls -la\n```"), "ls -la")
        self.assertEqual(first_command_line("\n\n  "), "")
        self.assertEqual(first_command_line(None), "")


class TestOpenAICompatibleProvider(unittest.TestCase):
    """Test cases for OpenAICompatibleProvider."""

    def _provider(self, response=None, side_effect=None):
        session = MagicMock(spec=requests.Session)
        if side_effect is not None:
            session.post.side_effect = side_effect
        else:
            session.post.return_value = response
        provider = OpenAICompatibleProvider(
            api_key="sk-test",
            api_base="http://localhost:8080/",
            session=session,
        )
        return provider, session

    def _response(self, payload, status=200):
        response = MagicMock()
        response.status_code = status
        response.json.return_value = payload
        if status >= 400:
            response.raise_for_status.side_effect = requests.HTTPError("server error", response=response)
        return response

    def test_generate_posts_chat_completion(self):
        payload = {"choices": [{"message": {"content": "ls -la\n"}}]}
        provider, session = self._provider(self._response(payload))

        self.assertEqual(provider.generate(make_context()), "ls -la")

        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        self.assertEqual(url, "http://localhost:8080/v1/chat/completions")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk-test")
        self.assertEqual(kwargs["json"]["model"], "gpt-4.1-mini")
        self.assertEqual(kwargs["json"]["temperature"], 0.2)
        self.assertEqual(len(kwargs["json"]["messages"]), 2)

    def test_http_error_raises_generation_error(self):
        provider, _ = self._provider(self._response({}, status=500))
        with self.assertRaises(GenerationError) as context:
            provider.generate(make_context())
        self.assertIn("HTTP 500", str(context.exception))

    def test_connection_error_raises_generation_error(self):
        provider, _ = self._provider(side_effect=requests.ConnectionError("refused"))
        with self.assertRaises(GenerationError):
            provider.generate(make_context())

    def test_missing_content_raises_generation_error(self):
        provider, _ = self._provider(self._response({"choices": []}))
        with self.assertRaisesRegex(GenerationError, "missing content"):
            provider.generate(make_context())

    def test_empty_command_raises_generation_error(self):
        provider, _ = self._provider(self._response({"choices": [{"message": {"content": "  \n"}}]}))
        with self.assertRaisesRegex(GenerationError, "empty command"):
            provider.generate(make_context())

    def test_requires_api_key(self):
        with self.assertRaises(ValueError):
            OpenAICompatibleProvider(api_key="")

    def test_close_closes_session(self):
        provider, session = self._provider(self._response({}))
        provider.close()
        session.close.assert_called_once()


class TestMistralProvider(unittest.TestCase):
    """Test cases for MistralProvider with a mocked SDK client."""

    def _client(self, message):
        client = MagicMock()
        client.chat.complete.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=message)]
        )
        return client

    def test_command_from_tool_call(self):
        tool_call = SimpleNamespace(
            function=SimpleNamespace(name=TOOL_NAME, arguments=json.dumps({"command": "git status"}))
        )
        client = self._client(SimpleNamespace(tool_calls=[tool_call], content=""))
        provider = MistralProvider(client=client)

        self.assertEqual(provider.generate(make_context()), "git status")
        kwargs = client.chat.complete.call_args.kwargs
        self.assertEqual(kwargs["model"], "mistral-small-latest")
        self.assertEqual(kwargs["tool_choice"], "any")
        self.assertEqual(kwargs["tools"][0]["function"]["name"], TOOL_NAME)

    def test_falls_back_to_text_content(self):
        client = self._client(SimpleNamespace(tool_calls=None, content="ls -la"))
        self.assertEqual(MistralProvider(client=client).generate(make_context()), "ls -la")

    def test_sdk_failure_raises_generation_error(self):
        client = MagicMock()
        client.chat.complete.side_effect = RuntimeError("401 Unauthorized")
        with self.assertRaisesRegex(GenerationError, "401"):
            MistralProvider(client=client).generate(make_context())

    def test_requires_api_key_or_client(self):
        with self.assertRaises(ValueError):
            MistralProvider()


class TestBuildProvider(unittest.TestCase):
    """Test cases for build_provider."""

    def test_noop(self):
        self.assertIsInstance(build_provider(ProviderConfig(provider="noop")), NoopProvider)

    def test_openai_aliases(self):
        for name in ("openai", "openai-compatible", "OpenAI"):
            with self.subTest(name=name):
                provider = build_provider(
                    ProviderConfig(provider=name, api_key="sk-test", model="local-model", api_base="http://x")
                )
                self.assertIsInstance(provider, OpenAICompatibleProvider)
                self.assertEqual(provider.model, "local-model")
                self.assertEqual(provider.endpoint, "http://x/v1/chat/completions")

    def test_unknown_provider_raises(self):
        with self.assertRaisesRegex(ValueError, "unknown provider: carrier-pigeon"):
            build_provider(ProviderConfig(provider="carrier-pigeon"))


if __name__ == "__main__":
    unittest.main()
