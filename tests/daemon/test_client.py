"""
Tests for daemon/client.py - thin socket client helpers.
"""

import os
import unittest
from unittest.mock import patch

from chitin.daemon.client import DaemonClient, DaemonError, default_session_id, new_request_id


class TestClientHelpers(unittest.TestCase):
    """Test cases for session id and request id helpers."""

    def test_session_id_prefers_chitin_variable(self):
        with patch.dict(os.environ, {"CHITIN_SESSION_ID": "tty1", "USER": "me"}):
            self.assertEqual(default_session_id(), "tty1")

    def test_session_id_falls_back_to_user_then_default(self):
        with patch.dict(os.environ, {"USER": "me"}, clear=True):
            self.assertEqual(default_session_id(), "me")
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(default_session_id(), "default")

    def test_request_id_is_numeric_string(self):
        self.assertTrue(new_request_id().isdigit())


class TestClientResponses(unittest.TestCase):
    """Test cases for DaemonClient.ask response handling."""

    def test_ask_returns_command(self):
        client = DaemonClient(socket_path="/tmp/unused.sock")
        reply = {"jsonrpc": "2.0", "id": "1", "result": {"type": "refill", "command": "ls"}}
        with patch.object(DaemonClient, "send", return_value=reply) as mock_send:
            self.assertEqual(client.ask("list files", pwd="/tmp", session_id="s1"), "ls")
        self.assertIn(b'"session_id": "s1"', mock_send.call_args.args[0])

    def test_ask_raises_on_error_object(self):
        client = DaemonClient(socket_path="/tmp/unused.sock")
        reply = {"jsonrpc": "2.0", "id": "1", "error": {"code": -32602, "message": "prompt is required"}}
        with patch.object(DaemonClient, "send", return_value=reply):
            with self.assertRaises(DaemonError) as context:
                client.ask(" ", pwd="/tmp", session_id="s1")
        self.assertEqual(context.exception.code, -32602)
        self.assertEqual(context.exception.message, "prompt is required")


if __name__ == "__main__":
    unittest.main()
