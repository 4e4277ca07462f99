"""
Tests for daemon/protocol.py - JSON-RPC envelope codec.
"""

import json
import unittest

from chitin.daemon import protocol
from chitin.daemon.protocol import ProtocolError, deserialize_request, serialize_response


class TestRequestDecoding(unittest.TestCase):
    """Test cases for deserialize_request."""

    def test_decodes_full_request(self):
        data = json.dumps({
            "jsonrpc": "2.0",
            "id": "1",
            "method": "chitin.input",
            "params": {"prompt": "list files", "pwd": "/tmp", "session_id": "s1"},
        }).encode()
        request = deserialize_request(data)
        self.assertEqual(request.jsonrpc, "2.0")
        self.assertEqual(request.id, "1")
        self.assertEqual(request.method, "chitin.input")
        self.assertEqual(request.params.prompt, "list files")
        self.assertEqual(request.params.pwd, "/tmp")
        self.assertEqual(request.params.session_id, "s1")

    def test_missing_optional_params_get_defaults(self):
        data = b'{"jsonrpc":"2.0","id":7,"method":"chitin.input","params":{}}'
        request = deserialize_request(data)
        self.assertEqual(request.id, 7)
        self.assertEqual(request.params.prompt, "")
        self.assertEqual(request.params.pwd, "")
        self.assertEqual(request.params.session_id, "default")

    def test_malformed_inputs_raise_protocol_error(self):
        bad_inputs = [
            b"not json",
            b"\xff\xfe",
            b"[1, 2, 3]",
            b'{"id":"1","method":"chitin.input","params":{}}',
            b'{"jsonrpc":"2.0","id":"1","params":{}}',
            b'{"jsonrpc":"2.0","id":"1","method":"chitin.input"}',
            b'{"jsonrpc":"2.0","id":"1","method":"chitin.input","params":"x"}',
            b'{"jsonrpc":"2.0","id":"1","method":"chitin.input","params":{"prompt":5}}',
        ]
        for data in bad_inputs:
            with self.subTest(data=data):
                with self.assertRaises(ProtocolError):
                    deserialize_request(data)

    def test_non_finite_numbers_are_rejected(self):
        bad_inputs = [
            b'{"jsonrpc":"2.0","id":NaN,"method":"chitin.input","params":{"prompt":"ls"}}',
            b'{"jsonrpc":"2.0","id":Infinity,"method":"chitin.input","params":{"prompt":"ls"}}',
            b'{"jsonrpc":"2.0","id":-Infinity,"method":"chitin.input","params":{"prompt":"ls"}}',
            b'{"jsonrpc":"2.0","id":1e400,"method":"chitin.input","params":{"prompt":"ls"}}',
        ]
        for data in bad_inputs:
            with self.subTest(data=data):
                with self.assertRaises(ProtocolError):
                    deserialize_request(data)

    def test_finite_numeric_id_is_accepted(self):
        request = deserialize_request(b'{"jsonrpc":"2.0","id":1.5,"method":"chitin.input","params":{}}')
        self.assertEqual(request.id, 1.5)

    def test_deeply_nested_json_raises_protocol_error(self):
        data = b'{"jsonrpc":"2.0","id":' + b"[" * 100000
        with self.assertRaises(ProtocolError) as context:
            deserialize_request(data)
        self.assertEqual(str(context.exception), "recursion limit exceeded")

    def test_version_is_not_checked_while_decoding(self):
        request = deserialize_request(b'{"jsonrpc":"1.0","id":"1","method":"x","params":{}}')
        self.assertEqual(request.jsonrpc, "1.0")
        self.assertEqual(request.method, "x")


class TestResponseEncoding(unittest.TestCase):
    """Test cases for response construction and serialize_response."""

    def test_success_wire_format(self):
        response = protocol.success("1", 'echo "stub: list files"')
        self.assertEqual(
            serialize_response(response),
            b'{"jsonrpc":"2.0","id":"1","result":{"type":"refill","command":"echo \\"stub: list files\\""}}',
        )

    def test_error_wire_format_with_null_id(self):
        response = protocol.invalid_request(None, "empty request")
        self.assertEqual(
            serialize_response(response),
            b'{"jsonrpc":"2.0","id":null,"error":{"code":-32600,"message":"empty request"}}',
        )

    def test_error_constructor_codes(self):
        cases = [
            (protocol.invalid_request, -32600),
            (protocol.method_not_found, -32601),
            (protocol.invalid_params, -32602),
            (protocol.internal_error, -32603),
        ]
        for constructor, code in cases:
            with self.subTest(code=code):
                response = constructor("id-1", "boom")
                self.assertFalse(response.ok)
                self.assertIsNone(response.result)
                self.assertEqual(response.error.code, code)
                self.assertEqual(response.to_dict()["id"], "id-1")

    def test_error_data_only_serialized_when_present(self):
        response = protocol.error_response("1", -32603, "boom", data={"hint": "retry"})
        self.assertEqual(response.to_dict()["error"]["data"], {"hint": "retry"})
        self.assertNotIn("data", protocol.internal_error("1", "boom").to_dict()["error"])

    def test_non_finite_id_is_never_written(self):
        with self.assertRaises(ValueError):
            serialize_response(protocol.success(float("nan"), "ls"))

    def test_client_request_round_trip(self):
        data = protocol.serialize_request("list files", pwd="/tmp", session_id="s1", request_id="42")
        request = deserialize_request(data)
        self.assertEqual(request.id, "42")
        self.assertEqual(request.method, protocol.METHOD_INPUT)
        self.assertEqual(request.params.session_id, "s1")


if __name__ == "__main__":
    unittest.main()
