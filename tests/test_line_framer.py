"""
Tests for rpc/protocol.py - line framing and message mapping.
"""

import json
import unittest

from toolbridge.rpc.protocol import (
    LineFramer,
    ToolResult,
    build_request,
    encode_message,
    is_response,
    to_tool_info,
    to_tool_result,
)


class TestLineFramer(unittest.TestCase):
    """Test cases for LineFramer."""

    def setUp(self):
        self.framer = LineFramer()

    def test_single_complete_message(self):
        messages = self.framer.feed(b'{"id": "call-1", "result": 1}\n')
        self.assertEqual(messages, [{"id": "call-1", "result": 1}])
        self.assertEqual(self.framer.pending_bytes, 0)

    def test_message_split_across_chunks(self):
        self.assertEqual(self.framer.feed(b'{"id": "call-1", '), [])
        self.assertEqual(self.framer.feed(b'"result": {"a"'), [])
        messages = self.framer.feed(b': 2}}\n')
        self.assertEqual(messages, [{"id": "call-1", "result": {"a": 2}}])

    def test_several_messages_in_one_chunk(self):
        chunk = b'{"id": 1, "result": "a"}\n{"id": 2, "result": "b"}\n{"id": 3'
        messages = self.framer.feed(chunk)
        self.assertEqual([m["id"] for m in messages], [1, 2])
        self.assertEqual(self.framer.pending_bytes, len(b'{"id": 3'))

        messages = self.framer.feed(b', "result": "c"}\n')
        self.assertEqual(messages, [{"id": 3, "result": "c"}])

    def test_malformed_line_is_skipped_and_logged(self):
        with self.assertLogs("toolbridge.rpc.protocol", level="WARNING") as logs:
            messages = self.framer.feed(b'not json\n{"id": 1, "result": true}\n')
        self.assertEqual(messages, [{"id": 1, "result": True}])
        self.assertIn("malformed", logs.output[0])

    def test_non_object_json_is_discarded(self):
        with self.assertLogs("toolbridge.rpc.protocol", level="WARNING"):
            messages = self.framer.feed(b'[1, 2, 3]\n"text"\n')
        self.assertEqual(messages, [])

    def test_invalid_utf8_is_discarded(self):
        with self.assertLogs("toolbridge.rpc.protocol", level="WARNING"):
            messages = self.framer.feed(b'\xff\xfe\n{"id": 1, "result": null}\n')
        self.assertEqual(messages, [{"id": 1, "result": None}])

    def test_blank_and_crlf_lines(self):
        messages = self.framer.feed(b'\n\r\n{"id": 1, "result": 0}\r\n')
        self.assertEqual(messages, [{"id": 1, "result": 0}])

    def test_reset_drops_partial_line(self):
        self.framer.feed(b'{"id": 1')
        self.framer.reset()
        self.assertEqual(self.framer.pending_bytes, 0)
        self.assertEqual(self.framer.feed(b'{"id": 2, "result": 1}\n'), [{"id": 2, "result": 1}])


class TestMessages(unittest.TestCase):
    """Test cases for request building and response mapping."""

    def test_encode_request_is_one_line(self):
        data = encode_message(build_request("call-7", "tools/execute", {"name": "x", "input": {}}))
        self.assertTrue(data.endswith(b"\n"))
        self.assertEqual(data.count(b"\n"), 1)
        decoded = json.loads(data)
        self.assertEqual(decoded["jsonrpc"], "2.0")
        self.assertEqual(decoded["id"], "call-7")
        self.assertEqual(decoded["method"], "tools/execute")

    def test_build_request_defaults_params(self):
        self.assertEqual(build_request("call-1", "tools/list")["params"], {})

    def test_is_response(self):
        self.assertTrue(is_response({"id": 1, "result": None}))
        self.assertTrue(is_response({"id": 1, "error": {"code": 1, "message": "x"}}))
        self.assertFalse(is_response({"method": "notifications/progress", "params": {}}))
        self.assertFalse(is_response({"id": 1}))

    def test_success_result(self):
        result = to_tool_result({"id": 1, "result": {"features": []}})
        self.assertEqual(result, ToolResult(success=True, data={"features": []}))

    def test_error_result(self):
        result = to_tool_result(
            {"id": 1, "error": {"code": -32602, "message": "Invalid state", "data": "INVALID_STATE"}}
        )
        self.assertFalse(result.success)
        self.assertIsNone(result.data)
        self.assertEqual(result.error.code, "-32602")
        self.assertEqual(result.error.message, "Invalid state")
        self.assertEqual(result.error.details, "INVALID_STATE")

    def test_error_result_structured_data_is_rendered(self):
        result = to_tool_result({"id": 1, "error": {"code": 1, "message": "bad", "data": {"field": "x"}}})
        self.assertEqual(json.loads(result.error.details), {"field": "x"})

    def test_tool_info_accepts_input_schema(self):
        info = to_tool_info({"name": "get-forecast", "inputSchema": {"latitude": {}}})
        self.assertEqual(info.name, "get-forecast")
        self.assertEqual(info.parameters, {"latitude": {}})


if __name__ == "__main__":
    unittest.main()
