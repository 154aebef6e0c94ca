"""JSON-RPC 2.0 line protocol for worker IPC.

One JSON object per line, UTF-8 encoded, over the worker's stdin/stdout.

Request format:
    {
        "jsonrpc": "2.0",
        "id": str,              # Correlation identifier
        "method": "initialize" | "tools/list" | "tools/execute",
        "params": dict,
    }

Response format:
    {"jsonrpc": "2.0", "id": str, "result": Any}
    {"jsonrpc": "2.0", "id": str, "error": {"code": int, "message": str, "data": Any}}
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

METHOD_INITIALIZE = "initialize"
METHOD_LIST_TOOLS = "tools/list"
METHOD_EXECUTE_TOOL = "tools/execute"

INTERNAL_ERROR = -32603


@dataclass
class ToolError:
    """Structured failure reported by the worker."""
    code: str
    message: str
    details: Optional[str] = None


@dataclass
class ToolResult:
    """Outcome of a tool execution: either data or a structured error."""
    success: bool
    data: Any = None
    error: Optional[ToolError] = None


@dataclass
class ToolInfo:
    """A tool as advertised by ``tools/list``."""
    name: str
    description: str = ""
    parameters: Optional[Dict[str, Any]] = None


def build_request(call_id: str, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build a request message."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": call_id,
        "method": method,
        "params": params or {},
    }


def encode_message(message: Dict[str, Any]) -> bytes:
    """
    Serialize a message to a single newline-terminated line.

    Args:
        message: JSON-serializable dict

    Returns:
        UTF-8 encoded JSON bytes ending in ``\\n``
    """
    return json.dumps(message, separators=(",", ":")).encode("utf-8") + b"\n"


def is_response(message: Dict[str, Any]) -> bool:
    """True for messages that answer a request (no ``method`` key)."""
    return "method" not in message and ("result" in message or "error" in message)


def to_tool_result(response: Dict[str, Any]) -> ToolResult:
    """
    Map a ``tools/execute`` response onto a ToolResult.

    A response carrying an ``error`` object becomes a failed result;
    anything else is a success with ``result`` as the payload.
    """
    error = response.get("error")
    if error is not None:
        if not isinstance(error, dict):
            error = {"message": str(error)}
        data = error.get("data")
        if data is not None and not isinstance(data, str):
            data = json.dumps(data)
        return ToolResult(
            success=False,
            error=ToolError(
                code=str(error.get("code", "")),
                message=str(error.get("message", "")),
                details=data,
            ),
        )
    return ToolResult(success=True, data=response.get("result"))


def to_tool_info(raw: Dict[str, Any]) -> ToolInfo:
    # Workers differ on the schema key name.
    parameters = raw.get("parameters", raw.get("inputSchema"))
    return ToolInfo(
        name=str(raw.get("name", "")),
        description=str(raw.get("description", "")),
        parameters=parameters,
    )


class LineFramer:
    """
    Incremental decoder for newline-delimited JSON.

    Chunks may split messages anywhere; the trailing partial line is kept
    until the next chunk completes it. Lines that do not decode to a JSON
    object are logged and dropped.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending_bytes(self) -> int:
        """Number of buffered bytes still waiting for a newline."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        """
        Append a chunk and return every complete message it finishes.

        Args:
            chunk: Raw bytes read from the worker's stdout

        Returns:
            Decoded messages in arrival order (possibly empty)
        """
        self._buffer.extend(chunk)
        if b"\n" not in chunk:
            return []

        *lines, rest = self._buffer.split(b"\n")
        self._buffer = bytearray(rest)

        messages = []
        for line in lines:
            message = self._decode_line(line)
            if message is not None:
                messages.append(message)
        return messages

    def reset(self) -> None:
        self._buffer.clear()

    def _decode_line(self, line: bytes) -> Optional[Dict[str, Any]]:
        line = line.strip()
        if not line:
            return None
        try:
            message = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Discarding malformed line from worker: {e}: {line[:200]!r}")
            return None
        if not isinstance(message, dict):
            logger.warning(f"Discarding non-object message from worker: {line[:200]!r}")
            return None
        return message
