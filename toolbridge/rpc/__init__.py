"""Worker RPC layer for toolbridge.

Launches a long-lived worker process and talks JSON-RPC to it over
stdin/stdout, one message per line.

Architecture:
- ProcessTransport: owns the worker process and its pipes
- LineFramer: turns stdout chunks into decoded messages
- CorrelationTable: maps outstanding call ids to waiting futures
- ToolClient: handshake, calls, session timeout and result cache
"""

from toolbridge.rpc.client import ToolClient
from toolbridge.rpc.correlation import CorrelationTable, PendingCall
from toolbridge.rpc.errors import (
    CallTimeout,
    HandshakeError,
    SessionTerminated,
    ToolBridgeError,
    TransportError,
)
from toolbridge.rpc.protocol import LineFramer, ToolError, ToolInfo, ToolResult
from toolbridge.rpc.transport import ProcessTransport

__all__ = [
    "ToolClient",
    "CorrelationTable",
    "PendingCall",
    "LineFramer",
    "ProcessTransport",
    "ToolError",
    "ToolInfo",
    "ToolResult",
    "ToolBridgeError",
    "TransportError",
    "SessionTerminated",
    "CallTimeout",
    "HandshakeError",
]
