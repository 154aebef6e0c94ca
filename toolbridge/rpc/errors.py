"""Exception hierarchy for the worker RPC layer."""


class ToolBridgeError(Exception):
    """Base class for all toolbridge errors."""


class TransportError(ToolBridgeError):
    """The worker process is not available for I/O.

    Raised when the process failed to start, has exited, its stdin is
    closed, or the session has already been cleaned up.
    """


class SessionTerminated(TransportError):
    """The session was torn down while a call was still outstanding."""


class CallTimeout(ToolBridgeError):
    """No response arrived for a call within the per-call timeout."""

    def __init__(self, call_id: str, timeout: float):
        super().__init__(f"Call {call_id} timed out after {timeout:.1f}s")
        self.call_id = call_id
        self.timeout = timeout


class HandshakeError(ToolBridgeError):
    """The worker rejected the ``initialize`` request."""
