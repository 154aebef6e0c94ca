"""Client session for a line-protocol tool worker.

A ToolClient owns one worker process, one correlation table and one result
cache. Calls are written to the worker's stdin tagged with a unique id; a
reader task decodes stdout and resolves each call by id, so many calls may
be in flight at once and replies may come back in any order.

Usage:
    config = ClientConfig(server_command=["python", "weather_server.py"])
    async with ToolClient(config) as client:
        result = await client.execute_tool("get-alerts", {"state": "CA"})
        if result.success:
            ...

Lifetime:
    The session is bounded by ``session_timeout``: when it expires the worker
    is killed and every outstanding call fails with SessionTerminated. An
    optional ``call_timeout`` bounds each individual call.
"""

import asyncio
import copy
import itertools
import logging
import time
from typing import Any, Dict, List, Optional

from toolbridge.core.configs import ClientConfig
from toolbridge.core.result_cache import ResultCache
from toolbridge.rpc.correlation import CorrelationTable
from toolbridge.rpc.errors import CallTimeout, HandshakeError, SessionTerminated, TransportError
from toolbridge.rpc.protocol import (
    INTERNAL_ERROR,
    JSONRPC_VERSION,
    METHOD_EXECUTE_TOOL,
    METHOD_INITIALIZE,
    METHOD_LIST_TOOLS,
    PROTOCOL_VERSION,
    LineFramer,
    ToolInfo,
    ToolResult,
    build_request,
    encode_message,
    is_response,
    to_tool_info,
    to_tool_result,
)
from toolbridge.rpc.transport import ProcessTransport

logger = logging.getLogger(__name__)


class ToolClient:
    """
    Request/response client for a single worker session.

    Thread safety: NOT thread-safe. All methods must be awaited from the
    event loop that ran ``start()``.
    """

    def __init__(self, config: ClientConfig, transport: Optional[ProcessTransport] = None):
        """
        Args:
            config: Client configuration (worker command, timeouts, cache)
            transport: Pre-built transport, mainly for tests
        """
        if transport is None:
            transport = ProcessTransport(config.server_command, env=config.env or None)
        self.config = config
        self.transport = transport

        self.table = CorrelationTable()
        self.framer = LineFramer()
        self.cache: Optional[ResultCache] = (
            ResultCache(ttl=config.cache_ttl) if config.cache_enabled else None
        )

        self.tools: List[ToolInfo] = []
        self.server_info: Dict[str, Any] = {}
        self.initialized = False
        self.requests_sent = 0

        self._ids = itertools.count(1)
        self._reader_task: Optional[asyncio.Task] = None
        self._session_timer: Optional[asyncio.TimerHandle] = None
        self._closed = False
        self._started_at: Optional[float] = None

    async def __aenter__(self) -> "ToolClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.cleanup()

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """
        Spawn the worker, arm the session timer and run the handshake.

        Raises:
            TransportError: If the worker cannot be started
            HandshakeError: If the worker rejects ``initialize``
        """
        if self._closed:
            raise TransportError("Session already closed")

        await self.transport.start()
        self._started_at = time.monotonic()
        self._reader_task = asyncio.create_task(self._read_loop())

        loop = asyncio.get_running_loop()
        self._session_timer = loop.call_later(self.config.session_timeout, self._on_session_timeout)

        try:
            await self._handshake()
        except BaseException:
            await self.cleanup()
            raise

    async def _handshake(self) -> None:
        response = await self.request(
            METHOD_INITIALIZE,
            {
                "protocolVersion": PROTOCOL_VERSION,
                "clientInfo": {
                    "name": self.config.client_name,
                    "version": self.config.client_version,
                },
                "capabilities": {},
            },
        )
        if "error" in response:
            error = response["error"] or {}
            raise HandshakeError(f"Worker rejected initialize: {error.get('message', error)}")

        self.initialized = True
        self.server_info = response.get("result") or {}
        logger.info(f"Worker initialized: {self.server_info}")

        self.tools = await self.list_tools()
        for tool in self.tools:
            logger.info(f"Tool available: {tool.name}: {tool.description}")

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one request and wait for its response.

        Returns:
            The raw response message (carrying ``result`` or ``error``)

        Raises:
            TransportError: If the session is closed or the worker is gone
            SessionTerminated: If the session ends before the reply arrives
            CallTimeout: If ``call_timeout`` elapses first
        """
        if self._closed or not self.transport.is_running:
            raise TransportError("Session is closed; worker is not available")

        call_id = f"call-{next(self._ids)}"
        line = encode_message(build_request(call_id, method, params))

        pending = self.table.register(call_id)
        try:
            await self.transport.write(line)
            self.requests_sent += 1
            logger.debug(f"Sent {method} ({call_id})")
            return await self._await_response(pending.future, method, call_id)
        finally:
            # No-op once the reader has matched the response.
            self.table.discard(call_id)

    async def _await_response(self, future: "asyncio.Future", method: str, call_id: str) -> Dict[str, Any]:
        timeout = self.config.call_timeout
        if timeout is None:
            return await future
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{method} ({call_id}) timed out after {timeout:.1f}s")
            raise CallTimeout(call_id, timeout) from None

    async def list_tools(self) -> List[ToolInfo]:
        """Ask the worker for its tool catalogue."""
        response = await self.request(METHOD_LIST_TOOLS, {})
        if "error" in response:
            error = response["error"] or {}
            logger.warning(f"tools/list failed: {error.get('message', error)}")
            return []
        result = response.get("result") or {}
        return [to_tool_info(raw) for raw in result.get("tools", []) if isinstance(raw, dict)]

    async def execute_tool(self, tool: str, params: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Execute a tool, serving repeated identical calls from the cache.

        Only successful results are cached; a failing call always reaches
        the worker again.

        Args:
            tool: Tool name as listed by the worker
            params: Tool input, forwarded verbatim

        Returns:
            ToolResult with ``data`` on success or ``error`` on failure
        """
        params = params or {}
        cache_key = None
        if self.cache is not None:
            cache_key = ResultCache.make_key(tool, params)
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for {tool}")
                return copy.deepcopy(cached)

        response = await self.request(METHOD_EXECUTE_TOOL, {"name": tool, "input": params})
        result = to_tool_result(response)

        if cache_key is not None and result.success:
            # Callers own what they get back; the cache keeps its own copy.
            self.cache.set(cache_key, copy.deepcopy(result))
        return result

    async def cleanup(self) -> None:
        """
        Tear the session down: fail outstanding calls, kill the worker and
        clear the cache. Safe to call more than once.
        """
        if not self._closed:
            self._teardown("Session cleaned up")

        current = asyncio.current_task()
        if self._reader_task is not None and self._reader_task is not current:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        await self.transport.wait_closed()

    def _teardown(self, reason: str) -> None:
        # Synchronous so it can run from the timer callback.
        if self._closed:
            return
        self._closed = True
        if self._session_timer is not None:
            self._session_timer.cancel()
            self._session_timer = None
        self.table.fail_all(SessionTerminated(reason))
        self.transport.terminate()
        if self.cache is not None:
            self.cache.clear()
        self.framer.reset()

    def _on_session_timeout(self) -> None:
        logger.warning(
            f"Session timeout ({self.config.session_timeout:.1f}s) reached, terminating worker"
        )
        self._teardown("Session timed out")

    async def _read_loop(self) -> None:
        while True:
            chunk = await self.transport.read_chunk()
            if not chunk:
                break
            for message in self.framer.feed(chunk):
                self._dispatch(message)

        if not self._closed:
            logger.error(f"Worker exited unexpectedly (code={self.transport.returncode})")
            self._teardown("Worker process exited")

    def _dispatch(self, message: Dict[str, Any]) -> None:
        if is_response(message):
            self.table.resolve(message)
        elif "method" in message:
            logger.debug(f"Ignoring worker-initiated message: {message.get('method')}")
        elif "id" in message:
            logger.warning(f"Response without result or error from worker: {message}")
            self.table.resolve(
                {
                    "jsonrpc": message.get("jsonrpc", JSONRPC_VERSION),
                    "id": message["id"],
                    "error": {
                        "code": INTERNAL_ERROR,
                        "message": "Malformed response: missing result and error",
                    },
                }
            )
        else:
            logger.warning(f"Ignoring unrecognized message from worker: {message}")

    def get_stats(self) -> Dict[str, Any]:
        """Session statistics (requests, orphans, cache, uptime)."""
        uptime = time.monotonic() - self._started_at if self._started_at else 0.0
        return {
            "uptime_seconds": uptime,
            "requests_sent": self.requests_sent,
            "pending_calls": len(self.table),
            "orphan_responses": self.table.orphans,
            "cache": self.cache.stats() if self.cache else None,
            "closed": self._closed,
        }
