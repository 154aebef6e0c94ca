"""Worker process transport.

Spawns the worker once, exposes its stdin for writes and its stdout for
chunked reads, and forwards stderr to the log. Nothing read from stderr is
ever interpreted as a protocol message.
"""

import asyncio
import logging
import os
from typing import Dict, List, Optional, Sequence

from toolbridge.rpc.errors import TransportError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536


class ProcessTransport:
    """
    Owns one worker subprocess and its three pipes.

    Usage:
        transport = ProcessTransport(["python", "worker.py"])
        await transport.start()
        await transport.write(b'{"jsonrpc": "2.0", ...}\\n')
        chunk = await transport.read_chunk()
        transport.terminate()
    """

    def __init__(
        self,
        command: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
    ):
        """
        Args:
            command: Program and arguments used to launch the worker
            env: Extra environment variables, merged over ``os.environ``
            cwd: Working directory for the worker
        """
        if not command:
            raise ValueError("Worker command must not be empty")
        self.command: List[str] = list(command)
        self.env = env
        self.cwd = cwd

        self._process: Optional[asyncio.subprocess.Process] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._killed = False

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def is_running(self) -> bool:
        # returncode is only set once the loop reaps the child, so a
        # killed-but-unreaped worker must not count as running.
        return (
            self._process is not None
            and self._process.returncode is None
            and not self._killed
        )

    async def start(self) -> None:
        """
        Launch the worker.

        Raises:
            TransportError: If already started or the process cannot be spawned
        """
        if self._process is not None:
            raise TransportError("Worker process already started")

        env = None
        if self.env:
            env = {**os.environ, **self.env}

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=self.cwd,
            )
        except OSError as e:
            logger.error(f"Failed to start worker {self.command[0]!r}: {e}")
            raise TransportError(f"Failed to start worker: {e}") from e

        logger.info(f"Worker started (pid={self._process.pid}): {' '.join(self.command)}")
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    async def write(self, data: bytes) -> None:
        """
        Write bytes to the worker's stdin.

        Raises:
            TransportError: If the worker is not running or stdin is closed
        """
        if not self.is_running:
            raise TransportError("Worker process is not running")
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            raise TransportError("Worker stdin is closed")
        try:
            stdin.write(data)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise TransportError(f"Worker stdin is closed: {e}") from e

    async def read_chunk(self) -> bytes:
        """Return the next chunk of stdout, or ``b""`` at EOF."""
        if self._process is None or self._process.stdout is None:
            return b""
        return await self._process.stdout.read(READ_CHUNK_SIZE)

    def terminate(self) -> None:
        """Kill the worker. Safe to call repeatedly or after exit."""
        if not self.is_running:
            return
        self._killed = True
        try:
            self._process.kill()
        except ProcessLookupError:
            return
        logger.info(f"Worker killed (pid={self._process.pid})")

    async def wait_closed(self) -> Optional[int]:
        """Reap the worker and stop the stderr forwarder."""
        if self._process is None:
            return None
        returncode = await self._process.wait()
        if self._stderr_task is not None:
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
        return returncode

    async def _drain_stderr(self) -> None:
        stderr = self._process.stderr
        if stderr is None:
            return
        while True:
            line = await stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.warning(f"worker stderr: {text}")
