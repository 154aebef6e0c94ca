"""Session-scoped table of outstanding calls.

Each call registers a future keyed by its identifier; the reader task
resolves it when the matching response arrives. Responses are matched by
identifier only, so they may arrive in any order.

Thread safety: NOT thread-safe. The table lives inside one asyncio loop
and is only touched from that loop.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class PendingCall:
    """A call that has been written to the worker but not yet answered."""
    call_id: str
    future: "asyncio.Future[Dict[str, Any]]"
    issued_at: float = field(default_factory=time.monotonic)

    @property
    def age(self) -> float:
        return time.monotonic() - self.issued_at


class CorrelationTable:
    """Maps call identifiers to the futures awaiting their responses."""

    def __init__(self) -> None:
        self._pending: Dict[str, PendingCall] = {}
        self.orphans = 0

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, call_id: object) -> bool:
        return str(call_id) in self._pending

    def register(self, call_id: str) -> PendingCall:
        """
        Register a new outstanding call.

        Raises:
            ValueError: If ``call_id`` is already pending
        """
        if call_id in self._pending:
            raise ValueError(f"Call id already pending: {call_id}")
        loop = asyncio.get_running_loop()
        pending = PendingCall(call_id=call_id, future=loop.create_future())
        self._pending[call_id] = pending
        return pending

    def resolve(self, response: Dict[str, Any]) -> bool:
        """
        Hand a response to the call waiting on its identifier.

        Unknown and already-resolved identifiers are logged as orphans.

        Returns:
            True if a pending call was resolved
        """
        raw_id = response.get("id")
        pending = self._pending.pop(str(raw_id), None) if raw_id is not None else None
        if pending is None:
            self.orphans += 1
            logger.warning(f"Orphan response from worker (id={raw_id!r}), ignoring")
            return False
        if pending.future.done():
            # Caller gave up (cancelled) before the reply arrived.
            logger.debug(f"Response for {pending.call_id} arrived after caller left")
            return False
        pending.future.set_result(response)
        return True

    def discard(self, call_id: str) -> Optional[PendingCall]:
        """Forget a call without resolving it."""
        return self._pending.pop(call_id, None)

    def fail_all(self, exc: BaseException) -> int:
        """
        Fail every outstanding call with ``exc`` and empty the table.

        Returns:
            Number of calls that were failed
        """
        pending, self._pending = self._pending, {}
        failed = 0
        for call in pending.values():
            if not call.future.done():
                call.future.set_exception(exc)
                failed += 1
        if failed:
            logger.info(f"Failed {failed} outstanding call(s): {exc}")
        return failed
