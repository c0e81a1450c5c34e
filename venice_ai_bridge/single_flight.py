"""
Single-flight coordination per conversation id.

While a prompt is running for a conversation, further requests for that
conversation attach to the running execution and receive its outcome instead
of driving the tab a second time.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PendingRequest:
    conversation_id: str
    future: asyncio.Future
    created_at: float = field(default_factory=time.monotonic)
    owner: Optional[asyncio.Task] = None


class SingleFlight:
    """Registry of in-flight executions keyed by conversation id."""

    def __init__(self, stale_after: float = 300.0, sweep_interval: float = 300.0):
        """
        Args:
            stale_after: Seconds after which an entry is pruned by the sweep.
            sweep_interval: Seconds between two sweeps.
        """
        self.stale_after = stale_after
        self.sweep_interval = sweep_interval
        self._pending: Dict[str, PendingRequest] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._pending

    async def run_exclusive(self, conversation_id: str, work: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run ``work`` unless an execution for ``conversation_id`` is already in
        flight, in which case wait for that one and return its outcome.
        """
        entry = self._pending.get(conversation_id)
        if entry is not None:
            logger.debug(f"Waiting for ongoing request for chat {conversation_id}")
            # shield: a caller giving up must not cancel the shared result
            return await asyncio.shield(entry.future)

        loop = asyncio.get_running_loop()
        entry = PendingRequest(
            conversation_id=conversation_id,
            future=loop.create_future(),
            owner=asyncio.current_task(),
        )
        self._pending[conversation_id] = entry

        try:
            result = await work()
        except asyncio.CancelledError:
            self._release(entry)
            entry.future.cancel()
            raise
        except Exception as exc:
            self._release(entry)
            entry.future.set_exception(exc)
            # Mark retrieved; nobody may be attached to this future.
            entry.future.exception()
            raise

        self._release(entry)
        entry.future.set_result(result)
        return result

    def _release(self, entry: PendingRequest) -> None:
        # The entry may have been pruned and replaced by a newer execution.
        if self._pending.get(entry.conversation_id) is entry:
            del self._pending[entry.conversation_id]

    def prune_stale(self, now: Optional[float] = None) -> int:
        """Drop entries older than ``stale_after``. Running work is not cancelled."""
        now = time.monotonic() if now is None else now
        stale = [
            key for key, entry in self._pending.items()
            if now - entry.created_at > self.stale_after
        ]
        for key in stale:
            logger.info(f"Pruning stale ongoing request of {key}")
            del self._pending[key]
        return len(stale)

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.prune_stale()

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever())

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def drain(self, timeout: float) -> int:
        """
        Wait up to ``timeout`` seconds for in-flight executions, then cancel
        whatever is still running. Returns the number of cancelled executions.
        """
        entries = list(self._pending.values())
        if not entries:
            return 0

        logger.info(f"Waiting for {len(entries)} in-flight request(s) to finish...")
        _, still_running = await asyncio.wait([e.future for e in entries], timeout=timeout)

        cancelled = 0
        for entry in entries:
            if entry.future in still_running and entry.owner is not None and not entry.owner.done():
                logger.warning(f"Cancelling in-flight request for chat {entry.conversation_id}")
                entry.owner.cancel()
                cancelled += 1
        return cancelled
