"""
Debounce buffer for inbound chat fragments.

Fragments from one sender are collected until no new fragment arrives for
`debounce_seconds`; then they are joined with newlines and handed to the
handler on a shared worker pool. Every read and write of the pending map
happens on the event loop thread, so appending a fragment, re-arming the
timer and the timer firing can never interleave. Batches for one sender are
delivered one at a time, in the order they were flushed.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from simbot.config import settings
from simbot.logging_config import get_logger
from simbot.services.log_sanitizer import mask_phone

logger = get_logger("message_buffer")

FlushHandler = Callable[[str, str, Any], None]


@dataclass
class PendingEntry:
    fragments: List[str] = field(default_factory=list)
    routing: Any = None
    timer: Optional[asyncio.TimerHandle] = None


class MessageBuffer:
    def __init__(
        self,
        handler: FlushHandler,
        debounce_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.handler = handler
        self.debounce_seconds = debounce_seconds if debounce_seconds is not None else settings.debounce_seconds
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.buffer_workers, thread_name_prefix="message-buffer"
        )
        self._pending: Dict[str, PendingEntry] = {}
        self._in_flight: Set[asyncio.Future] = set()
        self._delivering: Dict[str, asyncio.Future] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def add_message(self, sender_key: str, text: str, routing: Any = None) -> int:
        """
        Append a fragment and (re)arm the quiescence timer.

        Must be called from the event loop thread. Returns the number of
        fragments now buffered for the sender.
        """
        loop = asyncio.get_running_loop()
        self._loop = loop

        entry = self._pending.get(sender_key)
        if entry is None:
            entry = PendingEntry()
            self._pending[sender_key] = entry
        elif entry.timer is not None:
            entry.timer.cancel()

        entry.fragments.append(text)
        if routing is not None:
            entry.routing = routing
        entry.timer = loop.call_later(self.debounce_seconds, self._fire, sender_key, entry)

        logger.info(
            "Message buffered",
            extra={"context": {"sender": mask_phone(sender_key), "buffered": len(entry.fragments)}},
        )
        return len(entry.fragments)

    def get_buffer_size(self, sender_key: str) -> int:
        entry = self._pending.get(sender_key)
        return len(entry.fragments) if entry else 0

    def _fire(self, sender_key: str, expected: Optional[PendingEntry] = None) -> None:
        entry = self._pending.get(sender_key)
        if entry is None or (expected is not None and entry is not expected):
            # A stale timer; the current entry has its own.
            return
        del self._pending[sender_key]
        if not entry.fragments:
            return

        coalesced = "\n".join(entry.fragments)
        logger.info(
            "Flushing buffered messages",
            extra={"context": {"sender": mask_phone(sender_key), "fragments": len(entry.fragments)}},
        )
        loop = self._loop or asyncio.get_running_loop()
        previous = self._delivering.get(sender_key)
        task = loop.create_task(self._deliver(sender_key, coalesced, entry.routing, previous))
        self._delivering[sender_key] = task
        self._in_flight.add(task)
        task.add_done_callback(lambda done: self._finish(sender_key, done))

    def _finish(self, sender_key: str, task: asyncio.Future) -> None:
        self._in_flight.discard(task)
        if self._delivering.get(sender_key) is task:
            del self._delivering[sender_key]

    async def _deliver(self, sender_key: str, text: str, routing: Any, previous: Optional[asyncio.Future]) -> None:
        # One delivery per sender at a time, in flush order.
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._dispatch, sender_key, text, routing)

    def _dispatch(self, sender_key: str, text: str, routing: Any) -> None:
        # Fragments are not re-queued on failure; delivery retry belongs to the handler.
        try:
            self.handler(sender_key, text, routing)
        except Exception:
            logger.exception(f"Failed to process buffered messages for {mask_phone(sender_key)}")

    async def wait_idle(self) -> None:
        """Wait until every dispatched batch has been handled."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def shutdown(self) -> None:
        """Flush whatever is still pending, wait for it, then stop the pool."""
        for sender_key in list(self._pending):
            entry = self._pending[sender_key]
            if entry.timer is not None:
                entry.timer.cancel()
            self._fire(sender_key)
        await self.wait_idle()
        self._executor.shutdown(wait=True)
