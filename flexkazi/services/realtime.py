"""
Realtime sync: turns database change events into serialized dashboard reloads.

Listener callbacks arrive on the SDK's background thread. They only enqueue;
a single dispatcher task on the event loop drains the queue, so a burst of
changes produces one reload and two reloads never overlap.
"""
import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from flexkazi.core.config import get_settings
from flexkazi.core.errors import FlexKaziError
from flexkazi.core.logging import get_logger
from flexkazi.models.schemas import Dashboard

logger = get_logger(__name__)

ChangeHandler = Callable[[List[Any]], Awaitable[None]]


class RealtimeSync:
    def __init__(self, db_ops, on_change: ChangeHandler, path: str = "tasks", debounce: Optional[float] = None):
        self.db_ops = db_ops
        self.on_change = on_change
        self.path = path
        self.debounce = get_settings().sync_debounce if debounce is None else debounce
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._registration = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._dispatcher is not None and not self._stopped

    def start(self) -> None:
        """Subscribe and begin dispatching. Must be called from a running event loop."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._stopped = False
        self._dispatcher = self._loop.create_task(self._dispatch())
        try:
            self._registration = self.db_ops.listen(self.path, self._on_event)
        except FlexKaziError:
            self._dispatcher.cancel()
            self._dispatcher = None
            raise
        logger.info(f"Listening for changes under '{self.path}'")

    def stop(self) -> None:
        """Unsubscribe every listener and cancel the dispatcher."""
        self._stopped = True
        if self._registration is not None:
            self._registration.close()
            self._registration = None
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            self._dispatcher = None
        logger.info(f"Stopped listening under '{self.path}'")

    def trigger(self, event: Any = "refresh") -> None:
        """Queue a reload from the event loop, coalesced and serialized with database changes."""
        if self._stopped or self._queue is None:
            return
        self._queue.put_nowait(event)

    def _on_event(self, event: Any) -> None:
        if self._stopped or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # Loop already closed while the listener thread was delivering
            logger.debug("Dropped change event after loop shutdown")

    async def _dispatch(self) -> None:
        while True:
            first = await self._queue.get()
            if self.debounce:
                await asyncio.sleep(self.debounce)
            events = [first]
            while not self._queue.empty():
                events.append(self._queue.get_nowait())
            try:
                await self.on_change(events)
            except FlexKaziError as e:
                logger.warning(f"Reload after {len(events)} change(s) failed: {e.message}")
            except Exception:
                logger.exception("Unexpected error while handling change events")


def change_notices(previous: Optional[Dashboard], current: Dashboard) -> List[str]:
    """User-facing notices for tasks that newly showed up since the previous load."""
    if previous is None:
        return []

    def ids(tasks: Iterable) -> set:
        return {t.id for t in tasks}

    before, after = previous.buckets, current.buckets
    held_before = ids(before.priority + before.assigned + before.in_progress + before.completed)
    held_after = ids(after.priority + after.assigned + after.in_progress + after.completed)

    notices = []
    if held_after - held_before:
        notices.append("New task assigned!")
    if ids(after.available) - ids(before.available):
        notices.append("New task available!")
    return notices
