"""
Broadcast hub fanning out stored readings to live viewers.

Every viewer owns a bounded queue and a worker task that drains it in
order into the viewer's ``send`` callable. Publishing only enqueues, so
the publisher never waits on a viewer's connection. A viewer whose
``send`` fails, or whose queue is full when a reading arrives, is
dropped on its own; the other viewers and the publisher are unaffected.
Dropped viewers catch up through the recent-readings query.
"""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Dict, Optional, Set

from models.reading import StoredReading


logger = logging.getLogger(__name__)


Sender = Callable[[StoredReading], Awaitable[None]]
DropCallback = Callable[[], Awaitable[None]]


class DeliveryFailure(Exception):
    """A single viewer could not be handed a reading."""

    def __init__(self, viewer_id: str, reason: str):
        self.viewer_id = viewer_id
        self.reason = reason
        super().__init__(f"Delivery to viewer {viewer_id} failed: {reason}")


class ViewerHandle:
    """
    A subscribed viewer.

    Returned by ``BroadcastHub.subscribe`` and passed back to
    ``BroadcastHub.unsubscribe``.

    Attributes:
        id: Unique viewer identifier
        delivered: Number of readings handed to ``send`` so far
    """

    def __init__(self, send: Sender, queue_size: int, on_drop: Optional[DropCallback] = None):
        self.id = uuid.uuid4().hex
        self.delivered = 0
        self._send = send
        self._on_drop = on_drop
        self._queue: asyncio.Queue[StoredReading] = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Readings queued but not yet handed to ``send``."""
        return self._queue.qsize()

    async def drain(self) -> None:
        """Wait until every reading queued so far has been delivered or discarded."""
        await self._queue.join()

    def _offer(self, reading: StoredReading) -> bool:
        try:
            self._queue.put_nowait(reading)
        except asyncio.QueueFull:
            return False
        return True

    def _close(self) -> None:
        """Mark closed, stop the worker and discard undelivered readings."""
        self._closed = True
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    def __repr__(self) -> str:
        return f"ViewerHandle(id={self.id!r}, closed={self._closed}, pending={self.pending})"


class BroadcastHub:
    """
    Registry of live viewers and fan-out of newly stored readings.

    The viewer registry is the only shared mutable state; subscribe,
    unsubscribe and publish all take the hub lock, and none of them
    awaits a viewer while holding it.

    Attributes:
        queue_size: Readings buffered per viewer before it counts as too slow
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._viewers: Dict[str, ViewerHandle] = {}
        self._lock = asyncio.Lock()
        self._drop_tasks: Set[asyncio.Task] = set()

    @property
    def viewer_count(self) -> int:
        return len(self._viewers)

    async def subscribe(self, send: Sender, on_drop: Optional[DropCallback] = None) -> ViewerHandle:
        """
        Register a viewer.

        The viewer receives readings published after this call returns;
        earlier readings are not replayed.

        Args:
            send: Coroutine function delivering one reading to the viewer
            on_drop: Coroutine function awaited once if the hub drops the
                viewer (failed send or full queue); not called on unsubscribe

        Returns:
            The viewer's handle
        """
        handle = ViewerHandle(send, self.queue_size, on_drop=on_drop)
        async with self._lock:
            self._viewers[handle.id] = handle
            handle._task = asyncio.create_task(
                self._deliver(handle), name=f"viewer-{handle.id}"
            )

        logger.info(
            f"Viewer subscribed. Total viewers: {len(self._viewers)}",
            extra={"extra_data": {"viewer_id": handle.id, "total_viewers": len(self._viewers)}}
        )
        return handle

    async def unsubscribe(self, handle: ViewerHandle) -> None:
        """
        Deregister a viewer and stop delivery to it.

        Safe to call more than once, and after the viewer was already
        dropped by the hub.
        """
        async with self._lock:
            removed = self._viewers.pop(handle.id, None)
            if handle.closed:
                return
            handle._close()

        if removed is not None:
            logger.info(
                f"Viewer unsubscribed. Total viewers: {len(self._viewers)}",
                extra={"extra_data": {"viewer_id": handle.id, "total_viewers": len(self._viewers)}}
            )

    async def publish(self, reading: StoredReading) -> int:
        """
        Queue a reading for every subscribed viewer.

        Does not wait for delivery. A viewer with a full queue is dropped.

        Args:
            reading: The stored reading to broadcast

        Returns:
            Number of viewers the reading was queued for
        """
        queued = 0
        async with self._lock:
            for handle in list(self._viewers.values()):
                if handle._offer(reading):
                    queued += 1
                else:
                    self._drop(handle, DeliveryFailure(handle.id, "viewer queue full"))
        return queued

    async def _deliver(self, handle: ViewerHandle) -> None:
        """Worker task: hand queued readings to the viewer in order."""
        while True:
            reading = await handle._queue.get()
            try:
                await handle._send(reading)
                handle.delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                failure = DeliveryFailure(handle.id, f"{type(e).__name__}: {e}")
                break
            finally:
                handle._queue.task_done()

        async with self._lock:
            if not handle.closed:
                self._drop(handle, failure)

    def _drop(self, handle: ViewerHandle, failure: DeliveryFailure) -> None:
        """Remove a viewer the hub gave up on. Caller holds the lock."""
        self._viewers.pop(handle.id, None)
        handle._close()
        logger.warning(
            str(failure),
            extra={"extra_data": {
                "viewer_id": failure.viewer_id,
                "reason": failure.reason,
                "remaining_viewers": len(self._viewers),
            }}
        )
        if handle._on_drop is not None:
            task = asyncio.create_task(self._notify_drop(handle))
            self._drop_tasks.add(task)
            task.add_done_callback(self._drop_tasks.discard)

    async def _notify_drop(self, handle: ViewerHandle) -> None:
        try:
            await handle._on_drop()
        except Exception as e:
            logger.debug(f"Drop callback for viewer {handle.id} failed: {e}")

    async def close(self) -> None:
        """Drop every viewer and wait for their workers to stop."""
        async with self._lock:
            handles = list(self._viewers.values())
            self._viewers.clear()
            for handle in handles:
                handle._close()

        tasks = [h._task for h in handles if h._task is not None]
        tasks.extend(self._drop_tasks)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
