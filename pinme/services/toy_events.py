import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)

ToyRowHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class Subscription:
    """
    One subscriber's view of toy UPDATE events.

    Events are queued and handed to the handler one at a time, in arrival
    order, by a dedicated worker task. A failing handler is logged and the
    worker moves on to the next event.
    """

    def __init__(self, hub: "ToyEventHub", handler: ToyRowHandler, name: str):
        self.hub = hub
        self.handler = handler
        self.name = name
        self.queue: asyncio.Queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name=f"toy-events:{name}")

    async def _run(self):
        while True:
            row = await self.queue.get()
            try:
                await self.handler(row)
            except Exception as e:
                logger.error(f"❌ [{self.name}] Handler failed for toy {row.get('id')}: {e}")
            finally:
                self.queue.task_done()

    async def close(self):
        self.hub._remove(self)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class ToyEventHub:
    """In-process fan-out of post-update ``toys`` rows."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def subscribe(self, handler: ToyRowHandler, name: str = "subscriber") -> Subscription:
        sub = Subscription(self, handler, name)
        self._subscriptions.append(sub)
        logger.info(f"📡 [{name}] Subscribed to toy updates")
        return sub

    def _remove(self, sub: Subscription):
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
            logger.info(f"📴 [{sub.name}] Unsubscribed from toy updates")

    async def publish(self, row: Dict[str, Any]) -> None:
        for sub in list(self._subscriptions):
            sub.queue.put_nowait(dict(row))

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        for sub in list(self._subscriptions):
            await sub.queue.join()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
