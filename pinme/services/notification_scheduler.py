import logging
import uuid
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from pinme.core.security import IdentityProvider
from pinme.services.notification_history import NotificationHistory
from pinme.services.push_service import PushService
from pinme.utils.timezone import utcnow

logger = logging.getLogger(__name__)

DataPredicate = Callable[[Dict[str, Any]], bool]


def build_payload(
    title: str,
    body: str,
    data: Dict[str, Any],
    source: Optional[str] = None,
    push: bool = True,
    dedupe: bool = False,
) -> Dict[str, Any]:
    """
    A notification request. ``data`` is the tag used for cancellation
    (``type``/``toyId``/``stage``); ``source`` is what lands in the history when
    it fires; ``dedupe`` skips delivery if that source is already recorded.
    """
    return {
        "title": title,
        "body": body,
        "data": dict(data),
        "source": source,
        "push": push,
        "dedupe": dedupe,
    }


class NotificationScheduler:
    """
    Schedule / cancel / deliver capability on top of APScheduler.

    One-shot requests become date-triggered jobs, recurring ones cron jobs.
    Jobs belong to the scheduler, not to whoever scheduled them, so they still
    fire after the component that created them has stopped.
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        push: PushService,
        history: NotificationHistory,
        identity: IdentityProvider,
    ):
        self.scheduler = scheduler
        self.push = push
        self.history = history
        self.identity = identity

    async def schedule_at(self, delay_seconds: float, payload: Dict[str, Any]) -> Optional[str]:
        if delay_seconds <= 0:
            return None
        run_date = utcnow() + timedelta(seconds=delay_seconds)
        job = self.scheduler.add_job(
            self._fire,
            "date",
            run_date=run_date,
            kwargs={"payload": payload},
            id=uuid.uuid4().hex,
            name=payload.get("source") or payload["data"].get("type"),
            misfire_grace_time=None,
        )
        logger.info(f"⏰ Scheduled '{payload['title']}' for {run_date.isoformat()} ({payload['data']})")
        return job.id

    async def schedule_recurring(self, hour: int, minute: int, day_of_week: str, payload: Dict[str, Any]) -> Optional[str]:
        job = self.scheduler.add_job(
            self._fire,
            "cron",
            hour=hour,
            minute=minute,
            day_of_week=day_of_week,
            kwargs={"payload": payload},
            id=uuid.uuid4().hex,
            name=payload["data"].get("type"),
        )
        logger.info(f"🔁 Scheduled recurring '{payload['title']}' at {hour:02d}:{minute:02d} ({day_of_week})")
        return job.id

    def pending(self) -> List[Dict[str, Any]]:
        payloads = []
        for job in self.scheduler.get_jobs():
            payload = job.kwargs.get("payload")
            if isinstance(payload, dict):
                payloads.append(payload)
        return payloads

    async def cancel_where(self, predicate: DataPredicate) -> int:
        cancelled = 0
        for job in self.scheduler.get_jobs():
            payload = job.kwargs.get("payload")
            if not isinstance(payload, dict):
                continue
            try:
                matches = predicate(payload.get("data") or {})
            except Exception as e:
                logger.error(f"❌ Cancel predicate failed on job {job.id}: {e}")
                continue
            if matches:
                job.remove()
                cancelled += 1
        if cancelled:
            logger.info(f"🗑️ Cancelled {cancelled} scheduled notification(s)")
        return cancelled

    async def deliver_now(self, payload: Dict[str, Any]) -> bool:
        return await self.push.deliver(payload, user_id=self.identity.current_user_id())

    async def _fire(self, payload: Dict[str, Any]) -> None:
        source = payload.get("source")
        try:
            if not (source and payload.get("dedupe")):
                await self.deliver_now(payload)
                if source:
                    await self.history.record(payload["title"], payload.get("body"), source)
                return
            async with self.history.lock_for(source):
                if await self.history.has_source(source):
                    logger.info(f"⏭️ Skipping '{source}', already notified")
                    return
                await self.deliver_now(payload)
                await self.history.record(payload["title"], payload.get("body"), source, durable=True)
        except Exception as e:
            logger.error(f"❌ Error firing scheduled notification {source}: {e}")
