import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from pinme.schemas.notification import NotificationHistoryItem
from pinme.schemas.reminder_settings import IdleToySettings
from pinme.schemas.toy import ToyRead
from pinme.services.notification_history import NotificationHistory
from pinme.services.notification_scheduler import NotificationScheduler, build_payload
from pinme.services.toy_service import ToyRepository
from pinme.utils.timezone import utcnow

logger = logging.getLogger(__name__)

IDLE_TYPE = "idleToy"
IDLE_TITLE = "Toy misses you 💖"
SMART_SUGGESTION = "How about placing it on the play mat today?"
NEVER_STAGE = "never"
FIXED_STAGE_DAYS = 7
MONTH_DAYS = 30
DAY_SECONDS = 24 * 60 * 60

Stage = Tuple[int, str]  # (threshold in days, stage label)


def idle_source(toy_id: str, stage: str) -> str:
    return f"{IDLE_TYPE}:{toy_id}:{stage}"


def never_played_threshold(days: int) -> int:
    return max(days, FIXED_STAGE_DAYS) if days > 0 else FIXED_STAGE_DAYS


def idle_stages(days_since: int, days: int) -> List[Stage]:
    """Candidate stages, longest threshold first. The sort is stable: on an exact tie the month stage wins."""
    stages: List[Stage] = []
    months = days_since // MONTH_DAYS
    if months >= 1:
        stages.append((months * MONTH_DAYS, f"month:{months}"))
    if days > 0:
        stages.append((days, str(days)))
    if days != FIXED_STAGE_DAYS:
        stages.append((FIXED_STAGE_DAYS, str(FIXED_STAGE_DAYS)))
    stages.sort(key=lambda s: s[0], reverse=True)
    return stages


def due_stage(days_since: int, days: int) -> Optional[Stage]:
    """
    The single stage this pass may notify: the longest threshold already reached.

    Shorter thresholds are never looked at once a longer one is reached, even
    if they were never notified (e.g. after the history was cleared).
    """
    for threshold, label in idle_stages(days_since, days):
        if threshold <= days_since:
            return threshold, label
    return None


def idle_body(name: str, days: int, smart_suggest: bool) -> str:
    body = f"{name} hasn't been played with for {days} days. It misses you!"
    if smart_suggest:
        body = f"{body} {SMART_SUGGESTION}"
    return body


class IdleToyEngine:
    def __init__(
        self,
        toys: ToyRepository,
        history: NotificationHistory,
        notifier: NotificationScheduler,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.toys = toys
        self.history = history
        self.notifier = notifier
        self.clock = clock

    async def run_scan(self, settings: IdleToySettings) -> List[NotificationHistoryItem]:
        """
        Check every toy once and notify at most one idle stage per toy.
        Returns the history items recorded by this pass.
        Callers must not run two scans at the same time.
        """
        if not settings.enabled:
            return []
        try:
            toys = await self.toys.list_toys()
        except Exception as e:
            logger.error(f"❌ [Idle] Scan aborted, could not list toys: {e}")
            return []

        now = self.clock()
        results = await asyncio.gather(*(self._scan_toy_safe(toy, settings, now) for toy in toys))
        fired = [item for item in results if item is not None]
        logger.info(f"🔎 [Idle] Scanned {len(toys)} toys, sent {len(fired)} reminder(s)")
        return fired

    async def _scan_toy_safe(self, toy: ToyRead, settings: IdleToySettings, now: datetime) -> Optional[NotificationHistoryItem]:
        try:
            return await self._scan_toy(toy, settings, now)
        except Exception as e:
            logger.error(f"❌ [Idle] Failed to check toy {toy.id}: {e}")
            return None

    async def _scan_toy(self, toy: ToyRead, settings: IdleToySettings, now: datetime) -> Optional[NotificationHistoryItem]:
        last_scan = await self.toys.last_scan_time(toy.id)
        # A fresh toy without scans counts from its creation, not from the epoch
        last_activity = last_scan or toy.created_at or now
        days_since = int((now - last_activity).total_seconds() // DAY_SECONDS)
        name = toy.name or "Toy"

        if last_scan is None:
            if days_since < never_played_threshold(settings.days):
                return None
            return await self._notify_once(toy.id, NEVER_STAGE, f"{name} has not been played with yet (no play history).")

        stage = due_stage(days_since, settings.days)
        if stage is None:
            return None
        return await self._notify_once(toy.id, stage[1], idle_body(name, days_since, settings.smart_suggest))

    async def _notify_once(self, toy_id: str, stage: str, body: str) -> Optional[NotificationHistoryItem]:
        source = idle_source(toy_id, stage)
        async with self.history.lock_for(source):
            if await self.history.has_source(source):
                return None
            payload = build_payload(IDLE_TITLE, body, {"type": IDLE_TYPE, "toyId": toy_id, "stage": stage}, source=source)
            await self.notifier.deliver_now(payload)
            item = await self.history.record(IDLE_TITLE, body, source, durable=True)
            logger.info(f"💖 [Idle] Sent '{source}'")
            return item

    async def cancel_for_toy(self, toy_id: str) -> int:
        return await self.notifier.cancel_where(lambda data: data.get("type") == IDLE_TYPE and data.get("toyId") == toy_id)

    async def cancel_all(self) -> int:
        return await self.notifier.cancel_where(lambda data: data.get("type") == IDLE_TYPE)

    async def schedule_for_toy(self, toy_id: str, name: Optional[str], settings: IdleToySettings) -> List[str]:
        """
        Replace the toy's future idle reminders with a fresh set counted from now:
        the configured days, 7 days and 30 days (each only once).
        """
        await self.cancel_for_toy(toy_id)
        if not settings.enabled:
            return []

        stages: List[Stage] = [(settings.days, str(settings.days))]
        if settings.days != FIXED_STAGE_DAYS:
            stages.append((FIXED_STAGE_DAYS, str(FIXED_STAGE_DAYS)))
        if settings.days != MONTH_DAYS:
            stages.append((MONTH_DAYS, "month:1"))

        name = name or "Toy"
        job_ids = []
        for days, label in stages:
            payload = build_payload(
                IDLE_TITLE,
                idle_body(name, days, settings.smart_suggest),
                {"type": IDLE_TYPE, "toyId": toy_id, "stage": label},
                source=idle_source(toy_id, label),
                dedupe=True,
            )
            job_id = await self.notifier.schedule_at(days * DAY_SECONDS, payload)
            if job_id:
                job_ids.append(job_id)
        return job_ids
