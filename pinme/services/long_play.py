import logging
import time
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pinme.schemas.notification import LongPlayScanResponse, NotificationHistoryItem
from pinme.schemas.reminder_settings import IdleToySettings, LongPlaySettings
from pinme.services.idle_toy import IdleToyEngine
from pinme.services.notification_history import NotificationHistory
from pinme.services.notification_scheduler import NotificationScheduler, build_payload
from pinme.services.toy_events import Subscription, ToyEventHub
from pinme.services.toy_service import ToyRepository
from pinme.utils.timezone import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

LONG_PLAY_TYPE = "longPlay"
LONG_PLAY_TITLE = "Time for a break!"
SCAN_TITLE = "Long Play"
FULL_DAY_MINUTES = 1440
RECENT_UPDATE_SECONDS = 60
STALE_SCAN_SECONDS = 600
SCAN_TOP_N = 3
SCAN_HISTORY_LIMIT = 20
SCAN_DUPLICATE_WINDOW_MS = 180_000


def resolve_session_start(updated_at: Optional[datetime], last_scan: Optional[datetime], now: datetime) -> datetime:
    """
    When did the current play session begin?

    Normally at the last reader scan. A status flipped by hand (no scan) shows
    up as a fresh ``updated_at`` next to an old scan; counting from that old
    scan would report hours of play, so the update time is used instead.
    """
    recent_update = updated_at is not None and abs((now - updated_at).total_seconds()) <= RECENT_UPDATE_SECONDS
    stale_scan = last_scan is None or (now - last_scan).total_seconds() > STALE_SCAN_SECONDS
    if recent_update and stale_scan:
        return updated_at
    return last_scan or updated_at or now


def ladder_offsets(duration_min: int) -> List[int]:
    return sorted({duration_min, duration_min + 5, duration_min + 15, FULL_DAY_MINUTES})


def long_play_body(name: Optional[str], owner: Optional[str], minutes: int) -> str:
    owner_label = f"{owner}'s " if owner else ""
    return f"{owner_label}{name or 'Toy'} has been played for {minutes} minutes. Time for a gentle eye break! 👀"


class LongPlayMonitor:
    """
    Reacts to toy status changes: a toy going "out" starts a play session and
    gets a ladder of break reminders; a toy coming back "in" loses them and is
    handed to the idle engine.

    The subscription state lives on the instance; whoever composes the
    engines owns the monitor.
    """

    def __init__(
        self,
        toys: ToyRepository,
        events: ToyEventHub,
        notifier: NotificationScheduler,
        history: NotificationHistory,
        idle_engine: IdleToyEngine,
        idle_settings: Callable[[], Awaitable[IdleToySettings]],
        clock: Callable[[], datetime] = utcnow,
    ):
        self.toys = toys
        self.events = events
        self.notifier = notifier
        self.history = history
        self.idle_engine = idle_engine
        self.idle_settings = idle_settings
        self.clock = clock

        self.subscribed = False
        self.subscription: Optional[Subscription] = None
        self.settings: Optional[LongPlaySettings] = None

    async def start(self, settings: LongPlaySettings) -> bool:
        """Subscribe to toy updates. Returns False when disabled or already running."""
        self.settings = settings
        if not settings.enabled or self.subscribed:
            return False
        try:
            self.subscription = self.events.subscribe(self.handle_toy_update, name="long-play-monitor")
        except Exception as e:
            logger.error(f"❌ [LongPlay] Could not subscribe to toy updates: {e}")
            self.subscribed = False
            return False
        self.subscribed = True
        logger.info(f"🚀 [LongPlay] Monitor started ({settings.duration_min} min)")
        await self._recover_playing_toys()
        return True

    async def stop(self) -> None:
        """Unsubscribe. Already scheduled reminders stay scheduled."""
        subscription, self.subscription = self.subscription, None
        self.subscribed = False
        if subscription is not None:
            try:
                await subscription.close()
            except Exception as e:
                logger.error(f"❌ [LongPlay] Error while unsubscribing: {e}")
        logger.info("🛑 [LongPlay] Monitor stopped")

    async def _recover_playing_toys(self) -> None:
        # Toys that were already out when we (re)started keep their session
        try:
            playing = await self.toys.toys_with_status("out")
        except Exception as e:
            logger.error(f"❌ [LongPlay] Could not list playing toys: {e}")
            return
        for toy in playing:
            try:
                await self._start_session(toy.model_dump())
            except Exception as e:
                logger.error(f"❌ [LongPlay] Could not reschedule toy {toy.id}: {e}")

    async def handle_toy_update(self, row: Dict[str, Any]) -> None:
        toy_id = row.get("id")
        if not toy_id or self.settings is None:
            return
        if row.get("status") == "out":
            await self._start_session(row)
            return

        await self.cancel_for_toy(toy_id)
        idle_settings = await self.idle_settings()
        await self.idle_engine.schedule_for_toy(toy_id, row.get("name"), idle_settings)

    async def _last_scan(self, toy_id: str) -> Optional[datetime]:
        try:
            return await self.toys.last_scan_time(toy_id)
        except Exception as e:
            logger.warning(f"⚠️ [LongPlay] Could not read last scan of toy {toy_id}: {e}")
            return None

    async def _start_session(self, row: Dict[str, Any]) -> None:
        toy_id = row["id"]
        now = self.clock()
        last_scan = await self._last_scan(toy_id)
        start = resolve_session_start(parse_timestamp(row.get("updated_at")), last_scan, now)
        await self.schedule_ladder(toy_id, row.get("name"), row.get("owner"), start)
        await self.idle_engine.cancel_for_toy(toy_id)

    async def schedule_ladder(self, toy_id: str, name: Optional[str], owner: Optional[str], start: datetime) -> List[str]:
        """Replace the toy's break reminders; rungs already in the past are skipped, not caught up."""
        await self.cancel_for_toy(toy_id)
        settings = self.settings or LongPlaySettings()
        now = self.clock()

        job_ids = []
        for minutes in ladder_offsets(settings.duration_min):
            delay = (start + timedelta(minutes=minutes) - now).total_seconds()
            if delay <= 0:
                continue
            payload = build_payload(
                LONG_PLAY_TITLE,
                long_play_body(name, owner, minutes),
                {"type": LONG_PLAY_TYPE, "toyId": toy_id, "stage": str(minutes)},
                source=f"{LONG_PLAY_TYPE}:{toy_id}:{minutes}" if settings.methods.in_app else None,
                push=settings.methods.push,
            )
            job_id = await self.notifier.schedule_at(delay, payload)
            if job_id:
                job_ids.append(job_id)
        logger.info(f"⏱️ [LongPlay] Toy {toy_id} session from {start.isoformat()}, {len(job_ids)} reminder(s) queued")
        return job_ids

    async def cancel_for_toy(self, toy_id: str) -> int:
        return await self.notifier.cancel_where(lambda data: data.get("type") == LONG_PLAY_TYPE and data.get("toyId") == toy_id)

    async def cancel_all(self) -> int:
        return await self.notifier.cancel_where(lambda data: data.get("type") == LONG_PLAY_TYPE)

    async def scan(self, settings: LongPlaySettings) -> LongPlayScanResponse:
        """
        Toys currently out for longer than the threshold (the three longest),
        recorded into the history. Falls back to recent long-play history.
        """
        now = self.clock()
        live = []
        try:
            playing = await self.toys.toys_with_status("out")
            latest = await self.toys.latest_scan_times([t.id for t in playing])
        except Exception as e:
            logger.error(f"❌ [LongPlay] Live scan failed: {e}")
            playing, latest = [], {}

        for toy in playing:
            start = latest.get(toy.id)
            if not start:
                continue
            minutes = int((now - start).total_seconds() // 60)
            if minutes >= settings.duration_min:
                live.append((minutes, toy))
        live.sort(key=lambda entry: entry[0], reverse=True)
        live = live[:SCAN_TOP_N]

        history = await self.history.items()
        if not live:
            recent = [h for h in history if (h.source or "").lower().startswith(LONG_PLAY_TYPE.lower())]
            recent.sort(key=lambda h: h.timestamp, reverse=True)
            return LongPlayScanResponse(title="Recent Long Play reminders", live=False, items=recent[:SCAN_HISTORY_LIMIT])

        now_ms = int(time.time() * 1000)
        items: List[NotificationHistoryItem] = []
        for minutes, toy in live:
            body = long_play_body(toy.name, toy.owner, minutes)
            duplicate = next(
                (h for h in history if h.title == SCAN_TITLE and h.body == body and now_ms - h.timestamp < SCAN_DUPLICATE_WINDOW_MS),
                None,
            )
            if duplicate is not None:
                items.append(duplicate)
                continue
            items.append(await self.history.record(SCAN_TITLE, body, f"{LONG_PLAY_TYPE}:scan:{toy.id}:{minutes}"))
        return LongPlayScanResponse(title="Currently exceeding play threshold", live=True, items=items)
