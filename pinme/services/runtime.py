import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import async_sessionmaker

from pinme.core.config import settings
from pinme.core.fcm_manager import FCMManager
from pinme.core.local_cache import JsonFileCache
from pinme.core.security import IdentityProvider, StaticIdentity
from pinme.schemas.notification import NotificationHistoryItem
from pinme.schemas.reminder_settings import (
    IdleToySettings,
    LongPlaySettings,
    SaveResult,
    TidyingSaveResult,
    TidyingSettings,
)
from pinme.schemas.toy import ToyRead
from pinme.services.idle_toy import IdleToyEngine
from pinme.services.long_play import LongPlayMonitor
from pinme.services.notification_history import NotificationHistory, RemoteHistoryMirror
from pinme.services.notification_scheduler import NotificationScheduler
from pinme.services.push_service import PushService
from pinme.services.settings_store import ReminderSettingsRepository, SettingsStore
from pinme.services.tidy_up import TidyUpScheduler
from pinme.services.toy_events import ToyEventHub
from pinme.services.toy_service import ToyRepository
from pinme.utils.timezone import utcnow

logger = logging.getLogger(__name__)

IDLE_SCAN_JOB_ID = "idle_scan_job"


class ReminderRuntime:
    """
    Owns every reminder engine of the hub and the handles they share
    (scheduler, event hub, history, cache). Built once per process by the
    FastAPI lifespan; tests build their own.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        push_sender: FCMManager,
        cache: Optional[JsonFileCache] = None,
        identity: Optional[IdentityProvider] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        clock: Callable[[], datetime] = utcnow,
        idle_scan_interval_hours: int = settings.IDLE_SCAN_INTERVAL_HOURS,
    ):
        self.identity = identity or StaticIdentity(settings.HUB_USER_ID)
        self.cache = cache or JsonFileCache(settings.LOCAL_CACHE_PATH)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=settings.TIMEZONE)
        self.idle_scan_interval_hours = idle_scan_interval_hours

        self.settings_repository = ReminderSettingsRepository(session_factory)
        self.settings_store = self.settings_for(self.identity)
        self.history = NotificationHistory(
            self.cache,
            limit=settings.HISTORY_LIMIT,
            mirror=RemoteHistoryMirror(session_factory),
            identity=self.identity,
        )
        self.notifier = NotificationScheduler(self.scheduler, PushService(session_factory, push_sender), self.history, self.identity)
        self.toys = ToyRepository(session_factory)
        self.events = ToyEventHub()

        self.idle_engine = IdleToyEngine(self.toys, self.history, self.notifier, clock=clock)
        self.long_play = LongPlayMonitor(
            self.toys,
            self.events,
            self.notifier,
            self.history,
            self.idle_engine,
            idle_settings=self.settings_store.load_idle_toy,
            clock=clock,
        )
        self.tidy_up = TidyUpScheduler(self.notifier, self.history)
        self._scan_lock = asyncio.Lock()

    def settings_for(self, identity: IdentityProvider) -> SettingsStore:
        return SettingsStore(self.cache, self.settings_repository, identity)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("🚀 Notification scheduler started")

        await self.settings_store.sync_local_from_remote()
        await self.long_play.start(await self.settings_store.load_long_play())
        await self.tidy_up.apply(await self.settings_store.load_tidying())

        if self.idle_scan_interval_hours > 0:
            self.scheduler.add_job(
                self.scheduled_idle_scan,
                "interval",
                hours=self.idle_scan_interval_hours,
                id=IDLE_SCAN_JOB_ID,
                replace_existing=True,
            )
            logger.info(f"🔎 Idle scan runs every {self.idle_scan_interval_hours}h")

    async def shutdown(self) -> None:
        await self.long_play.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # The stop is queued on the event loop; let it run
            await asyncio.sleep(0)
            logger.info("🛑 Notification scheduler stopped")

    # ------------------------------------------------------------------
    # Idle scan
    # ------------------------------------------------------------------

    async def run_idle_scan(self, idle_settings: Optional[IdleToySettings] = None) -> List[NotificationHistoryItem]:
        # Scans are not re-entrant; queue behind one in flight
        async with self._scan_lock:
            if idle_settings is None:
                idle_settings = await self.settings_store.load_idle_toy()
            return await self.idle_engine.run_scan(idle_settings)

    async def scheduled_idle_scan(self) -> None:
        """Background job run by APScheduler"""
        try:
            logger.info("⏰ Running scheduled idle scan...")
            await self.run_idle_scan()
        except Exception as e:
            logger.error(f"❌ Error in scheduled idle scan: {e}")

    # ------------------------------------------------------------------
    # Saves with side effects
    # ------------------------------------------------------------------

    async def save_long_play(self, value: LongPlaySettings, store: Optional[SettingsStore] = None) -> SaveResult:
        value = LongPlaySettings.normalize(value)
        result = await (store or self.settings_store).save_long_play(value)
        await self.long_play.stop()
        if value.enabled:
            await self.long_play.start(value)
        else:
            await self.long_play.cancel_all()
        return result

    async def save_idle_toy(self, value: IdleToySettings, store: Optional[SettingsStore] = None) -> SaveResult:
        value = IdleToySettings.normalize(value)
        result = await (store or self.settings_store).save_idle_toy(value)
        if not value.enabled:
            await self.idle_engine.cancel_all()
        return result

    async def save_tidying(self, value: TidyingSettings, store: Optional[SettingsStore] = None) -> TidyingSaveResult:
        value = TidyingSettings.normalize(value)
        result = await (store or self.settings_store).save_tidying(value)
        applied = await self.tidy_up.apply(value, announce=True)
        return TidyingSaveResult(
            remote_saved=result.remote_saved,
            error=result.error,
            scheduled=applied.scheduled,
            dnd_warning=applied.dnd_warning,
        )

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------

    async def set_toy_status(self, toy_id: str, status: str, scanned: bool = False) -> Optional[ToyRead]:
        row = await self.toys.set_status(toy_id, status, scanned=scanned)
        if row is not None:
            await self.events.publish(row.model_dump())
        return row
