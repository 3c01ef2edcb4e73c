from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends

from pinme.api.deps import get_runtime, get_settings_store
from pinme.schemas.notification import IdleScanResponse, LongPlayScanResponse, MonitorStatus
from pinme.schemas.reminder_settings import IdleToySettings
from pinme.services.runtime import ReminderRuntime
from pinme.services.settings_store import SettingsStore

router = APIRouter()


@router.post("/idle-scan", response_model=IdleScanResponse)
async def run_idle_scan(
    value: Optional[IdleToySettings] = Body(None),
    runtime: ReminderRuntime = Depends(get_runtime),
    store: SettingsStore = Depends(get_settings_store),
):
    """Run the idle scan now, with the posted settings or the saved ones."""
    idle_settings = value if value is not None else await store.load_idle_toy()
    return IdleScanResponse(fired=await runtime.run_idle_scan(idle_settings))


@router.post("/long-play/start", response_model=MonitorStatus)
async def start_long_play(
    runtime: ReminderRuntime = Depends(get_runtime),
    store: SettingsStore = Depends(get_settings_store),
):
    await runtime.long_play.start(await store.load_long_play())
    return MonitorStatus(subscribed=runtime.long_play.subscribed)


@router.post("/long-play/stop", response_model=MonitorStatus)
async def stop_long_play(runtime: ReminderRuntime = Depends(get_runtime)):
    await runtime.long_play.stop()
    return MonitorStatus(subscribed=runtime.long_play.subscribed)


@router.get("/long-play/scan", response_model=LongPlayScanResponse)
async def scan_long_play(
    runtime: ReminderRuntime = Depends(get_runtime),
    store: SettingsStore = Depends(get_settings_store),
):
    return await runtime.long_play.scan(await store.load_long_play())


@router.get("/scheduled", response_model=List[Dict[str, Any]])
async def list_scheduled(runtime: ReminderRuntime = Depends(get_runtime)):
    """Notification requests currently queued in the scheduler"""
    return runtime.notifier.pending()
