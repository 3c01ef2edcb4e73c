from fastapi import APIRouter, Depends

from pinme.api.deps import get_runtime, get_settings_store
from pinme.schemas.reminder_settings import (
    IdleToySettings,
    LongPlaySettings,
    SaveResult,
    TidyingSaveResult,
    TidyingSettings,
)
from pinme.services.runtime import ReminderRuntime
from pinme.services.settings_store import SettingsStore

router = APIRouter()


@router.get("/long-play", response_model=LongPlaySettings)
async def get_long_play(store: SettingsStore = Depends(get_settings_store)):
    return await store.load_long_play()


@router.put("/long-play", response_model=SaveResult)
async def save_long_play(
    value: LongPlaySettings,
    store: SettingsStore = Depends(get_settings_store),
    runtime: ReminderRuntime = Depends(get_runtime),
):
    """Save and restart the monitor; disabling also drops every queued break reminder."""
    return await runtime.save_long_play(value, store)


@router.get("/idle-toy", response_model=IdleToySettings)
async def get_idle_toy(store: SettingsStore = Depends(get_settings_store)):
    return await store.load_idle_toy()


@router.put("/idle-toy", response_model=SaveResult)
async def save_idle_toy(
    value: IdleToySettings,
    store: SettingsStore = Depends(get_settings_store),
    runtime: ReminderRuntime = Depends(get_runtime),
):
    return await runtime.save_idle_toy(value, store)


@router.get("/tidying", response_model=TidyingSettings)
async def get_tidying(store: SettingsStore = Depends(get_settings_store)):
    return await store.load_tidying()


@router.put("/tidying", response_model=TidyingSaveResult)
async def save_tidying(
    value: TidyingSettings,
    store: SettingsStore = Depends(get_settings_store),
    runtime: ReminderRuntime = Depends(get_runtime),
):
    """Save and reschedule the tidy-up reminder. ``dndWarning`` flags a time inside do-not-disturb."""
    return await runtime.save_tidying(value, store)


@router.post("/sync")
async def sync_settings(store: SettingsStore = Depends(get_settings_store)):
    return {"synced": await store.sync_local_from_remote()}
