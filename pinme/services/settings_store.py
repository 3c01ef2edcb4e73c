from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from pinme.core.local_cache import JsonFileCache
from pinme.core.security import IdentityProvider
from pinme.models.reminder_setting import ReminderSetting
from pinme.schemas.reminder_settings import (
    NOT_LOGGED_IN,
    IdleToySettings,
    LongPlaySettings,
    SaveResult,
    TidyingSettings,
)
from pinme.services import settings_codec

logger = logging.getLogger(__name__)


class ReminderSettingsRepository:
    """Remote copy of the settings: one ``reminder_settings`` row per user."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def fetch(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as db:
            result = await db.execute(select(ReminderSetting).filter(ReminderSetting.user_id == str(user_id)))
            row = result.scalars().first()
            if not row:
                return None
            return {c.name: getattr(row, c.name) for c in ReminderSetting.__table__.columns}

    async def upsert(self, user_id: str, fields: Dict[str, Any]) -> None:
        async with self._session_factory() as db:
            result = await db.execute(select(ReminderSetting).filter(ReminderSetting.user_id == str(user_id)))
            row = result.scalars().first()
            if not row:
                row = ReminderSetting(user_id=str(user_id))
            for key, value in fields.items():
                if hasattr(row, key):
                    setattr(row, key, value)
            db.add(row)
            await db.commit()


@dataclass(frozen=True)
class SettingsKind:
    name: str
    cache_key: str
    model: type
    decode: Callable[[Dict[str, Any]], Any]
    encode: Callable[[Any], Dict[str, Any]]


LONG_PLAY = SettingsKind("long_play", "reminder_longplay_settings", LongPlaySettings,
                         settings_codec.decode_long_play, settings_codec.encode_long_play)
IDLE_TOY = SettingsKind("idle_toy", "reminder_idletoy_settings", IdleToySettings,
                        settings_codec.decode_idle_toy, settings_codec.encode_idle_toy)
TIDYING = SettingsKind("tidying", "smart_tidying_settings", TidyingSettings,
                       settings_codec.decode_tidying, settings_codec.encode_tidying)
ALL_KINDS = (LONG_PLAY, IDLE_TOY, TIDYING)


class SettingsStore:
    """
    Resolves the three reminder bundles.

    The local cache is read first and is always available. For a signed-in
    user the remote row wins on load and is written back into the cache.
    Saves write the cache first, then the remote row. No I/O failure escapes:
    callers always get a valid bundle or a SaveResult.
    """

    def __init__(self, cache: JsonFileCache, repository: ReminderSettingsRepository, identity: IdentityProvider):
        self.cache = cache
        self.repository = repository
        self.identity = identity

    async def _read_local(self, kind: SettingsKind):
        try:
            raw = await self.cache.get(kind.cache_key)
        except Exception as e:
            logger.error(f"❌ [Settings] Failed to read local {kind.name} settings: {e}")
            raw = None
        return kind.model.normalize(raw) if raw else kind.model()

    async def _write_local(self, kind: SettingsKind, value) -> None:
        try:
            await self.cache.set(kind.cache_key, value.to_cache())
        except Exception as e:
            logger.error(f"❌ [Settings] Failed to cache {kind.name} settings: {e}")

    async def _fetch_row(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.repository.fetch(user_id)
        except Exception as e:
            logger.error(f"❌ [Settings] Remote fetch failed for user {user_id}: {e}")
            return None

    async def _load(self, kind: SettingsKind):
        local = await self._read_local(kind)
        user_id = self.identity.current_user_id()
        if not user_id:
            return local

        row = await self._fetch_row(user_id)
        remote = kind.decode(row) if row else None
        if remote is None:
            return local
        await self._write_local(kind, remote)
        return remote

    async def _save(self, kind: SettingsKind, value) -> SaveResult:
        value = kind.model.normalize(value)
        await self._write_local(kind, value)

        user_id = self.identity.current_user_id()
        if not user_id:
            return SaveResult(remote_saved=False, error=NOT_LOGGED_IN)

        try:
            await self.repository.upsert(user_id, kind.encode(value))
        except Exception as e:
            logger.error(f"❌ [Settings] Remote save of {kind.name} failed for user {user_id}: {e}")
            return SaveResult(remote_saved=False, error=str(e) or e.__class__.__name__)
        logger.info(f"💾 [Settings] Saved {kind.name} settings for user {user_id}")
        return SaveResult(remote_saved=True)

    async def load_long_play(self) -> LongPlaySettings:
        return await self._load(LONG_PLAY)

    async def save_long_play(self, value: LongPlaySettings) -> SaveResult:
        return await self._save(LONG_PLAY, value)

    async def load_idle_toy(self) -> IdleToySettings:
        return await self._load(IDLE_TOY)

    async def save_idle_toy(self, value: IdleToySettings) -> SaveResult:
        return await self._save(IDLE_TOY, value)

    async def load_tidying(self) -> TidyingSettings:
        return await self._load(TIDYING)

    async def save_tidying(self, value: TidyingSettings) -> SaveResult:
        return await self._save(TIDYING, value)

    async def sync_local_from_remote(self) -> bool:
        """
        Overwrite all three cached bundles from the user's remote row. A bundle the
        row does not carry is reset to defaults. Returns True if a row was applied.
        """
        user_id = self.identity.current_user_id()
        if not user_id:
            return False
        row = await self._fetch_row(user_id)
        if not row:
            return False
        for kind in ALL_KINDS:
            remote = kind.decode(row)
            await self._write_local(kind, remote if remote is not None else kind.model())
        logger.info(f"🔄 [Settings] Local cache synced from remote for user {user_id}")
        return True
