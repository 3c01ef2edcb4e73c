import asyncio
import json
import logging
import secrets
import time
from typing import Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from pinme.core.local_cache import JsonFileCache
from pinme.core.security import IdentityProvider
from pinme.models.notification import Notification
from pinme.schemas.notification import NotificationHistoryItem

logger = logging.getLogger(__name__)

HISTORY_KEY = "notification_history"
SENT_KEY = "notification_sent_sources"


class RemoteHistoryMirror:
    """Copies recorded items into the ``notifications`` table for signed-in users."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def insert(self, user_id: str, item: NotificationHistoryItem) -> None:
        async with self._session_factory() as db:
            db.add(Notification(
                user_id=str(user_id),
                title=item.title,
                body=item.body,
                source=item.source,
                data={"history_id": item.id, "source": item.source},
            ))
            await db.commit()


class NotificationHistory:
    """
    Append-only log of notifications that were actually shown.

    The ``source`` of an item is the dedupe token: ``idleToy:<toy>:<stage>``
    present in the log means that stage was already notified. The log lives in
    the local cache and keeps the newest ``limit`` items. Sources recorded with
    ``durable=True`` are also kept in a separate uncapped set, so a once-ever
    stage stays notified after its log item has been evicted.
    """

    def __init__(
        self,
        cache: JsonFileCache,
        limit: int = 200,
        mirror: Optional[RemoteHistoryMirror] = None,
        identity: Optional[IdentityProvider] = None,
    ):
        self.cache = cache
        self.limit = limit
        self.mirror = mirror
        self.identity = identity
        self._write_lock = asyncio.Lock()
        self._key_locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, key: str) -> asyncio.Lock:
        """Lock guarding the check -> notify -> record sequence for one dedupe key."""
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock

    async def _load(self) -> List[NotificationHistoryItem]:
        try:
            raw = await self.cache.get(HISTORY_KEY)
        except Exception as e:
            logger.error(f"❌ [History] Failed to read history: {e}")
            return []
        if not raw:
            return []
        try:
            entries = json.loads(raw)
        except ValueError:
            logger.warning("⚠️ [History] Stored history is not valid JSON, ignoring it")
            return []
        if not isinstance(entries, list):
            return []

        items = []
        for entry in entries:
            try:
                items.append(NotificationHistoryItem.model_validate(entry))
            except ValidationError:
                continue
        return items

    async def items(self) -> List[NotificationHistoryItem]:
        """Oldest first, as recorded."""
        return await self._load()

    async def _load_sent(self) -> List[str]:
        try:
            raw = await self.cache.get(SENT_KEY)
        except Exception as e:
            logger.error(f"❌ [History] Failed to read sent sources: {e}")
            return []
        if not raw:
            return []
        try:
            sources = json.loads(raw)
        except ValueError:
            logger.warning("⚠️ [History] Stored sent sources are not valid JSON, ignoring them")
            return []
        return [s for s in sources if isinstance(s, str)] if isinstance(sources, list) else []

    async def has_source(self, source: str) -> bool:
        if source in await self._load_sent():
            return True
        return any(item.source == source for item in await self._load())

    async def record(
        self,
        title: str,
        body: Optional[str],
        source: Optional[str] = None,
        durable: bool = False,
    ) -> NotificationHistoryItem:
        now_ms = int(time.time() * 1000)
        item = NotificationHistoryItem(
            id=f"{now_ms}_{secrets.token_hex(3)}",
            title=title,
            body=body,
            timestamp=now_ms,
            source=source,
        )
        async with self._write_lock:
            items = await self._load()
            items.append(item)
            payload = json.dumps([i.model_dump() for i in items[-self.limit:]])
            try:
                await self.cache.set(HISTORY_KEY, payload)
            except Exception as e:
                # The notification already went out; a later pass may repeat it
                logger.error(f"❌ [History] Failed to record '{source}': {e}")

            if durable and source:
                await self._remember(source)

        await self._mirror(item)
        return item

    async def _remember(self, source: str) -> None:
        sent = await self._load_sent()
        if source in sent:
            return
        sent.append(source)
        try:
            await self.cache.set(SENT_KEY, json.dumps(sent))
        except Exception as e:
            logger.error(f"❌ [History] Failed to remember '{source}': {e}")

    async def _mirror(self, item: NotificationHistoryItem) -> None:
        if self.mirror is None or self.identity is None:
            return
        user_id = self.identity.current_user_id()
        if not user_id:
            return
        try:
            await self.mirror.insert(user_id, item)
        except Exception as e:
            logger.warning(f"⚠️ [History] Remote mirror failed for user {user_id}: {e}")

    async def clear(self) -> None:
        async with self._write_lock:
            try:
                await self.cache.delete(HISTORY_KEY)
                await self.cache.delete(SENT_KEY)
            except Exception as e:
                logger.error(f"❌ [History] Failed to clear history: {e}")
