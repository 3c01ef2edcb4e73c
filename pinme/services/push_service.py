import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from pinme.core.fcm_manager import FCMManager
from pinme.models.device_token import DeviceToken

logger = logging.getLogger(__name__)


class PushService:
    """Delivers a notification payload to the devices registered in ``device_tokens``."""

    def __init__(self, session_factory: async_sessionmaker, sender: FCMManager):
        self._session_factory = session_factory
        self.sender = sender

    async def _tokens(self, user_id: Optional[str]) -> List[str]:
        async with self._session_factory() as db:
            query = select(DeviceToken.token)
            if user_id:
                query = query.filter(DeviceToken.user_id == str(user_id))
            result = await db.execute(query)
            return [t for t in result.scalars().all() if t]

    async def _clear_stale_token(self, token: str) -> None:
        """Drop a token that Firebase says is invalid"""
        try:
            async with self._session_factory() as db:
                await db.execute(delete(DeviceToken).where(DeviceToken.token == token))
                await db.commit()
            logger.info(f"🧹 [Cleanup] Removed stale FCM token {token[:20]}...")
        except Exception as e:
            logger.error(f"❌ [Cleanup] Failed to remove token: {e}")

    async def deliver(self, payload: dict, user_id: Optional[str] = None) -> bool:
        """Returns True when at least one device accepted the push."""
        if payload.get("push") is False:
            return False
        try:
            tokens = await self._tokens(user_id)
        except Exception as e:
            logger.error(f"❌ [Push] Could not load device tokens: {e}")
            return False

        sent = False
        for token in tokens:
            try:
                response = await self.sender.send_notification(
                    token=token,
                    title=payload.get("title", ""),
                    body=payload.get("body", ""),
                    data=payload.get("data"),
                )
                sent = sent or response is not None
            except ValueError as e:
                if str(e) == "STALE_TOKEN":
                    await self._clear_stale_token(token)
            except Exception as e:
                logger.error(f"❌ [Push] Error sending push: {e}")
        return sent
