from datetime import datetime
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from pinme.models.play_session import PlaySession
from pinme.models.toy import Toy
from pinme.schemas.toy import ToyRead
from pinme.utils.timezone import ensure_aware, utcnow

logger = logging.getLogger(__name__)


def _snapshot(toy: Toy) -> ToyRead:
    snap = ToyRead.model_validate(toy)
    snap.created_at = ensure_aware(snap.created_at)
    snap.updated_at = ensure_aware(snap.updated_at)
    return snap


class ToyRepository:
    """Read side of ``toys`` / ``play_sessions`` plus the status write that feeds change events."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def list_toys(self) -> List[ToyRead]:
        async with self._session_factory() as db:
            result = await db.execute(select(Toy).order_by(Toy.created_at))
            return [_snapshot(t) for t in result.scalars().all()]

    async def toys_with_status(self, status: str) -> List[ToyRead]:
        async with self._session_factory() as db:
            result = await db.execute(select(Toy).filter(Toy.status == status))
            return [_snapshot(t) for t in result.scalars().all()]

    async def last_scan_time(self, toy_id: str) -> Optional[datetime]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(PlaySession.scan_time)
                .filter(PlaySession.toy_id == toy_id)
                .order_by(PlaySession.scan_time.desc())
                .limit(1)
            )
            return ensure_aware(result.scalars().first())

    async def latest_scan_times(self, toy_ids: Iterable[str]) -> Dict[str, datetime]:
        ids = list(toy_ids)
        if not ids:
            return {}
        async with self._session_factory() as db:
            result = await db.execute(
                select(PlaySession.toy_id, func.max(PlaySession.scan_time))
                .filter(PlaySession.toy_id.in_(ids))
                .group_by(PlaySession.toy_id)
            )
            return {toy_id: ensure_aware(scan_time) for toy_id, scan_time in result.all() if scan_time}

    async def set_status(self, toy_id: str, status: str, scanned: bool = False) -> Optional[ToyRead]:
        """Update a toy's status and return the post-update row (None for unknown toys)."""
        now = utcnow()
        async with self._session_factory() as db:
            toy = await db.get(Toy, toy_id)
            if not toy:
                return None
            toy.status = status
            toy.updated_at = now
            if scanned:
                db.add(PlaySession(toy_id=toy_id, scan_time=now))
            db.add(toy)
            await db.commit()
            await db.refresh(toy)
            logger.info(f"🧸 Toy {toy_id} is now '{status}'" + (" (scanned)" if scanned else ""))
            return _snapshot(toy)
