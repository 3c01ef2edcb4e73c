import os

# Must be set before pinme.core.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from pinme.core.database import Base
from pinme.core.local_cache import JsonFileCache
from pinme.core.security import StaticIdentity
from pinme.schemas.toy import ToyRead
from pinme.services.notification_history import NotificationHistory
import pinme.models  # noqa: F401  registers the tables

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeToyRepository:
    """In-memory stand-in for ToyRepository."""

    def __init__(self):
        self.toys: Dict[str, ToyRead] = {}
        self.scans: Dict[str, datetime] = {}
        self.failing: set = set()

    def add(self, toy_id, name="Teddy", owner=None, status="in", created_at=None, updated_at=None, last_scan=None):
        self.toys[toy_id] = ToyRead(
            id=toy_id, name=name, owner=owner, status=status,
            created_at=created_at or NOW - timedelta(days=365),
            updated_at=updated_at,
        )
        if last_scan is not None:
            self.scans[toy_id] = last_scan
        return self.toys[toy_id]

    async def list_toys(self) -> List[ToyRead]:
        return list(self.toys.values())

    async def toys_with_status(self, status: str) -> List[ToyRead]:
        return [t for t in self.toys.values() if t.status == status]

    async def last_scan_time(self, toy_id: str) -> Optional[datetime]:
        if toy_id in self.failing:
            raise RuntimeError(f"lookup failed for {toy_id}")
        return self.scans.get(toy_id)

    async def latest_scan_times(self, toy_ids):
        return {i: self.scans[i] for i in toy_ids if i in self.scans}


class RecordingNotifier:
    """Captures what the engines schedule, cancel and deliver."""

    def __init__(self):
        self.scheduled: List[dict] = []
        self.recurring: List[dict] = []
        self.delivered: List[dict] = []
        self.cancelled = 0

    async def schedule_at(self, delay_seconds, payload):
        if delay_seconds <= 0:
            return None
        self.scheduled.append({"delay": delay_seconds, **payload})
        return f"job-{len(self.scheduled)}"

    async def schedule_recurring(self, hour, minute, day_of_week, payload):
        self.recurring.append({"hour": hour, "minute": minute, "day_of_week": day_of_week, **payload})
        return f"cron-{len(self.recurring)}"

    def pending(self):
        return self.scheduled + self.recurring

    async def cancel_where(self, predicate):
        before = len(self.scheduled) + len(self.recurring)
        self.scheduled = [p for p in self.scheduled if not predicate(p["data"])]
        self.recurring = [p for p in self.recurring if not predicate(p["data"])]
        removed = before - len(self.scheduled) - len(self.recurring)
        self.cancelled += removed
        return removed

    async def deliver_now(self, payload):
        self.delivered.append(payload)
        return True


class FakeSender:
    def __init__(self):
        self.sent: List[dict] = []
        self.stale: set = set()

    async def send_notification(self, token, title, body, data=None):
        if token in self.stale:
            raise ValueError("STALE_TOKEN")
        self.sent.append({"token": token, "title": title, "body": body, "data": data})
        return f"msg-{len(self.sent)}"


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def cache(tmp_path):
    return JsonFileCache(str(tmp_path / "local_cache.json"))


@pytest.fixture
def history(cache):
    return NotificationHistory(cache)


@pytest.fixture
def toys():
    return FakeToyRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def signed_out():
    return StaticIdentity(None)


@pytest.fixture
def scheduler():
    # Never started: jobs stay pending and can be inspected or removed
    return AsyncIOScheduler(timezone="UTC")


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pinme.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()
