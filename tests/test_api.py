from contextlib import asynccontextmanager
from datetime import timedelta

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from pinme.api.v1.api import api_router
from pinme.core.database import Base
from pinme.core.local_cache import JsonFileCache
from pinme.core.config import settings
from pinme.core.security import ALGORITHM, StaticIdentity
from pinme.models.toy import Toy
from pinme.services.runtime import ReminderRuntime
from pinme.utils.timezone import utcnow

from conftest import FakeSender


@pytest.fixture
def client(tmp_path):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
        async with session_factory() as db:
            db.add(Toy(id="t1", name="Robot", status="in", created_at=utcnow() - timedelta(days=40)))
            await db.commit()

        runtime = ReminderRuntime(
            session_factory,
            FakeSender(),
            cache=JsonFileCache(str(tmp_path / "cache.json")),
            identity=StaticIdentity(None),
            scheduler=AsyncIOScheduler(timezone="UTC"),
            idle_scan_interval_hours=0,
        )
        app.state.runtime = runtime
        await runtime.start()
        yield
        await runtime.shutdown()
        await engine.dispose()

    app = FastAPI(lifespan=lifespan)
    app.include_router(api_router, prefix="/api/v1")
    with TestClient(app) as client:
        yield client


def test_settings_defaults_and_save_signed_out(client):
    resp = client.get("/api/v1/settings/long-play")
    assert resp.status_code == 200
    assert resp.json() == {"enabled": False, "durationMin": 45, "methods": {"push": True, "inApp": True}}

    resp = client.put("/api/v1/settings/idle-toy", json={"enabled": True, "days": 5})
    assert resp.json() == {"remoteSaved": False, "error": "not_logged_in"}
    assert client.get("/api/v1/settings/idle-toy").json()["days"] == 5


def test_settings_saved_remotely_when_signed_in(client):
    token = jwt.encode({"sub": "parent-1"}, settings.SECRET_KEY, algorithm=ALGORITHM)
    headers = {"Authorization": f"Bearer {token}"}

    resp = client.put("/api/v1/settings/tidying", json={"enabled": True, "time": "23:15"}, headers=headers)

    body = resp.json()
    assert body["remoteSaved"] is True
    assert body["scheduled"] == 1
    assert body["dndWarning"] is True
    assert client.post("/api/v1/settings/sync", headers=headers).json() == {"synced": True}
    assert client.post("/api/v1/settings/sync").json() == {"synced": False}


def test_invalid_token_is_treated_as_signed_out(client):
    resp = client.put("/api/v1/settings/long-play", json={"enabled": False}, headers={"Authorization": "Bearer nope"})
    assert resp.json()["error"] == "not_logged_in"


def test_idle_scan_and_history(client):
    resp = client.post("/api/v1/reminders/idle-scan", json={"enabled": True, "days": 14})
    fired = resp.json()["fired"]
    assert [i["source"] for i in fired] == ["idleToy:t1:never"]

    history = client.get("/api/v1/notifications/").json()
    assert [i["source"] for i in history] == ["idleToy:t1:never"]

    assert client.delete("/api/v1/notifications/").status_code == 204
    assert client.get("/api/v1/notifications/").json() == []


def test_toy_status_and_long_play(client):
    client.put("/api/v1/settings/long-play", json={"enabled": True, "durationMin": 20})

    resp = client.patch("/api/v1/toys/t1/status", json={"status": "out", "scanned": True})
    assert resp.status_code == 200
    assert resp.json()["status"] == "out"

    assert client.patch("/api/v1/toys/ghost/status", json={"status": "out"}).status_code == 404
    assert client.patch("/api/v1/toys/t1/status", json={"status": "lost"}).status_code == 422

    assert client.post("/api/v1/reminders/long-play/stop").json() == {"subscribed": False}
    assert client.post("/api/v1/reminders/long-play/start").json() == {"subscribed": True}

    scan = client.get("/api/v1/reminders/long-play/scan").json()
    assert scan["live"] is False
    assert isinstance(client.get("/api/v1/reminders/scheduled").json(), list)
