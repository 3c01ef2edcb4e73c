from datetime import timedelta

import pytest

from pinme.core.security import StaticIdentity
from pinme.models.toy import Toy
from pinme.schemas.reminder_settings import NOT_LOGGED_IN, IdleToySettings, LongPlaySettings, TidyingSettings
from pinme.services.runtime import IDLE_SCAN_JOB_ID, ReminderRuntime
from pinme.utils.timezone import utcnow

from conftest import FakeSender


@pytest.fixture
async def runtime(session_factory, cache, scheduler):
    now = utcnow()
    async with session_factory() as db:
        db.add_all([
            Toy(id="t1", name="Robot", status="in", created_at=now - timedelta(days=60), updated_at=now),
            Toy(id="t2", name="Bunny", status="in", created_at=now - timedelta(days=60), updated_at=now),
        ])
        await db.commit()
    runtime = ReminderRuntime(
        session_factory,
        FakeSender(),
        cache=cache,
        identity=StaticIdentity(None),
        scheduler=scheduler,
        idle_scan_interval_hours=0,
    )
    yield runtime
    await runtime.shutdown()


def labels(runtime, type_):
    return sorted(p["data"]["stage"] for p in runtime.notifier.pending() if p["data"]["type"] == type_)


async def test_toy_status_change_drives_long_play(runtime):
    result = await runtime.save_long_play(LongPlaySettings(enabled=True, duration_min=30))
    assert result.error == NOT_LOGGED_IN
    assert runtime.long_play.subscribed

    row = await runtime.set_toy_status("t1", "out", scanned=True)
    await runtime.events.drain()

    assert row.status == "out"
    assert labels(runtime, "longPlay") == ["1440", "30", "35", "45"]


async def test_toy_back_in_schedules_idle_reminders(runtime):
    await runtime.save_idle_toy(IdleToySettings(enabled=True, days=10))
    await runtime.save_long_play(LongPlaySettings(enabled=True))

    await runtime.set_toy_status("t1", "out")
    await runtime.set_toy_status("t1", "in")
    await runtime.events.drain()

    assert labels(runtime, "longPlay") == []
    assert labels(runtime, "idleToy") == ["10", "7", "month:1"]


async def test_disabling_long_play_cancels_everything(runtime):
    await runtime.save_long_play(LongPlaySettings(enabled=True))
    await runtime.set_toy_status("t2", "out")
    await runtime.events.drain()

    await runtime.save_long_play(LongPlaySettings(enabled=False))

    assert not runtime.long_play.subscribed
    assert labels(runtime, "longPlay") == []


async def test_disabling_idle_cancels_idle_reminders(runtime):
    await runtime.idle_engine.schedule_for_toy("t1", "Robot", IdleToySettings(enabled=True))
    await runtime.save_idle_toy(IdleToySettings(enabled=False))
    assert labels(runtime, "idleToy") == []


async def test_save_tidying_reports_schedule(runtime):
    result = await runtime.save_tidying(TidyingSettings(enabled=True, time="22:30"))

    assert result.error == NOT_LOGGED_IN
    assert result.scheduled == 1
    assert result.dnd_warning is True
    assert [p["data"]["type"] for p in runtime.notifier.pending()] == ["tidyUp"]
    assert [i.title for i in await runtime.history.items()] == ["Scheduled smart tidy-up"]


async def test_idle_scan_uses_saved_settings(runtime):
    assert await runtime.run_idle_scan() == []

    await runtime.save_idle_toy(IdleToySettings(enabled=True, days=14))
    fired = await runtime.run_idle_scan()

    assert sorted(i.source for i in fired) == ["idleToy:t1:never", "idleToy:t2:never"]
    assert await runtime.run_idle_scan() == []


async def test_unknown_toy_publishes_nothing(runtime):
    await runtime.save_long_play(LongPlaySettings(enabled=True))
    assert await runtime.set_toy_status("ghost", "out") is None
    await runtime.events.drain()
    assert runtime.notifier.pending() == []


async def test_start_registers_periodic_scan(session_factory, cache, scheduler):
    runtime = ReminderRuntime(session_factory, FakeSender(), cache=cache, identity=StaticIdentity(None),
                              scheduler=scheduler, idle_scan_interval_hours=6)
    try:
        await runtime.start()
        assert scheduler.running
        assert scheduler.get_job(IDLE_SCAN_JOB_ID) is not None
    finally:
        await runtime.shutdown()
    assert not scheduler.running
