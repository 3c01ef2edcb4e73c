import pytest

from pinme.schemas.reminder_settings import TidyingSettings
from pinme.services.tidy_up import TidyUpScheduler, day_of_week_for, parse_time, within_dnd


@pytest.mark.parametrize("fire_time, start, end, expected", [
    ("23:00", "22:00", "07:00", True),
    ("06:59", "22:00", "07:00", True),
    ("07:00", "22:00", "07:00", False),
    ("20:00", "22:00", "07:00", False),
    ("22:00", "22:00", "07:00", True),
    ("13:00", "12:00", "14:00", True),
    ("14:00", "12:00", "14:00", False),
    ("10:00", "10:00", "10:00", False),
    ("10:00", "", "07:00", False),
    ("10:00", "garbage", "07:00", False),
])
def test_within_dnd(fire_time, start, end, expected):
    assert within_dnd(fire_time, start, end) is expected


def test_parse_time():
    assert parse_time("7:05") == (7, 5)
    assert parse_time("99:99") == (23, 59)
    assert parse_time(None) == (20, 0)


def test_day_of_week_for():
    assert day_of_week_for("daily") == "*"
    assert day_of_week_for("weekdays") == "mon-fri"
    assert day_of_week_for("weekends") == "sat,sun"
    assert day_of_week_for("1010001") == "mon,wed,sun"
    assert day_of_week_for("0000000") is None


async def test_apply_schedules_one_recurring_reminder(notifier, history):
    tidy = TidyUpScheduler(notifier, history)

    result = await tidy.apply(TidyingSettings(enabled=True, time="19:30", repeat="weekdays"), announce=True)
    result = await tidy.apply(TidyingSettings(enabled=True, time="19:45", repeat="weekdays"), announce=True)

    assert result.scheduled == 1
    assert result.dnd_warning is False
    assert len(notifier.recurring) == 1
    job = notifier.recurring[0]
    assert (job["hour"], job["minute"], job["day_of_week"]) == (19, 45, "mon-fri")
    assert job["data"]["type"] == "tidyUp"
    assert job["source"] == "smartTidying"
    assert [i.source for i in await history.items()] == ["smartTidying", "smartTidying"]


async def test_apply_warns_inside_dnd(notifier, history):
    result = await TidyUpScheduler(notifier, history).apply(
        TidyingSettings(enabled=True, time="23:00", dnd_start="22:00", dnd_end="07:00")
    )
    assert result.scheduled == 1
    assert result.dnd_warning is True


async def test_apply_disabled_cancels(notifier, history):
    tidy = TidyUpScheduler(notifier, history)
    await tidy.apply(TidyingSettings(enabled=True))

    result = await tidy.apply(TidyingSettings(enabled=False))

    assert result.scheduled == 0
    assert notifier.recurring == []


async def test_empty_mask_schedules_nothing(notifier, history):
    result = await TidyUpScheduler(notifier, history).apply(TidyingSettings(enabled=True, repeat="0000000"))
    assert result.scheduled == 0
    assert notifier.recurring == []


async def test_reapplying_on_boot_records_nothing(notifier, history):
    result = await TidyUpScheduler(notifier, history).apply(TidyingSettings(enabled=True))

    assert result.scheduled == 1
    assert await history.items() == []
