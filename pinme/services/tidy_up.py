import logging
import re
from typing import Optional, Tuple

from pinme.schemas.reminder_settings import TidyingSaveResult, TidyingSettings
from pinme.services.notification_history import NotificationHistory
from pinme.services.notification_scheduler import NotificationScheduler, build_payload

logger = logging.getLogger(__name__)

TIDY_TYPE = "tidyUp"
TIDY_SOURCE = "smartTidying"
TIDY_TITLE = "Tidy-up time!"
TIDY_BODY = "It's time to help toys go home! Tap to view the checklist."

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_DAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def parse_time(value: Optional[str]) -> Tuple[int, int]:
    """"HH:MM" -> (hour, minute), clamped into range; 20:00 when unparsable."""
    match = _CLOCK_RE.match((value or "").strip())
    hour = int(match.group(1)) if match else 20
    minute = int(match.group(2)) if match else 0
    return min(23, max(0, hour)), min(59, max(0, minute))


def _minutes_of_day(value: Optional[str]) -> Optional[int]:
    match = _CLOCK_RE.match((value or "").strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour * 60 + minute


def within_dnd(fire_time: str, dnd_start: Optional[str], dnd_end: Optional[str]) -> bool:
    """
    Is ``fire_time`` inside the do-not-disturb window [start, end)?
    A window with start > end wraps past midnight. A blank, unparsable or
    empty (start == end) window contains nothing.
    """
    t = _minutes_of_day(fire_time)
    start = _minutes_of_day(dnd_start)
    end = _minutes_of_day(dnd_end)
    if t is None or start is None or end is None or start == end:
        return False
    if start < end:
        return start <= t < end
    return t >= start or t < end


def day_of_week_for(repeat: str) -> Optional[str]:
    """Cron day-of-week field for a repeat mode; None when the mask selects no day."""
    if repeat == "weekdays":
        return "mon-fri"
    if repeat == "weekends":
        return "sat,sun"
    if len(repeat) == 7 and set(repeat) <= {"0", "1"}:
        days = [name for name, flag in zip(_DAY_NAMES, repeat) if flag == "1"]
        return ",".join(days) if days else None
    return "*"


class TidyUpScheduler:
    def __init__(self, notifier: NotificationScheduler, history: NotificationHistory):
        self.notifier = notifier
        self.history = history

    async def apply(self, settings: TidyingSettings, announce: bool = False) -> TidyingSaveResult:
        """
        Drop every tidy-up reminder, then schedule the one the settings ask for.
        ``announce`` records the new schedule in the history (a user save, not a reboot).
        """
        await self.notifier.cancel_where(lambda data: data.get("type") == TIDY_TYPE)
        if not settings.enabled:
            return TidyingSaveResult()

        hour, minute = parse_time(settings.time)
        fire_time = f"{hour:02d}:{minute:02d}"
        dnd_warning = within_dnd(fire_time, settings.dnd_start, settings.dnd_end)
        if dnd_warning:
            # Still scheduled; silencing is up to the phone
            logger.warning(f"⚠️ [Tidy] {fire_time} falls inside do-not-disturb {settings.dnd_start}-{settings.dnd_end}")

        day_of_week = day_of_week_for(settings.repeat)
        if day_of_week is None:
            logger.info("ℹ️ [Tidy] Repeat mask selects no day, nothing scheduled")
            return TidyingSaveResult(dnd_warning=dnd_warning)

        payload = build_payload(TIDY_TITLE, TIDY_BODY, {"type": TIDY_TYPE, "repeat": settings.repeat}, source=TIDY_SOURCE)
        job_id = await self.notifier.schedule_recurring(hour, minute, day_of_week, payload)
        if announce:
            await self.history.record("Scheduled smart tidy-up", f"At {fire_time} · {settings.repeat}", TIDY_SOURCE)
        return TidyingSaveResult(scheduled=1 if job_id else 0, dnd_warning=dnd_warning)
