import json
import re
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional

NOT_LOGGED_IN = "not_logged_in"

DEFAULT_DURATION_MIN = 45
DEFAULT_IDLE_DAYS = 14
DEFAULT_TIDY_TIME = "20:00"
DEFAULT_REPEAT = "daily"
DEFAULT_DND_START = "22:00"
DEFAULT_DND_END = "07:00"

_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")
_MASK_RE = re.compile(r"^[01]{7}$")
REPEAT_MODES = ("daily", "weekdays", "weekends")


def coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def coerce_positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = int(float(value)) if isinstance(value, (int, float)) else int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def coerce_clock(value: Any, default: str, allow_blank: bool = False) -> str:
    if value is None:
        return default
    text = str(value).strip()
    if allow_blank and text == "":
        return ""
    return text if _TIME_RE.match(text) else default


def coerce_repeat(value: Any) -> str:
    if not isinstance(value, str):
        return DEFAULT_REPEAT
    text = value.strip().lower()
    if text in REPEAT_MODES or _MASK_RE.match(text):
        return text
    return DEFAULT_REPEAT


def _as_mapping(raw: Any) -> dict:
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return {}
    return dict(raw) if isinstance(raw, dict) else {}


class _ReminderBundle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def normalize(cls, raw: Any):
        """Repair a loosely-typed stored value (JSON text or dict) into the canonical shape."""
        if isinstance(raw, cls):
            return raw
        return cls.model_validate(_as_mapping(raw))

    def to_cache(self) -> str:
        return json.dumps(self.model_dump(by_alias=True))


class DeliveryMethods(_ReminderBundle):
    push: bool = True
    in_app: bool = Field(True, alias="inApp")

    @field_validator("push", "in_app", mode="before")
    @classmethod
    def _bools(cls, v):
        return coerce_bool(v, True)


class LongPlaySettings(_ReminderBundle):
    enabled: bool = False
    duration_min: int = Field(DEFAULT_DURATION_MIN, alias="durationMin")
    methods: DeliveryMethods = Field(default_factory=DeliveryMethods)

    @field_validator("enabled", mode="before")
    @classmethod
    def _enabled(cls, v):
        return coerce_bool(v, False)

    @field_validator("duration_min", mode="before")
    @classmethod
    def _duration(cls, v):
        return coerce_positive_int(v, DEFAULT_DURATION_MIN)

    @field_validator("methods", mode="before")
    @classmethod
    def _methods(cls, v):
        return v if isinstance(v, (dict, DeliveryMethods)) else {}


class IdleToySettings(_ReminderBundle):
    enabled: bool = False
    days: int = DEFAULT_IDLE_DAYS
    smart_suggest: bool = Field(True, alias="smartSuggest")

    @field_validator("enabled", mode="before")
    @classmethod
    def _enabled(cls, v):
        return coerce_bool(v, False)

    @field_validator("days", mode="before")
    @classmethod
    def _days(cls, v):
        return coerce_positive_int(v, DEFAULT_IDLE_DAYS)

    @field_validator("smart_suggest", mode="before")
    @classmethod
    def _suggest(cls, v):
        return coerce_bool(v, True)


class TidyingSettings(_ReminderBundle):
    enabled: bool = False
    time: str = DEFAULT_TIDY_TIME
    repeat: str = DEFAULT_REPEAT  # daily | weekdays | weekends | 7-char mask, Monday first
    dnd_start: str = Field(DEFAULT_DND_START, alias="dndStart")
    dnd_end: str = Field(DEFAULT_DND_END, alias="dndEnd")

    @field_validator("enabled", mode="before")
    @classmethod
    def _enabled(cls, v):
        return coerce_bool(v, False)

    @field_validator("time", mode="before")
    @classmethod
    def _time(cls, v):
        return coerce_clock(v, DEFAULT_TIDY_TIME)

    @field_validator("repeat", mode="before")
    @classmethod
    def _repeat(cls, v):
        return coerce_repeat(v)

    @field_validator("dnd_start", mode="before")
    @classmethod
    def _dnd_start(cls, v):
        return coerce_clock(v, DEFAULT_DND_START, allow_blank=True)

    @field_validator("dnd_end", mode="before")
    @classmethod
    def _dnd_end(cls, v):
        return coerce_clock(v, DEFAULT_DND_END, allow_blank=True)


class SaveResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    remote_saved: bool = Field(False, alias="remoteSaved")
    error: Optional[str] = None


class TidyingSaveResult(SaveResult):
    scheduled: int = 0
    dnd_warning: bool = Field(False, alias="dndWarning")
