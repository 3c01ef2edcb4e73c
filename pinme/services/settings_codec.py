"""
Decoders/encoders between the ``reminder_settings`` row and the settings bundles.

The row has been written by two generations of the app. Each bundle keeps
part of its data in a nested JSON column (older builds) and the same data in
flat columns (newer builds). Reading prefers the nested value and falls back
to the flat column key by key; writing fills both so either generation can
read what we store.

A bundle counts as present only when its ``*_enabled`` column is set. A row
created by saving one bundle leaves the others NULL, and those must not
overwrite a device's local values with defaults.
"""
import json
from typing import Any, Dict, Mapping, Optional

from pinme.schemas.reminder_settings import IdleToySettings, LongPlaySettings, TidyingSettings


def _nested(value: Any) -> Optional[dict]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, dict) else None


def _prefer(nested: Optional[dict], key: str, flat: Any) -> Any:
    if nested is not None and nested.get(key) is not None:
        return nested[key]
    return flat


def decode_long_play(row: Mapping[str, Any]) -> Optional[LongPlaySettings]:
    if row.get("longplay_enabled") is None:
        return None
    methods = _nested(row.get("longplay_methods"))
    return LongPlaySettings.normalize({
        "enabled": row.get("longplay_enabled"),
        "durationMin": row.get("longplay_duration_min"),
        "methods": {
            "push": _prefer(methods, "push", row.get("longplay_push")),
            "inApp": _prefer(methods, "inApp", row.get("longplay_inapp")),
        },
    })


def decode_idle_toy(row: Mapping[str, Any]) -> Optional[IdleToySettings]:
    if row.get("idle_enabled") is None:
        return None
    options = _nested(row.get("idle_options"))
    return IdleToySettings.normalize({
        "enabled": row.get("idle_enabled"),
        "days": row.get("idle_days"),
        "smartSuggest": _prefer(options, "smartSuggest", row.get("idle_smart_suggest")),
    })


def decode_tidying(row: Mapping[str, Any]) -> Optional[TidyingSettings]:
    if row.get("tidy_enabled") is None:
        return None
    dnd = _nested(row.get("tidy_dnd"))
    return TidyingSettings.normalize({
        "enabled": row.get("tidy_enabled"),
        "time": row.get("tidy_time"),
        "repeat": row.get("tidy_repeat"),
        "dndStart": _prefer(dnd, "start", row.get("tidy_dnd_start")),
        "dndEnd": _prefer(dnd, "end", row.get("tidy_dnd_end")),
    })


def encode_long_play(s: LongPlaySettings) -> Dict[str, Any]:
    return {
        "longplay_enabled": s.enabled,
        "longplay_duration_min": s.duration_min,
        "longplay_methods": {"push": s.methods.push, "inApp": s.methods.in_app},
        "longplay_push": s.methods.push,
        "longplay_inapp": s.methods.in_app,
    }


def encode_idle_toy(s: IdleToySettings) -> Dict[str, Any]:
    return {
        "idle_enabled": s.enabled,
        "idle_days": s.days,
        "idle_options": {"smartSuggest": s.smart_suggest},
        "idle_smart_suggest": s.smart_suggest,
    }


def encode_tidying(s: TidyingSettings) -> Dict[str, Any]:
    return {
        "tidy_enabled": s.enabled,
        "tidy_time": s.time,
        "tidy_repeat": s.repeat,
        "tidy_dnd": {"start": s.dnd_start, "end": s.dnd_end},
        "tidy_dnd_start": s.dnd_start,
        "tidy_dnd_end": s.dnd_end,
    }
