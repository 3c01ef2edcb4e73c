import json

from pinme.schemas.reminder_settings import (
    IdleToySettings,
    LongPlaySettings,
    TidyingSettings,
    coerce_repeat,
)
from pinme.services import settings_codec


def test_long_play_defaults_from_garbage():
    for raw in (None, 42, "not json", "[1, 2]", {}):
        s = LongPlaySettings.normalize(raw)
        assert s.enabled is False
        assert s.duration_min == 45
        assert s.methods.push is True and s.methods.in_app is True


def test_long_play_repairs_loose_types():
    s = LongPlaySettings.normalize('{"enabled": "true", "durationMin": "30", "methods": {"push": 0, "inApp": "no"}}')
    assert s.enabled is True
    assert s.duration_min == 30
    assert s.methods.push is False
    assert s.methods.in_app is False


def test_non_positive_duration_falls_back():
    assert LongPlaySettings.normalize({"durationMin": 0}).duration_min == 45
    assert LongPlaySettings.normalize({"durationMin": -5}).duration_min == 45
    assert LongPlaySettings.normalize({"durationMin": "abc"}).duration_min == 45


def test_cache_form_uses_camel_case():
    s = LongPlaySettings(enabled=True, duration_min=20)
    assert json.loads(s.to_cache()) == {
        "enabled": True,
        "durationMin": 20,
        "methods": {"push": True, "inApp": True},
    }
    assert LongPlaySettings.normalize(s.to_cache()) == s


def test_idle_toy_normalize():
    s = IdleToySettings.normalize({"enabled": 1, "days": "3", "smartSuggest": None})
    assert s.enabled is True
    assert s.days == 3
    assert s.smart_suggest is True
    assert IdleToySettings.normalize({"days": 0}).days == 14


def test_tidying_normalize():
    s = TidyingSettings.normalize({"enabled": True, "time": "7:30", "repeat": "WEEKDAYS", "dndStart": "", "dndEnd": "bad"})
    assert s.time == "7:30"
    assert s.repeat == "weekdays"
    assert s.dnd_start == ""
    assert s.dnd_end == "07:00"
    assert TidyingSettings.normalize({"time": "noon"}).time == "20:00"


def test_repeat_modes():
    assert coerce_repeat("1010100") == "1010100"
    assert coerce_repeat("10101") == "daily"
    assert coerce_repeat(None) == "daily"
    assert coerce_repeat("weekends") == "weekends"


def test_decode_absent_bundle_is_none():
    row = {"idle_enabled": True, "idle_days": 10}
    assert settings_codec.decode_long_play(row) is None
    assert settings_codec.decode_tidying(row) is None
    assert settings_codec.decode_idle_toy(row).days == 10


def test_decode_prefers_nested_then_flat():
    row = {
        "longplay_enabled": True,
        "longplay_duration_min": 60,
        "longplay_methods": {"push": False},
        "longplay_push": True,
        "longplay_inapp": False,
    }
    s = settings_codec.decode_long_play(row)
    assert s.duration_min == 60
    assert s.methods.push is False  # nested wins
    assert s.methods.in_app is False  # flat fallback


def test_decode_nested_json_text():
    row = {"tidy_enabled": True, "tidy_dnd": '{"start": "21:00", "end": "06:00"}', "tidy_dnd_start": "23:00"}
    s = settings_codec.decode_tidying(row)
    assert (s.dnd_start, s.dnd_end) == ("21:00", "06:00")
    assert s.time == "20:00"


def test_encode_writes_both_layouts():
    fields = settings_codec.encode_tidying(TidyingSettings(enabled=True, dnd_start="21:00", dnd_end="06:00"))
    assert fields["tidy_dnd"] == {"start": "21:00", "end": "06:00"}
    assert fields["tidy_dnd_start"] == "21:00"
    assert fields["tidy_dnd_end"] == "06:00"

    fields = settings_codec.encode_idle_toy(IdleToySettings(enabled=True, smart_suggest=False))
    assert fields["idle_options"] == {"smartSuggest": False}
    assert fields["idle_smart_suggest"] is False
    assert settings_codec.decode_idle_toy(fields) == IdleToySettings(enabled=True, smart_suggest=False)
