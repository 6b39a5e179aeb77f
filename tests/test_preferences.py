import json
import logging

import pytest

from tinnitusbuilder_core.utils.preferences import (
    PREF_ENV_VAR,
    Preferences,
    load_preferences,
    preferences_path,
    save_preferences,
)


def test_defaults():
    prefs = Preferences()
    assert prefs.sample_rate == 44100
    assert prefs.block_seconds == 4.0
    assert prefs.ramp_seconds == 1.0
    assert prefs.target_peak == 0.80
    assert prefs.validate() is prefs


def test_save_and_load(tmp_path):
    prefs = Preferences(sample_rate=48000, default_mode="amplitude", default_minutes=30)
    path = save_preferences(prefs, tmp_path / "nested" / "prefs.json")
    assert path.is_file()
    assert load_preferences(path) == prefs


def test_unknown_keys_ignored(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"sample_rate": 22050, "theme": "dark"}))
    prefs = load_preferences(path)
    assert prefs.sample_rate == 22050
    assert not hasattr(prefs, "theme")


def test_missing_file_gives_defaults(tmp_path):
    assert load_preferences(tmp_path / "absent.json") == Preferences()


def test_corrupt_file_logs_warning(tmp_path, caplog):
    path = tmp_path / "prefs.json"
    path.write_text("{not json")
    with caplog.at_level(logging.WARNING, logger="tinnitusbuilder_core.utils.preferences"):
        prefs = load_preferences(path)
    assert prefs == Preferences()
    assert "Failed to load preferences" in caplog.text


def test_invalid_values_fall_back_to_defaults(tmp_path, caplog):
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"target_peak": 1.5}))
    with caplog.at_level(logging.WARNING):
        assert load_preferences(path) == Preferences()


def test_env_var_overrides_location(tmp_path, monkeypatch):
    path = tmp_path / "custom.json"
    monkeypatch.setenv(PREF_ENV_VAR, str(path))
    assert preferences_path() == path
    save_preferences(Preferences(block_seconds=2.0))
    assert load_preferences().block_seconds == 2.0


@pytest.mark.parametrize("field, value", [
    ("sample_rate", 0),
    ("block_seconds", -1.0),
    ("ramp_seconds", 5.0),
    ("target_peak", 0.0),
    ("default_mode", "frequency"),
])
def test_validate_rejects(field, value):
    prefs = Preferences()
    setattr(prefs, field, value)
    with pytest.raises(ValueError):
        prefs.validate()
