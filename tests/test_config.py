"""Preference store and the sequence configuration built from it."""

import json

import pytest

from digester.config import SequenceConfig, default_batch_parameters, load_sequence_config
from digester.snapshot import ProcessSnapshot
from system.preferences import (
    KEY_LIQUOR_DISPLACED_LEVEL,
    KEY_LIQUOR_DISPLACED_OP,
    KEY_POLL_INTERVAL,
    KEY_TARGET_PRESSURE,
    Preferences,
)


@pytest.fixture
def prefs_file(tmp_path):
    return tmp_path / "config" / "user_prefs.json"


@pytest.fixture
def prefs(prefs_file) -> Preferences:
    return Preferences(str(prefs_file))


class TestPreferences:

    def test_missing_file_is_empty(self, prefs):
        assert prefs.as_dict() == {}

    def test_load_drops_unknown_keys(self, prefs_file):
        prefs_file.parent.mkdir(parents=True)
        prefs_file.write_text(json.dumps({"target_pressure": 20, "gasera_ip": "10.0.0.1"}))

        prefs = Preferences(str(prefs_file))
        assert prefs.as_dict() == {"target_pressure": 20}

    def test_corrupt_file_is_ignored(self, prefs_file):
        prefs_file.parent.mkdir(parents=True)
        prefs_file.write_text("{not json")
        assert Preferences(str(prefs_file)).as_dict() == {}

    def test_update_persists_and_notifies(self, prefs, prefs_file):
        calls = []
        prefs.register_callback(KEY_TARGET_PRESSURE, lambda k, v: calls.append((k, v)))

        updated = prefs.update_from_dict({"target_pressure": 25, "bogus": 1}, write_disk=True)

        assert updated == ["target_pressure"]
        assert calls == [("target_pressure", 25)]
        assert json.loads(prefs_file.read_text()) == {"target_pressure": 25}

    def test_unchanged_value_does_not_notify(self, prefs):
        prefs.update_from_dict({"target_pressure": 25})
        calls = []
        prefs.register_callback(KEY_TARGET_PRESSURE, lambda k, v: calls.append(v))

        assert prefs.update_from_dict({"target_pressure": 25}) == []
        assert calls == []

    def test_typed_getters(self, prefs):
        prefs.update_from_dict({"poll_interval": "0.1", "pressure_gain": "fast", "simulator_enabled": "yes"})
        assert prefs.get_float("poll_interval") == 0.1
        assert prefs.get_float("pressure_gain", 0.001) == 0.001
        assert prefs.get_bool("simulator_enabled") is True


class TestSequenceConfig:

    def test_defaults(self):
        cfg = load_sequence_config(None)
        assert cfg == SequenceConfig()
        assert cfg.poll_interval == 0.05
        assert cfg.impregnation_fill_timeout == 30
        assert cfg.heat_up_timeout == 300

    def test_from_preferences(self, prefs):
        prefs.update_from_dict({KEY_POLL_INTERVAL: 0.02, KEY_LIQUOR_DISPLACED_OP: "<",
                                KEY_LIQUOR_DISPLACED_LEVEL: 100})
        cfg = load_sequence_config(prefs)

        assert cfg.poll_interval == 0.02
        cond = cfg.liquor_displaced()
        assert cond.holds(ProcessSnapshot(li400=99))
        assert not cond.holds(ProcessSnapshot(li400=100))

    def test_invalid_preferences_fall_back(self, prefs):
        prefs.update_from_dict({KEY_LIQUOR_DISPLACED_OP: "=="})
        assert load_sequence_config(prefs) == SequenceConfig()

    def test_default_liquor_condition(self):
        cond = SequenceConfig().liquor_displaced()
        assert cond.description.startswith("LI400 > 27")
        assert cond.holds(ProcessSnapshot(li400=28))
        assert not cond.holds(ProcessSnapshot(li400=27))

    @pytest.mark.parametrize("kwargs", [
        {"poll_interval": 0},
        {"heat_up_timeout": -1},
        {"liquor_displaced_tag": "XX1"},
        {"liquor_displaced_op": "!="},
    ])
    def test_rejects_bad_values(self, kwargs):
        with pytest.raises(ValueError):
            SequenceConfig(**kwargs)


class TestDefaultBatchParameters:

    def test_none_until_all_keys_present(self, prefs):
        assert default_batch_parameters(prefs) is None
        prefs.update_from_dict({"cooking_duration": 30, "target_temperature": 90})
        assert default_batch_parameters(prefs) is None

    def test_built_from_preferences(self, prefs):
        prefs.update_from_dict({"cooking_duration": 30, "target_temperature": 90,
                                "target_pressure": 15, "impregnation_duration": 30})
        params = default_batch_parameters(prefs)
        assert params.target_temperature == 90

    def test_invalid_stored_values(self, prefs):
        prefs.update_from_dict({"cooking_duration": 30, "target_temperature": 90,
                                "target_pressure": 400, "impregnation_duration": 30})
        assert default_batch_parameters(prefs) is None
