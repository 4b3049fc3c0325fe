"""Run commands: default-parameter merge and (ok, msg) wrappers."""

import pytest

from digester.actions import RunActions
from digester.errors import ConnectivityError, ValidationError
from digester.params import BatchParameters
from digester.sequence.phase import RunState


@pytest.fixture
def actions(engine):
    return RunActions(engine)


class TestStartRun:

    def test_returns_started_parameters(self, actions, engine, fast_params):
        params = actions.start_run(fast_params.to_dict())
        assert params == fast_params
        assert engine.wait_idle(5.0)
        assert engine.last_outcome.ok

    def test_missing_keys_taken_from_defaults(self, actions, engine, fast_params):
        actions.set_defaults(fast_params)
        params = actions.start_run({"target_pressure": 20})

        assert params.target_pressure == 20
        assert params.cooking_duration == fast_params.cooking_duration
        engine.wait_idle(5.0)

    def test_without_defaults_every_key_is_required(self, actions, plant):
        with pytest.raises(ValidationError):
            actions.start_run({"target_pressure": 20})
        assert plant.writes == []

    def test_typed_errors_propagate(self, actions, plant, fast_params):
        plant.connected = False
        with pytest.raises(ConnectivityError):
            actions.start_run(fast_params.to_dict())


class TestWrappers:

    def test_start_rejected(self, actions, fast_params):
        ok, msg = actions.start(dict(fast_params.to_dict(), target_pressure=300))
        assert not ok
        assert "Target pressure" in msg

    def test_start_abort_reset(self, actions, engine, fast_params):
        slow = BatchParameters(**dict(fast_params.to_dict(), impregnation_duration=60))
        assert actions.start(slow.to_dict()) == (True, "Run started")

        ok, _ = actions.abort()
        assert ok
        engine.wait_idle(2.0)
        assert engine.current_state() == RunState.HALTED

        assert actions.reset() == (True, "Reset to initialized")
        assert engine.current_state() == RunState.INITIALIZED

    def test_reset_when_initialized(self, actions):
        ok, msg = actions.reset()
        assert not ok
        assert "HALTED" in msg
