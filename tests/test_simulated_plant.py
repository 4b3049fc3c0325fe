"""Simulated plant: point handling, physics, and whole batches against it."""

import pytest

from digester.config import SequenceConfig
from digester.engine import BatchEngine
from digester.errors import ConnectivityError, TransportError
from digester.params import BatchParameters
from digester.sequence.outcome import OutcomeKind
from digester.sequence.phase import Phase, RunState
from sim import cli
from sim.plant import ANALOG_POINTS, DIGITAL_POINTS, SimulatedPlant


@pytest.fixture
def sim():
    plant = SimulatedPlant()
    yield plant
    plant.stop()


def assert_neutral(plant: SimulatedPlant):
    for name, value in plant.points().items():
        assert value in (False, 0.0), f"{name} left at {value}"


class TestPoints:

    def test_initial_state(self, sim):
        snap = sim.current_snapshot()
        assert snap.li100 == 80
        assert snap.li400 == 20
        assert snap.ls_plus_300 is False
        assert snap.ls_minus_300 is False
        assert set(sim.points()) == set(DIGITAL_POINTS) | set(ANALOG_POINTS)

    def test_writes_are_logged(self, sim):
        sim.write_digital("V301", True)
        sim.write_analog("P200", 55)
        assert sim.point("V301") is True
        assert sim.point("P200") == 55.0
        assert sim.write_log == [("V301", True), ("P200", 55.0)]

    @pytest.mark.parametrize("value", [-1, 100.5])
    def test_analog_out_of_range(self, sim, value):
        with pytest.raises(TransportError):
            sim.write_analog("V104", value)
        assert sim.point("V104") == 0.0

    def test_unknown_point(self, sim):
        with pytest.raises(TransportError):
            sim.write_digital("V999", True)
        with pytest.raises(TransportError):
            sim.write_analog("V301", 50)

    def test_disconnected(self, sim):
        sim.disconnect()
        assert not sim.is_connected()
        with pytest.raises(ConnectivityError):
            sim.current_snapshot()
        with pytest.raises(ConnectivityError):
            sim.write_digital("V301", True)

        sim.connect()
        sim.write_digital("V301", True)

    def test_failing_point(self, sim):
        sim.fail_point("E100")
        with pytest.raises(TransportError):
            sim.write_digital("E100", True)
        sim.clear_failures()
        sim.write_digital("E100", True)


class TestPhysics:

    def open_impregnation_route(self, sim):
        sim.write_digital("V303", True)
        sim.write_digital("V301", True)
        sim.write_analog("P200", 100)

    def test_fill_reaches_upper_switch(self, sim):
        self.open_impregnation_route(sim)
        for _ in range(10):
            snap = sim.step(1.0)
        assert snap.ls_plus_300 is True
        assert snap.ls_minus_300 is True
        assert snap.li200 < 80

    def test_full_digester_displaces_to_t400(self, sim):
        self.open_impregnation_route(sim)
        for _ in range(10):
            sim.step(1.0)
        sim.write_digital("V404", True)
        snap = sim.step(1.0)
        assert snap.li400 == 30

    def test_discharge_clears_lower_switch(self):
        plant = SimulatedPlant(li300=100)
        plant.write_digital("V302", True)
        plant.write_analog("P200", 100)
        for _ in range(13):
            snap = plant.step(1.0)
        assert snap.ls_minus_300 is False

    def test_heater_needs_circulation(self, sim):
        sim.write_digital("E100", True)
        assert sim.step(1.0).ti300 == pytest.approx(20.0)

        sim.write_digital("V304", True)
        sim.write_analog("V102", 100)
        sim.write_analog("P100", 100)
        assert sim.step(1.0).ti300 > 20.0

    def test_throttle_valve_limits_pressure(self):
        closed = SimulatedPlant(temperature=80)
        vented = SimulatedPlant(temperature=80)
        vented.write_analog("V104", 100)
        for _ in range(10):
            closed.step(1.0)
            vented.step(1.0)
        assert closed.current_snapshot().pi300 > 100
        assert vented.current_snapshot().pi300 == 0

    def test_hold_signal(self, sim):
        sim.hold_signal("ls_plus_300", True)
        assert sim.step(1.0).ls_plus_300 is True
        sim.release_signal("ls_plus_300")
        assert sim.current_snapshot().ls_plus_300 is False

        with pytest.raises(ValueError):
            sim.hold_signal("li999", 1)

    def test_held_values_coerced_like_field_tags(self, sim):
        # held values travel as tag items, so they get the tag's coercion
        sim.hold_signal("li400", "31")
        sim.hold_signal("ti300", 55)
        snap = sim.step(1.0)
        assert snap.li400 == 31
        assert isinstance(snap.ti300, float) and snap.ti300 == 55.0


@pytest.fixture
def running_sim():
    plant = SimulatedPlant(time_scale=40)
    plant.start()
    yield plant
    plant.stop()


@pytest.fixture
def sim_config():
    return SequenceConfig(poll_interval=0.02, depressurize_pulse=0.05)


class TestBatchOnSimulator:

    def test_full_batch(self, running_sim, sim_config):
        engine = BatchEngine(running_sim, sim_config)
        phases = []
        engine.subscribe_event(lambda ev, payload: phases.append(payload) if ev.name == "PHASE_STARTED" else None)

        engine.start_run(BatchParameters(cooking_duration=0.5, target_temperature=60,
                                         target_pressure=50, impregnation_duration=0.2))
        assert engine.wait_idle(30.0)

        assert engine.last_outcome.kind == OutcomeKind.SUCCESS, engine.last_outcome.describe()
        assert phases == list(Phase.ORDER)
        assert engine.current_state() == RunState.INITIALIZED
        assert running_sim.current_snapshot().li400 > 27
        assert_neutral(running_sim)

    def test_stuck_level_switch_times_out(self, running_sim):
        running_sim.hold_signal("ls_plus_300", False)
        engine = BatchEngine(running_sim, SequenceConfig(poll_interval=0.02, impregnation_fill_timeout=0.5))

        engine.start_run(BatchParameters(cooking_duration=1, target_temperature=60,
                                         target_pressure=50, impregnation_duration=1))
        assert engine.wait_idle(5.0)

        outcome = engine.last_outcome
        assert outcome.kind == OutcomeKind.TIMED_OUT
        assert outcome.phase == Phase.IMPREGNATION
        assert "LS+300" in outcome.condition
        assert engine.current_state() == RunState.HALTED
        assert_neutral(running_sim)
        assert ("V404", True) not in running_sim.write_log


class TestCli:

    def test_batch_succeeds(self, capsys):
        rc = cli.main(["--impregnation", "0.2", "--cooking", "0.5", "--temperature", "50",
                       "--pressure", "40", "--time-scale", "40"])
        out = capsys.readouterr().out
        assert rc == 0
        assert "Batch completed successfully" in out
        assert "Discharge" in out

    def test_rejected_parameters(self, capsys):
        assert cli.main(["--pressure", "400"]) == 2
        assert "Target pressure" in capsys.readouterr().out
