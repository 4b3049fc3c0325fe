"""Shared test fixtures for the digester sequencer tests."""

import threading
from typing import Any, Dict, List, Tuple

import pytest

from digester.config import SequenceConfig
from digester.engine import BatchEngine
from digester.errors import ConnectivityError, TransportError
from digester.operations import Operation
from digester.params import BatchParameters
from digester.snapshot import ProcessSnapshot, SnapshotStore
from digester.transport.iface import PlantTransport

ANY_VALUE = object()


class FakePlant(PlantTransport):
    """
    Recording plant driven by write rules.

    A rule maps (point, value) to snapshot field updates applied right after
    that write, so every wait is satisfied by the operation that triggers it.
    """

    def __init__(self, initial: ProcessSnapshot = None):
        self.writes: List[Tuple[str, Any]] = []
        self.state: Dict[str, Any] = {}
        self.connected = True
        self.snapshots = SnapshotStore(initial)
        self.rules: Dict[Tuple[str, Any], Dict[str, Any]] = {}
        self._failing: Dict[str, Any] = {}
        self._reads_fail = False
        self._lock = threading.Lock()

    # PlantTransport
    def write_digital(self, name, value):
        self._write(name, bool(value))

    def write_analog(self, name, percent):
        if not 0 <= percent <= 100:
            raise TransportError(f"{name}: {percent} outside 0..100")
        self._write(name, float(percent))

    def current_snapshot(self):
        if not self.connected:
            raise ConnectivityError("fake plant disconnected")
        if self._reads_fail:
            raise TransportError("sensor read failed")
        return self.snapshots.current()

    def is_connected(self):
        return self.connected

    # Test hooks
    def on_write(self, point, value, **fields):
        self.rules[(point, value)] = fields

    def fail(self, point, value=ANY_VALUE):
        self._failing[point] = value

    def fail_reads(self):
        self._reads_fail = True

    def count(self, point, value) -> int:
        return self.writes.count((point, value))

    def _write(self, name, value):
        if not self.connected:
            raise ConnectivityError("fake plant disconnected")
        if name in self._failing and self._failing[name] in (ANY_VALUE, value):
            raise TransportError(f"write to {name} rejected")
        with self._lock:
            self.writes.append((name, value))
            self.state[name] = value
        fields = self.rules.get((name, value))
        if fields:
            self.snapshots.update(**fields)


def cooperative_rules(plant: FakePlant) -> FakePlant:
    """Rules that satisfy each phase's wait right after its triggering operation."""
    plant.on_write("V301", True, ls_plus_300=True, ls_minus_300=True)   # EM3_OP2: digester fills
    plant.on_write("V404", True, li400=30)                              # EM4_OP1: liquor displaced
    plant.on_write("E100", True, ti300=100.0)                           # EM1_OP1: heat-up
    plant.on_write("V302", True, ls_plus_300=False, ls_minus_300=False) # EM3_OP5: drained
    return plant


def writes_of(*ops: Operation) -> List[Tuple[str, Any]]:
    """Expected (point, value) write log for a list of operations."""
    out = []
    for op in ops:
        for w in op.writes:
            out.append((w.point, float(w.value) if w.analog else bool(w.value)))
    return out


@pytest.fixture
def plant() -> FakePlant:
    """FakePlant that satisfies every wait immediately."""
    return cooperative_rules(FakePlant())


@pytest.fixture
def idle_plant() -> FakePlant:
    """FakePlant with no rules: no wait is ever satisfied."""
    return FakePlant()


@pytest.fixture
def fast_config() -> SequenceConfig:
    """Short poll interval and timeouts for fast tests."""
    return SequenceConfig(
        poll_interval=0.01,
        impregnation_fill_timeout=0.3,
        liquor_fill_timeout=0.3,
        heat_up_timeout=0.3,
        discharge_timeout=0.3,
        depressurize_pulse=0.01,
    )


@pytest.fixture
def fast_params() -> BatchParameters:
    return BatchParameters(
        cooking_duration=0.2,
        target_temperature=90.0,
        target_pressure=15.0,
        impregnation_duration=0.05,
    )


@pytest.fixture
def engine(plant: FakePlant, fast_config: SequenceConfig) -> BatchEngine:
    eng = BatchEngine(plant, fast_config)
    yield eng
    if eng.is_running():
        eng.abort()
        eng.wait_idle(2.0)
