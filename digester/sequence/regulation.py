# digester/sequence/regulation.py
# Cooking-phase regulation: V104 throttles PI300, E100 on/off holds TI300.
from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from digester.errors import ActuationFailure, DigesterError
from digester.operations import U1_STOP, OperationRunner
from digester.transport.iface import PlantTransport
from system.log_utils import debug, error, info, verbose

PRESSURE_VALVE = "V104"
HEATER = "E100"
VALVE_MIN = 0.0
VALVE_MAX = 100.0


def pressure_step(opening: float, target: float, measured: float, gain: float) -> float:
    """One integrator step of the pressure law, clamped to the valve range."""
    value = opening - gain * (target - measured)
    return min(VALVE_MAX, max(VALVE_MIN, value))


def heater_command(measured: float, target: float) -> bool:
    return measured < target


class RegulationLoop:
    """
    Runs on its own thread for `duration` seconds, one tick per poll interval.
    Stops early on stop() or when the shared cancel event is set.
    Always finishes with U1_STOP (valve closed, heater off).
    """

    def __init__(
        self,
        transport: PlantTransport,
        runner: OperationRunner,
        target_pressure: float,
        target_temperature: float,
        duration: float,
        cancel: Optional[threading.Event] = None,
        poll_interval: float = 0.05,
        gain: float = 0.001,
        initial_opening: float = VALVE_MAX,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.runner = runner
        self.target_pressure = target_pressure
        self.target_temperature = target_temperature
        self.duration = max(0.0, duration)
        self.poll_interval = poll_interval
        self.gain = gain
        self.opening = min(VALVE_MAX, max(VALVE_MIN, initial_opening))
        self.error: Optional[DigesterError] = None
        self.ticks = 0

        self._cancel = cancel
        self._clock = clock
        self._stop = threading.Event()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("regulation loop already started")
        self._thread = threading.Thread(target=self._run, daemon=True, name="regulation-loop")
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread is not None:
            self._thread.join(timeout)
        return self._done.is_set()

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    # -----------------------------
    # Control
    # -----------------------------
    def tick(self) -> None:
        snap = self.transport.current_snapshot()

        self.opening = pressure_step(self.opening, self.target_pressure, snap.pi300, self.gain)
        valve = int(self.opening)
        heater = heater_command(snap.ti300, self.target_temperature)

        try:
            self.transport.write_analog(PRESSURE_VALVE, valve)
        except Exception as e:
            raise ActuationFailure("U1_OP1", PRESSURE_VALVE, e) from e
        try:
            self.transport.write_digital(HEATER, heater)
        except Exception as e:
            raise ActuationFailure("U1_OP2", HEATER, e) from e

        verbose(f"[REG] PI300={snap.pi300} TI300={snap.ti300:.1f} -> V104={valve} E100={'on' if heater else 'off'}")

    def _should_stop(self) -> bool:
        return self._stop.is_set() or (self._cancel is not None and self._cancel.is_set())

    def _run(self) -> None:
        info(
            f"[REG] regulation started: {self.duration:g}s, "
            f"target {self.target_pressure:g} bar / {self.target_temperature:g} °C"
        )
        deadline = self._clock() + self.duration
        try:
            while not self._should_stop():
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                self.tick()
                self.ticks += 1
                self._stop.wait(min(self.poll_interval, remaining))
        except ActuationFailure as e:
            error(f"[REG] regulation write failed: {e}")
            self.error = e
        except Exception as e:
            error(f"[REG] snapshot read failed: {e}")
            self.error = ActuationFailure("U1_OP1", "PI300", e)
        finally:
            try:
                self.runner.execute(U1_STOP)
            except ActuationFailure as e:
                error(f"[REG] stop regulation failed: {e}")
                if self.error is None:
                    self.error = e
            debug(f"[REG] regulation ended after {self.ticks} ticks, last V104={int(self.opening)}")
            self._done.set()
