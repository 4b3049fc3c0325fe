# sim/plant.py
# In-process digester plant: four tanks, valve/pump routes, heater and digester pressure.
#
#   T100 white liquor  --P100/V102/V304-->  T300 digester  --V401-->  T400
#   T200 impregnation  --P200/V303/V301-->  T300           --V404-->  T400
#   T300 --V302/P200--> T200 (discharge)    V204 vents T300 pressure
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Set, Tuple

from digester.errors import ConnectivityError, TransportError
from digester.snapshot import FIELD_TAGS, ProcessSnapshot, SnapshotStore
from digester.transport.iface import PlantTransport
from system.log_utils import debug, info, verbose, warn

DIGITAL_POINTS = (
    "V103", "V201", "V204", "V301", "V302", "V303", "V304", "V401", "V404",
    "E100", "P100_P200_PRESET",
)
ANALOG_POINTS = ("V102", "V104", "P100", "P200")

# Levels are percent of tank height.
FILL_RATE = 10.0            # %/s into T300 at full pump power
DRAIN_RATE = 8.0            # %/s out of T300 at full pump power
SOURCE_RATIO = 0.25         # source-tank drop per unit of digester fill
HEAT_RATE = 2.5             # °C/s with heater on and circulation running
HEAT_LOSS = 0.02            # 1/s toward ambient
AMBIENT_C = 20.0
PRESSURE_PER_C = 4.0        # equilibrium pressure per °C above ambient, valve closed
PRESSURE_LAG = 0.5          # 1/s
VENT_RATE = 2.0             # 1/s pressure decay with V204 open
UPPER_SWITCH_LEVEL = 95.0
LOWER_SWITCH_LEVEL = 5.0

STEP_INTERVAL = 0.05


class SimulatedPlant(PlantTransport):
    """
    Simulated digester plant behind the PlantTransport interface.

    A daemon thread calls step(STEP_INTERVAL * time_scale) until stop();
    tests can leave the thread off and call step() directly.
    """

    def __init__(
        self,
        li100: float = 80.0,
        li200: float = 80.0,
        li300: float = 0.0,
        li400: float = 20.0,
        temperature: float = AMBIENT_C,
        time_scale: float = 1.0,
    ):
        self.time_scale = time_scale
        self.write_log: List[Tuple[str, Any]] = []

        self._lock = threading.RLock()
        self._connected = True
        self._failing: Set[str] = set()
        self._held: Dict[str, Any] = {}

        self._digital: Dict[str, bool] = {name: False for name in DIGITAL_POINTS}
        self._analog: Dict[str, float] = {name: 0.0 for name in ANALOG_POINTS}

        self._t100 = li100
        self._t200 = li200
        self._t300 = li300
        self._t400 = li400
        self._temperature = temperature
        self._pressure = 0.0

        self._store = SnapshotStore()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._publish()

    # -----------------------------
    # PlantTransport
    # -----------------------------
    def write_digital(self, name: str, value: bool) -> None:
        with self._lock:
            self._check_write(name, DIGITAL_POINTS)
            self._digital[name] = bool(value)
            self.write_log.append((name, bool(value)))
        verbose(f"[SIM] {name}={'on' if value else 'off'}")

    def write_analog(self, name: str, percent: float) -> None:
        with self._lock:
            self._check_write(name, ANALOG_POINTS)
            if not 0 <= percent <= 100:
                raise TransportError(f"{name}: {percent} outside 0..100")
            self._analog[name] = float(percent)
            self.write_log.append((name, float(percent)))
        verbose(f"[SIM] {name}={percent:g}%")

    def current_snapshot(self) -> ProcessSnapshot:
        if not self._connected:
            raise ConnectivityError("simulated plant disconnected")
        return self._store.current()

    def is_connected(self) -> bool:
        return self._connected

    def _check_write(self, name: str, known: Tuple[str, ...]) -> None:
        if not self._connected:
            raise ConnectivityError("simulated plant disconnected")
        if name not in known:
            raise TransportError(f"unknown point {name}")
        if name in self._failing:
            raise TransportError(f"write to {name} rejected")

    # -----------------------------
    # Failure hooks
    # -----------------------------
    def disconnect(self) -> None:
        warn("[SIM] plant disconnected")
        self._connected = False

    def connect(self) -> None:
        info("[SIM] plant connected")
        self._connected = True

    def fail_point(self, name: str) -> None:
        with self._lock:
            self._failing.add(name)
        warn(f"[SIM] writes to {name} will fail")

    def clear_failures(self) -> None:
        with self._lock:
            self._failing.clear()

    def hold_signal(self, field: str, value: Any) -> None:
        """Pin a snapshot field (e.g. "ls_plus_300") regardless of the physics."""
        if field not in FIELD_TAGS:
            raise ValueError(f"unknown snapshot field: {field}")
        with self._lock:
            self._held[field] = value
        self._publish()

    def release_signal(self, field: str) -> None:
        with self._lock:
            self._held.pop(field, None)
        self._publish()

    # -----------------------------
    # Inspection
    # -----------------------------
    def point(self, name: str) -> Any:
        with self._lock:
            if name in self._digital:
                return self._digital[name]
            return self._analog[name]

    def points(self) -> Dict[str, Any]:
        with self._lock:
            return {**self._digital, **self._analog}

    # -----------------------------
    # Physics
    # -----------------------------
    def step(self, dt: float) -> ProcessSnapshot:
        with self._lock:
            d = self._digital
            a = self._analog
            p100 = a["P100"] / 100.0
            p200 = a["P200"] / 100.0
            full = self._t300 >= UPPER_SWITCH_LEVEL

            # T200 -> T300 (impregnation liquor, black liquor displacement)
            if d["V303"] and d["V301"] and p200 > 0 and self._t200 > 0:
                flow = FILL_RATE * p200 * dt
                self._t200 = max(0.0, self._t200 - flow * SOURCE_RATIO)
                if full and d["V404"]:
                    self._t400 = min(100.0, self._t400 + flow)
                elif not full:
                    self._t300 = min(100.0, self._t300 + flow)

            # T100 -> T300 (white liquor fill, cooking circulation)
            circulating = d["V304"] and a["V102"] > 0 and p100 > 0
            if circulating and self._t100 > 0:
                flow = FILL_RATE * p100 * (a["V102"] / 100.0) * dt
                if d["V401"] and full:
                    self._t100 = max(0.0, self._t100 - flow * SOURCE_RATIO)
                    self._t400 = min(100.0, self._t400 + flow)
                elif not full:
                    self._t100 = max(0.0, self._t100 - flow * SOURCE_RATIO)
                    self._t300 = min(100.0, self._t300 + flow)

            # T300 -> T200 (discharge)
            if d["V302"] and p200 > 0 and self._t300 > 0:
                flow = min(self._t300, DRAIN_RATE * p200 * dt)
                self._t300 -= flow
                self._t200 = min(100.0, self._t200 + flow * SOURCE_RATIO)

            # Heater only transfers heat while liquor circulates through it
            if d["E100"] and circulating:
                self._temperature += HEAT_RATE * dt
            self._temperature -= HEAT_LOSS * (self._temperature - AMBIENT_C) * dt

            # Pressure follows temperature; V104 throttles, V204 vents
            closed = 1.0 - a["V104"] / 100.0
            equilibrium = max(0.0, (self._temperature - AMBIENT_C) * PRESSURE_PER_C * closed)
            self._pressure += (equilibrium - self._pressure) * min(1.0, PRESSURE_LAG * dt)
            if d["V204"]:
                self._pressure -= self._pressure * min(1.0, VENT_RATE * dt)

        return self._publish()

    def _publish(self) -> ProcessSnapshot:
        # published as transport tag items, the way a field controller reports them
        with self._lock:
            items: Dict[str, Any] = {
                "LI100": int(self._t100),
                "LI200": int(self._t200),
                "LI400": int(self._t400),
                "PI300": int(self._pressure),
                "TI300": round(self._temperature, 1),
                "LS+300": self._t300 >= UPPER_SWITCH_LEVEL,
                "LS-300": self._t300 > LOWER_SWITCH_LEVEL,
            }
            for field, value in self._held.items():
                items[FIELD_TAGS[field]] = value
        return self._store.apply_items(items)

    # -----------------------------
    # Background thread
    # -----------------------------
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()

        def _run() -> None:
            while not self._stop_event.wait(STEP_INTERVAL):
                self.step(STEP_INTERVAL * self.time_scale)

        self._thread = threading.Thread(target=_run, daemon=True, name="sim-plant")
        self._thread.start()
        info(f"[SIM] plant running (time scale x{self.time_scale:g})")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=1.0)
        debug("[SIM] plant stopped")
