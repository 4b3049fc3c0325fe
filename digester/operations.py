# digester/operations.py
# Plant equipment-module operations (EMx_OPy / U1) as fixed write lists.
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from digester.errors import ActuationFailure
from digester.sequence.waiter import ConditionWaiter
from digester.transport.iface import PlantTransport
from system.log_utils import debug, error, info, warn


@dataclass(frozen=True)
class PointWrite:
    point: str
    value: Union[bool, float]
    analog: bool = False

    def describe(self) -> str:
        if self.analog:
            return f"{self.point}={self.value:g}%"
        return f"{self.point}={'on' if self.value else 'off'}"


@dataclass(frozen=True)
class Dwell:
    """Pause inside an operation. None means the runner's depressurize pulse."""
    seconds: Optional[float] = None


Step = Union[PointWrite, Dwell]


@dataclass(frozen=True)
class Operation:
    name: str
    description: str
    steps: Tuple[Step, ...]

    @property
    def writes(self) -> Tuple[PointWrite, ...]:
        return tuple(s for s in self.steps if isinstance(s, PointWrite))


def on(point: str) -> PointWrite:
    return PointWrite(point, True)


def off(point: str) -> PointWrite:
    return PointWrite(point, False)


def opening(point: str, percent: float) -> PointWrite:
    return PointWrite(point, float(percent), analog=True)


# -----------------------------------------------------------------------------
# Operation table
# -----------------------------------------------------------------------------
PUMPS_PRESET = Operation("PUMPS_PRESET", "Enable pump presets P100/P200", (on("P100_P200_PRESET"),))

EM1_OP1 = Operation("EM1_OP1", "Open route to digester T300, pump P100 on, heater on",
                    (opening("V102", 100), on("V304"), opening("P100", 100), on("E100")))
EM1_OP2 = Operation("EM1_OP2", "Open route to digester T300, pump P100 on",
                    (opening("V102", 100), on("V304"), opening("P100", 100)))
EM1_OP3 = Operation("EM1_OP3", "Close route to digester T300, pump P100 off, heater off",
                    (opening("V102", 0), off("V304"), opening("P100", 0), off("E100")))
EM1_OP4 = Operation("EM1_OP4", "Close route to digester T300, pump P100 off",
                    (opening("V102", 0), off("V304"), opening("P100", 0)))

EM2_OP1 = Operation("EM2_OP1", "Open impregnation outlet V201", (on("V201"),))
EM2_OP2 = Operation("EM2_OP2", "Close impregnation outlet V201", (off("V201"),))

EM3_OP1 = Operation("EM3_OP1", "Close digester outlets", (opening("V104", 0), off("V204"), off("V401")))
EM3_OP2 = Operation("EM3_OP2", "Open inlet/outlet to impregnation tank T200", (on("V204"), on("V301")))
EM3_OP3 = Operation("EM3_OP3", "Open inlet/outlet to black liquor tank T400", (on("V301"), on("V401")))
EM3_OP4 = Operation("EM3_OP4", "Open inlet/outlet to white liquor tank T100", (opening("V104", 100), on("V301")))
EM3_OP5 = Operation("EM3_OP5", "Allow digester T300 discharge", (on("V204"), on("V302")))
EM3_OP6 = Operation("EM3_OP6", "Close all digester inlets and outlets",
                    (opening("V104", 0), off("V204"), off("V301"), off("V401")))
EM3_OP7 = Operation("EM3_OP7", "Close discharge outlets", (off("V302"), off("V204")))
EM3_OP8 = Operation("EM3_OP8", "Depressurize digester T300", (on("V204"), Dwell(), off("V204")))

EM4_OP1 = Operation("EM4_OP1", "Open black liquor fill outlet V404", (on("V404"),))
EM4_OP2 = Operation("EM4_OP2", "Close black liquor fill outlet V404", (off("V404"),))

EM5_OP1 = Operation("EM5_OP1", "Open route to digester T300, pump P200 on", (on("V303"), opening("P200", 100)))
EM5_OP2 = Operation("EM5_OP2", "Open route to white liquor tank T100, pump P200 on",
                    (on("V103"), on("V303"), opening("P200", 100)))
EM5_OP3 = Operation("EM5_OP3", "Close route to digester T300, pump P200 off", (off("V303"), opening("P200", 0)))
EM5_OP4 = Operation("EM5_OP4", "Close route to white liquor tank T100, pump P200 off",
                    (off("V103"), off("V303"), opening("P200", 0)))

U1_STOP = Operation("U1_STOP", "Stop digester pressure and temperature regulation", (opening("V104", 0), off("E100")))

OPERATIONS = {op.name: op for op in (
    PUMPS_PRESET,
    EM1_OP1, EM1_OP2, EM1_OP3, EM1_OP4,
    EM2_OP1, EM2_OP2,
    EM3_OP1, EM3_OP2, EM3_OP3, EM3_OP4, EM3_OP5, EM3_OP6, EM3_OP7, EM3_OP8,
    EM4_OP1, EM4_OP2,
    EM5_OP1, EM5_OP2, EM5_OP3, EM5_OP4,
    U1_STOP,
)}

# Neutral state: every valve closed, every pump stopped, heater off.
SAFE_STATE: Tuple[PointWrite, ...] = (
    opening("V102", 0), opening("V104", 0),
    off("V103"), off("V201"), off("V204"), off("V301"), off("V302"),
    off("V303"), off("V304"), off("V401"), off("V404"),
    opening("P100", 0), opening("P200", 0),
    off("E100"),
    off("P100_P200_PRESET"),
)


class OperationRunner:
    """Executes operations against the transport, one write at a time."""

    def __init__(self, transport: PlantTransport, waiter: ConditionWaiter, depressurize_pulse: float = 1.0):
        self.transport = transport
        self.waiter = waiter
        self.depressurize_pulse = depressurize_pulse

    def write(self, w: PointWrite) -> None:
        if w.analog:
            self.transport.write_analog(w.point, w.value)
        else:
            self.transport.write_digital(w.point, bool(w.value))

    def execute(self, op: Operation, cancel: Optional[threading.Event] = None) -> None:
        """Write every point of `op` in order. First failure raises ActuationFailure."""
        for step in op.steps:
            if isinstance(step, Dwell):
                seconds = self.depressurize_pulse if step.seconds is None else step.seconds
                self.waiter.dwell(seconds, cancel)
                continue

            try:
                self.write(step)
            except Exception as e:
                error(f"[OP] {op.name} failed at {step.describe()}: {e}")
                raise ActuationFailure(op.name, step.point, e) from e

        info(f"[OP] {op.name} executed ({op.description})")

    def safe_reset(self) -> List[str]:
        """
        Drive every actuator to its neutral state. Best-effort: all points are
        attempted and failures are logged, never raised.
        Returns the points that could not be written.
        """
        failed = []
        for w in SAFE_STATE:
            try:
                self.write(w)
            except Exception as e:
                warn(f"[OP] safe reset could not write {w.describe()}: {e}")
                failed.append(w.point)

        if failed:
            error(f"[OP] safe reset incomplete, failed points: {failed}")
        else:
            debug("[OP] safe reset complete")
        return failed
