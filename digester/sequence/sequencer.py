# digester/sequence/sequencer.py
# Five-phase digester batch: Impregnation -> Black liquor fill -> White liquor fill -> Cooking -> Discharge.
#
# Each phase: ordered operations, at most one condition wait, terminal operations.
# First failure ends the run: state -> ABORTED, one safe reset, outcome returned.

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, List, Optional

from digester.config import SequenceConfig
from digester.errors import ActuationFailure, ConditionTimeout, RunCancelled, RunStateError, TransportError
from digester.operations import (
    EM1_OP1, EM1_OP2, EM1_OP4,
    EM2_OP1, EM2_OP2,
    EM3_OP1, EM3_OP2, EM3_OP3, EM3_OP4, EM3_OP5, EM3_OP6, EM3_OP7, EM3_OP8,
    EM4_OP1, EM4_OP2,
    EM5_OP1, EM5_OP2, EM5_OP3, EM5_OP4,
    PUMPS_PRESET,
    Operation,
    OperationRunner,
)
from digester.params import BatchParameters
from digester.sequence import conditions
from digester.sequence.outcome import RunOutcome
from digester.sequence.phase import Phase, SequenceState
from digester.sequence.regulation import RegulationLoop
from digester.sequence.run_event import RunEvent
from digester.sequence.waiter import ConditionWaiter
from digester.transport.iface import PlantTransport
from system.log_utils import debug, error, info, warn

OPERATOR_ABORT_REASON = "Aborted by operator"


class PhaseSequencer:
    """
    Runs one batch. Not reusable: create a new sequencer per run.
    Phase transitions are reported through `listener(RunEvent, phase)`.
    """

    def __init__(
        self,
        transport: PlantTransport,
        config: Optional[SequenceConfig] = None,
        listener: Optional[Callable[[RunEvent, str], None]] = None,
    ):
        self.transport = transport
        self.config = config or SequenceConfig()
        self.waiter = ConditionWaiter(transport.current_snapshot, self.config.poll_interval)
        self.runner = OperationRunner(transport, self.waiter, self.config.depressurize_pulse)
        self.state = SequenceState.NOT_STARTED
        self.history: List[str] = []
        self.regulation: Optional[RegulationLoop] = None

        self._listener = listener
        self._scripts: Dict[str, Callable[[BatchParameters, threading.Event], None]] = {
            Phase.IMPREGNATION: self._run_impregnation,
            Phase.BLACK_LIQUOR_FILL: self._run_black_liquor_fill,
            Phase.WHITE_LIQUOR_FILL: self._run_white_liquor_fill,
            Phase.COOKING: self._run_cooking,
            Phase.DISCHARGE: self._run_discharge,
        }

    @property
    def active_phase(self) -> Optional[str]:
        return self.state if self.state in Phase.ORDER else None

    # -----------------------------
    # Run
    # -----------------------------
    def run(self, params: BatchParameters, cancel: Optional[threading.Event] = None) -> RunOutcome:
        if self.state != SequenceState.NOT_STARTED:
            raise RunStateError(f"sequencer already used (state {self.state})")

        cancel = cancel or threading.Event()
        phase: Optional[str] = None
        info(f"[SEQ] starting whole sequence with {params.to_dict()}")

        try:
            for phase in Phase.ORDER:
                self._enter(phase)
                started = time.monotonic()
                self._scripts[phase](params, cancel)
                info(f"[SEQ] sequence completed: {Phase.LABELS[phase]} ({time.monotonic() - started:.1f}s)")
                self._notify(RunEvent.PHASE_COMPLETED, phase)
            outcome = RunOutcome.success()
        except ConditionTimeout as e:
            error(f"[SEQ] {Phase.LABELS[phase]} timed out: {e}")
            outcome = RunOutcome.timed_out(e.condition, phase, e.elapsed)
        except ActuationFailure as e:
            error(f"[SEQ] {Phase.LABELS[phase]} failed: {e}")
            outcome = RunOutcome.aborted(str(e), phase)
        except RunCancelled:
            warn(f"[SEQ] {Phase.LABELS[phase]} cancelled by operator")
            outcome = RunOutcome.aborted(OPERATOR_ABORT_REASON, phase)
        except TransportError as e:
            error(f"[SEQ] transport failure during {Phase.LABELS[phase]}: {e}")
            outcome = RunOutcome.aborted(f"Transport failure: {e}", phase)
        except Exception as e:
            error(f"[SEQ] unexpected error during {Phase.LABELS[phase]}: {e!r}")
            outcome = RunOutcome.aborted(f"Unexpected error: {e}", phase)

        self.state = SequenceState.COMPLETED if outcome.ok else SequenceState.ABORTED
        self.runner.safe_reset()
        info(f"[SEQ] {outcome.describe()}")
        return outcome

    def _enter(self, phase: str) -> None:
        self.state = phase
        self.history.append(phase)
        info(f"[SEQ] starting sequence: {Phase.LABELS[phase]}")
        self._notify(RunEvent.PHASE_STARTED, phase)

    def _notify(self, event: RunEvent, phase: str) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event, phase)
        except Exception as e:
            warn(f"[SEQ] listener error on {event.name}: {e}")

    def _ops(self, cancel: threading.Event, *ops: Operation) -> None:
        for op in ops:
            if cancel.is_set():
                raise RunCancelled(op.name)
            self.runner.execute(op, cancel)

    # -----------------------------
    # Phase scripts
    # -----------------------------
    def _run_impregnation(self, params: BatchParameters, cancel: threading.Event) -> None:
        self._ops(cancel, PUMPS_PRESET, EM2_OP1, EM5_OP1, EM3_OP2)

        self.waiter.wait_until(conditions.upper_level_reached(), self.config.impregnation_fill_timeout, cancel)
        self._ops(cancel, EM3_OP1)

        info(f"[SEQ] impregnating for {params.impregnation_duration:g}s")
        self.waiter.dwell(params.impregnation_duration, cancel)

        self._ops(cancel, EM2_OP2, EM5_OP3, EM3_OP6, EM3_OP8)

    def _run_black_liquor_fill(self, params: BatchParameters, cancel: threading.Event) -> None:
        self._ops(cancel, EM3_OP2, EM5_OP1, EM4_OP1)

        self.waiter.wait_until(self.config.liquor_displaced(), self.config.liquor_fill_timeout, cancel)

        self._ops(cancel, EM3_OP6, EM5_OP3, EM4_OP2)

    def _run_white_liquor_fill(self, params: BatchParameters, cancel: threading.Event) -> None:
        self._ops(cancel, EM3_OP3, EM1_OP2)

        self.waiter.wait_until(self.config.liquor_displaced(), self.config.liquor_fill_timeout, cancel)

        self._ops(cancel, EM3_OP6, EM1_OP4)

    def _run_cooking(self, params: BatchParameters, cancel: threading.Event) -> None:
        self._ops(cancel, EM3_OP4, EM1_OP1)

        self.waiter.wait_until(
            conditions.temperature_reached(params.target_temperature), self.config.heat_up_timeout, cancel
        )

        self._ops(cancel, EM3_OP1, EM1_OP2)
        self._regulate(params, cancel)
        self._ops(cancel, EM3_OP6, EM1_OP4, EM3_OP8)

    def _run_discharge(self, params: BatchParameters, cancel: threading.Event) -> None:
        self._ops(cancel, EM5_OP2, EM3_OP5)

        self.waiter.wait_until(conditions.lower_level_cleared(), self.config.discharge_timeout, cancel)

        self._ops(cancel, EM5_OP4, EM3_OP7)

    def _regulate(self, params: BatchParameters, cancel: threading.Event) -> None:
        loop = RegulationLoop(
            self.transport,
            self.runner,
            target_pressure=params.target_pressure,
            target_temperature=params.target_temperature,
            duration=params.cooking_duration,
            cancel=cancel,
            poll_interval=self.config.poll_interval,
            gain=self.config.pressure_gain,
        )
        self.regulation = loop

        info(f"[SEQ] cooking for {params.cooking_duration:g}s under regulation")
        loop.start()
        try:
            self.waiter.dwell(params.cooking_duration, cancel, interrupt=lambda: loop.finished)
        finally:
            loop.stop()
            loop.join()

        if loop.error is not None:
            raise loop.error
        debug(f"[SEQ] regulation finished after {loop.ticks} ticks")
