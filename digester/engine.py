# digester/engine.py
# Caller-facing run-state machine around the phase sequencer.
#
#   INITIALIZED --start_run--> RUNNING --success--> INITIALIZED
#                                      --failure/abort--> HALTED --reset--> INITIALIZED

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Union

from digester.config import SequenceConfig
from digester.errors import ConnectivityError, RunStateError
from digester.params import BatchParameters
from digester.progress import Progress
from digester.sequence.outcome import RunOutcome
from digester.sequence.phase import Phase, RunState
from digester.sequence.run_event import RunEvent
from digester.sequence.sequencer import PhaseSequencer
from digester.transport.iface import PlantTransport
from system.log_utils import debug, error, info, warn

ABORT_JOIN_TIMEOUT = 2.0    # seconds to wait for the worker to settle after abort


class BatchEngine:
    """
    Engine shell:
    - run-state lifecycle (exactly one run at a time)
    - worker thread + cancel signal
    - subscriber notification (progress, events, outcome)
    """

    def __init__(self, transport: PlantTransport, config: Optional[SequenceConfig] = None):
        self.transport = transport
        self.config = config or SequenceConfig()

        self._worker: Optional[threading.Thread] = None
        self._cancel = threading.Event()
        self._lock = threading.RLock()
        self._state = RunState.INITIALIZED
        self._sequencer: Optional[PhaseSequencer] = None
        self._start_timestamp: Optional[float] = None

        self.progress = Progress()
        self.last_outcome: Optional[RunOutcome] = None

        self._progress_subs: List[Callable[[Progress], None]] = []
        self._event_subs: List[Callable[[RunEvent, Any], None]] = []
        self._outcome_subs: List[Callable[[RunOutcome], None]] = []

    # -----------------------------
    # Subscriptions
    # -----------------------------
    def subscribe(self, cb: Callable[[Progress], None]) -> None:
        self._progress_subs.append(cb)

    def subscribe_event(self, cb: Callable[[RunEvent, Any], None]) -> None:
        self._event_subs.append(cb)

    def subscribe_outcome(self, cb: Callable[[RunOutcome], None]) -> None:
        self._outcome_subs.append(cb)

    def _emit_progress(self) -> None:
        self._refresh_elapsed()
        for cb in self._progress_subs:
            try:
                cb(self.progress)
            except Exception as e:
                warn(f"[ENGINE] progress notify error: {e}")

    def _emit_event(self, event: RunEvent, payload: Any) -> None:
        for cb in self._event_subs:
            try:
                cb(event, payload)
            except Exception as e:
                warn(f"[ENGINE] event notify error on {event.name}: {e}")

    def _emit_outcome(self, outcome: RunOutcome) -> None:
        for cb in self._outcome_subs:
            try:
                cb(outcome)
            except Exception as e:
                warn(f"[ENGINE] outcome notify error: {e}")

    # -----------------------------
    # Public API
    # -----------------------------
    def current_state(self) -> str:
        return self._state

    def active_phase(self) -> Optional[str]:
        seq = self._sequencer
        if seq is None or self._state != RunState.RUNNING:
            return None
        return seq.active_phase

    def is_running(self) -> bool:
        return bool(self._worker) and self._worker.is_alive()

    def start_run(self, params: Union[BatchParameters, Dict[str, Any]]) -> None:
        """
        Validate, check state and connectivity, then hand the run to a worker thread.
        Raises ValidationError, RunStateError or ConnectivityError; nothing is
        written to the plant when it raises.
        """
        if not isinstance(params, BatchParameters):
            params = BatchParameters.from_dict(params)

        with self._lock:
            if self._state != RunState.INITIALIZED:
                warn(f"[ENGINE] start requested in state {self._state}")
                raise RunStateError(f"Cannot start a run while {self._state}")

            if not self._transport_connected():
                warn("[ENGINE] start refused: plant transport not connected")
                raise ConnectivityError("Plant transport is not connected")

            self._cancel.clear()
            self._sequencer = PhaseSequencer(self.transport, self.config, listener=self._on_phase_event)
            self.last_outcome = None
            self.progress.reset_runtime()
            self.progress.params = params.to_dict()
            self._start_timestamp = time.monotonic()

            self._set_state(RunState.RUNNING)

            self._worker = threading.Thread(target=self._run_wrapper, args=(params,), daemon=True, name="batch-run")
            self._worker.start()

        info("[ENGINE] batch run started")

    def abort(self) -> tuple[bool, str]:
        # Forcefully stop the current run; the worker resets the plant and settles to HALTED.
        if not self.is_running():
            return False, "Not running"

        self._cancel.set()
        self._worker.join(timeout=ABORT_JOIN_TIMEOUT)
        if self._worker.is_alive():
            warn("[ENGINE] worker still settling after abort")
            return True, "Abort requested"

        # the last operation may already have run when the cancel was set
        outcome = self.last_outcome
        if outcome is not None and outcome.ok:
            info("[ENGINE] abort arrived after the batch completed")
            return False, "Run already completed"
        return True, "Aborted successfully"

    def reset(self) -> None:
        with self._lock:
            if self._state != RunState.HALTED:
                raise RunStateError(f"Reset is only allowed from {RunState.HALTED}, not {self._state}")

            self.progress.reset_runtime()
            self._sequencer = None
            self._set_state(RunState.INITIALIZED)

        info("[ENGINE] reset to initialized")

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the current run (if any) has settled. Returns False on timeout."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    # -----------------------------
    # Worker
    # -----------------------------
    def _run_wrapper(self, params: BatchParameters) -> None:
        outcome: Optional[RunOutcome] = None
        try:
            outcome = self._sequencer.run(params, self._cancel)
        finally:
            if outcome is None:
                error("[ENGINE] sequencer terminated without an outcome")
                self._sequencer.runner.safe_reset()
                outcome = RunOutcome.aborted("Sequencer terminated unexpectedly", self._sequencer.active_phase)
            self._finish(outcome)

    def _finish(self, outcome: RunOutcome) -> None:
        with self._lock:
            self.last_outcome = outcome
            self.progress.outcome = outcome.to_dict()
            self.progress.sequence_state = self._sequencer.state
            self.progress.phase = None
            self._set_state(RunState.INITIALIZED if outcome.ok else RunState.HALTED)

        if outcome.ok:
            info("[ENGINE] batch run complete")
        else:
            warn(f"[ENGINE] batch run ended: {outcome.describe()}")

        self._emit_event(RunEvent.RUN_FINISHED, outcome)
        self._emit_outcome(outcome)

    def _on_phase_event(self, event: RunEvent, phase: str) -> None:
        with self._lock:
            self.progress.sequence_state = self._sequencer.state
            if event == RunEvent.PHASE_STARTED:
                self.progress.phase = phase
            elif event == RunEvent.PHASE_COMPLETED:
                self.progress.phases_completed += 1
                self.progress.percent = round(self.progress.phases_completed / float(len(Phase.ORDER)) * 100)

        debug(f"[ENGINE] {event.name} {phase}")
        self._emit_event(event, phase)
        self._emit_progress()

    # -----------------------------
    # Helpers
    # -----------------------------
    def _set_state(self, state: str) -> None:
        changed = False
        with self._lock:
            if self._state != state:
                self._state = state
                self.progress.run_state = state
                changed = True

        if changed:
            info(f"[ENGINE] state -> {state}")
            self._emit_event(RunEvent.STATE_CHANGED, state)
            self._emit_progress()

    def _transport_connected(self) -> bool:
        try:
            return bool(self.transport.is_connected())
        except Exception as e:
            warn(f"[ENGINE] connectivity check failed: {e}")
            return False

    def _refresh_elapsed(self) -> None:
        if self._start_timestamp is not None and self._state == RunState.RUNNING:
            self.progress.elapsed_seconds = max(0.0, time.monotonic() - self._start_timestamp)
