# digester/sequence/run_event.py

from enum import Enum, auto


class RunEvent(Enum):
    """
    Discrete, UI-relevant moments emitted by the engine.
    NOT continuous state.
    """
    STATE_CHANGED = auto()      # payload: RunState value

    PHASE_STARTED = auto()      # payload: Phase value
    PHASE_COMPLETED = auto()    # payload: Phase value

    RUN_FINISHED = auto()       # payload: RunOutcome (exactly one per run)
