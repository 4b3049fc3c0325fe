from typing import Optional
from digester.sequence.phase import Phase, RunState, SequenceState


class Progress:
    """
    Frontend contract (keep stable).
    Snapshot-safe: do NOT add non-serializable fields.
    """

    def __init__(self):
        self.reset_all()

    def reset_runtime(self):
        """Reset progress state for a new run."""
        self.sequence_state = SequenceState.NOT_STARTED
        self.phase: Optional[str] = None
        # phases_completed: monotonic count of finished phases in this run
        self.phases_completed = 0
        # percent: phases_completed / total_phases, 0..100
        self.percent = 0
        self.elapsed_seconds = 0.0
        self.outcome: Optional[dict] = None
        self.params: Optional[dict] = None

    def reset_all(self):
        """Reset all progress state."""
        self.reset_runtime()
        self.run_state = RunState.INITIALIZED
        self.total_phases = len(Phase.ORDER)

    def to_dict(self) -> dict:
        return dict(self.__dict__)
