# digester/sequence/outcome.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class OutcomeKind:
    SUCCESS = "SUCCESS"
    ABORTED = "ABORTED"
    TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class RunOutcome:
    kind: str
    phase: Optional[str] = None       # failing phase; None on success
    reason: Optional[str] = None      # ABORTED
    condition: Optional[str] = None   # TIMED_OUT
    elapsed_seconds: Optional[float] = None

    @classmethod
    def success(cls) -> "RunOutcome":
        return cls(OutcomeKind.SUCCESS)

    @classmethod
    def aborted(cls, reason: str, phase: Optional[str]) -> "RunOutcome":
        return cls(OutcomeKind.ABORTED, phase=phase, reason=reason)

    @classmethod
    def timed_out(cls, condition: str, phase: Optional[str], elapsed_seconds: float) -> "RunOutcome":
        return cls(OutcomeKind.TIMED_OUT, phase=phase, condition=condition, elapsed_seconds=elapsed_seconds)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    def describe(self) -> str:
        if self.kind == OutcomeKind.SUCCESS:
            return "Batch completed successfully"
        if self.kind == OutcomeKind.TIMED_OUT:
            return f"Timed out in {self.phase}: {self.condition}"
        return f"Aborted in {self.phase}: {self.reason}"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "phase": self.phase,
            "reason": self.reason,
            "condition": self.condition,
            "elapsed_seconds": self.elapsed_seconds,
            "message": self.describe(),
        }
