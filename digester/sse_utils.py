from __future__ import annotations
from typing import Dict, Any


class SseDeltaTracker:
    """
    Tracks the last-sent process snapshot to include it in SSE payloads only when it changed.

    Usage:
        tracker = SseDeltaTracker()
        state = tracker.build(progress, snapshot)
    """

    def __init__(self) -> None:
        self._last_snapshot: Dict[str, Any] | None = None

    def build(
        self,
        progress: Dict[str, Any] | None,
        snapshot: Dict[str, Any] | None,
    ) -> Dict[str, Any]:
        """Return SSE state including only changed fields along with current progress."""
        snapshot_changed = bool(snapshot) and snapshot != self._last_snapshot

        if snapshot_changed:
            self._last_snapshot = snapshot

        return SseDeltaTracker.build_state(progress, snapshot if snapshot_changed else None)

    @staticmethod
    def build_state(
        progress: Dict[str, Any] | None,
        snapshot: Dict[str, Any] | None,
    ) -> Dict[str, Any]:
        """
        Assemble SSE state payload.

        Strategy: always send progress (run state, phase, percent, outcome),
        only send the sensor snapshot when it changed.
        Frontend uses `?? null` checks to keep the last snapshot it received.
        """
        # Progress is already copied by get_live_snapshots(); avoid redundant copy here.
        state = progress or {}

        if snapshot is not None:
            state["snapshot"] = snapshot

        return state
