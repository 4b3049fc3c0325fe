# live_status_service.py
from __future__ import annotations
import threading
from typing import Dict, Any, Optional, Tuple

from system.log_utils import warn
from system import services
from digester.progress import Progress
from digester.sequence.phase import RunState


class LiveStatusService:
    """Live run status: latest progress pushed by the engine plus the plant snapshot on demand."""

    def __init__(self):
        self.latest_progress_snapshot: Dict[str, Any] = {"run_state": RunState.INITIALIZED, "phase": None, "percent": 0}

        self._lock = threading.Lock()
        self._engine = None
        self._transport = None

    def attach_engine(self, engine) -> None:
        self._engine = engine
        engine.subscribe(self._on_progress)
        self._on_progress(engine.progress)

    def attach_transport(self, transport) -> None:
        self._transport = transport

    def _on_progress(self, progress: Progress) -> None:
        try:
            snapshot = progress.to_dict()
            with self._lock:
                self.latest_progress_snapshot = snapshot
        except Exception as e:
            warn(f"[live] progress update error: {e}")

    def read_process_snapshot(self) -> Optional[Dict[str, Any]]:
        if self._transport is None:
            return None
        try:
            return self._transport.current_snapshot().to_dict()
        except Exception as e:
            warn(f"[live] snapshot read error: {e}")
            return None

    def get_live_snapshots(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        with self._lock:
            progress = self.latest_progress_snapshot.copy()
        return progress, self.read_process_snapshot() or {}


# -----------------------------------------------------------------------------
# Module-level delegates to instance in system.services
# -----------------------------------------------------------------------------

def _get_service() -> LiveStatusService | None:
    return getattr(services, "live_status_service", None)


def get_live_snapshots() -> Tuple[Dict[str, Any], Dict[str, Any]]:
    svc = _get_service()
    if svc is None:
        return {}, {}
    return svc.get_live_snapshots()
