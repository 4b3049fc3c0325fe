# digester/actions.py
from typing import Any, Dict, Optional

from digester.engine import BatchEngine
from digester.errors import DigesterError
from digester.params import BatchParameters
from system.log_utils import info, warn


class RunActions:
    """
    Canonical run commands.
    The HTTP routes and the simulator CLI start, abort and reset runs through here.
    """

    def __init__(self, engine: BatchEngine, defaults: Optional[BatchParameters] = None):
        self._engine = engine
        self._defaults = defaults

    def set_defaults(self, defaults: Optional[BatchParameters]) -> None:
        self._defaults = defaults

    def build_parameters(self, data: Optional[Dict[str, Any]] = None) -> BatchParameters:
        """
        Missing keys are filled from the default batch parameters when those
        are configured. Raises ValidationError.
        """
        merged: Dict[str, Any] = self._defaults.to_dict() if self._defaults else {}
        merged.update(data or {})
        return BatchParameters.from_dict(merged)

    def start_run(self, data: Optional[Dict[str, Any]] = None) -> BatchParameters:
        """
        Start a run and return the parameters it was started with.
        Raises ValidationError, RunStateError or ConnectivityError.
        """
        info("[RUN] Start requested")
        params = self.build_parameters(data)
        self._engine.start_run(params)
        return params

    def start(self, data: Optional[Dict[str, Any]] = None) -> tuple[bool, str]:
        try:
            self.start_run(data)
        except DigesterError as e:
            warn(f"[RUN] Start rejected: {e}")
            return False, str(e)
        return True, "Run started"

    def abort(self) -> tuple[bool, str]:
        warn("[RUN] Abort requested")
        ok, msg = self._engine.abort()
        if not ok:
            warn(f"[RUN] Abort rejected: {msg}")
        return ok, msg

    def reset(self) -> tuple[bool, str]:
        info("[RUN] Reset requested")
        try:
            self._engine.reset()
        except DigesterError as e:
            warn(f"[RUN] Reset rejected: {e}")
            return False, str(e)
        return True, "Reset to initialized"

