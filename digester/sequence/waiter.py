# digester/sequence/waiter.py
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from digester.errors import ConditionTimeout, RunCancelled
from digester.snapshot import ProcessSnapshot
from system.log_utils import debug, verbose, warn

DEFAULT_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class Condition:
    """Human-readable description plus a cheap, side-effect-free snapshot test."""
    description: str
    predicate: Callable[[ProcessSnapshot], bool]

    def holds(self, snapshot: ProcessSnapshot) -> bool:
        return bool(self.predicate(snapshot))


class ConditionWaiter:
    """
    Poll-until-true-or-timeout against the live snapshot.

    Every wait observes the optional cancel event and returns control within
    one poll interval of it being set.
    """

    def __init__(
        self,
        snapshot_source: Callable[[], ProcessSnapshot],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self._source = snapshot_source
        self.poll_interval = poll_interval
        self._clock = clock

    def wait_until(
        self,
        condition: Condition,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> float:
        """Block until `condition` holds. Returns the elapsed seconds."""
        start = self._clock()
        debug(f"[WAIT] waiting for: {condition.description} (timeout {timeout:g}s)")

        while True:
            self._check_cancel(cancel, condition.description)

            if condition.holds(self._source()):
                elapsed = self._clock() - start
                debug(f"[WAIT] condition met after {elapsed:.2f}s: {condition.description}")
                return elapsed

            elapsed = self._clock() - start
            if elapsed >= timeout:
                warn(f"[WAIT] timed out after {elapsed:.2f}s: {condition.description}")
                raise ConditionTimeout(condition.description, timeout, elapsed)

            verbose(f"[WAIT] {condition.description}: not yet ({elapsed:.2f}s)")
            self._sleep(min(self.poll_interval, timeout - elapsed), cancel)

    def dwell(
        self,
        seconds: float,
        cancel: Optional[threading.Event] = None,
        interrupt: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """
        Cancellable sleep. Returns True when the full duration elapsed,
        False when `interrupt()` ended it early.
        """
        deadline = self._clock() + max(0.0, seconds)
        while True:
            self._check_cancel(cancel, "dwell")

            if interrupt is not None and interrupt():
                return False

            remaining = deadline - self._clock()
            if remaining <= 0:
                return True

            self._sleep(min(self.poll_interval, remaining), cancel)

    @staticmethod
    def _check_cancel(cancel: Optional[threading.Event], what: str) -> None:
        if cancel is not None and cancel.is_set():
            debug(f"[WAIT] cancelled during {what}")
            raise RunCancelled(what)

    @staticmethod
    def _sleep(seconds: float, cancel: Optional[threading.Event]) -> None:
        if cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)
