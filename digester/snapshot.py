# digester/snapshot.py
from __future__ import annotations

import threading
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Mapping

from system.log_utils import verbose, warn


@dataclass(frozen=True)
class ProcessSnapshot:
    """
    Latest known plant sensor readings.
    Frozen: a new instance is swapped in on every transport update.
    """
    li100: int = 0
    li200: int = 0
    li400: int = 0
    pi300: int = 0
    ti300: float = 20.0
    ls_plus_300: bool = False     # digester upper level reached
    ls_minus_300: bool = False    # digester lower level reached (liquid present)

    def to_dict(self) -> dict:
        return asdict(self)


# transport tag -> (snapshot field, coercion)
TAG_FIELDS: Dict[str, tuple] = {
    "LI100": ("li100", int),
    "LI200": ("li200", int),
    "LI400": ("li400", int),
    "PI300": ("pi300", int),
    "TI300": ("ti300", float),
    "LS+300": ("ls_plus_300", bool),
    "LS-300": ("ls_minus_300", bool),
}
FIELD_TAGS: Dict[str, str] = {field: tag for tag, (field, _coerce) in TAG_FIELDS.items()}


class SnapshotStore:
    """
    Single-writer / many-reader holder of the current ProcessSnapshot.
    Writers merge partial updates under a lock; readers just take the reference.
    """

    def __init__(self, initial: ProcessSnapshot = None):
        self._snapshot = initial or ProcessSnapshot()
        self._lock = threading.Lock()

    def current(self) -> ProcessSnapshot:
        return self._snapshot

    def update(self, **fields: Any) -> ProcessSnapshot:
        """Merge field values into a new snapshot. Omitted fields keep their value."""
        with self._lock:
            snap = replace(self._snapshot, **fields)
            self._snapshot = snap
        return snap

    def apply_items(self, items: Mapping[str, Any]) -> ProcessSnapshot:
        """Apply a batch of transport tag values, e.g. {"LI400": 28, "LS+300": True}."""
        fields = {}
        for tag, value in items.items():
            mapping = TAG_FIELDS.get(tag)
            if mapping is None:
                warn(f"[SNAPSHOT] unhandled process item: {tag}")
                continue
            name, coerce = mapping
            try:
                fields[name] = coerce(value)
            except (TypeError, ValueError):
                warn(f"[SNAPSHOT] bad value for {tag}: {value!r}")

        if not fields:
            return self._snapshot

        verbose(f"[SNAPSHOT] update {fields}")
        return self.update(**fields)
