# digester/params.py
from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Tuple

from digester.errors import ValidationError

# field -> (min, max, unit, label); min is allowed, max is not
PARAM_BOUNDS: Dict[str, Tuple[float, float, str, str]] = {
    "cooking_duration":      (0.0, 180.0, "s", "Cooking duration"),
    "target_temperature":    (20.0, 100.0, "°C", "Target temperature"),
    "target_pressure":       (0.0, 300.0, "bar", "Target pressure"),
    "impregnation_duration": (0.0, 180.0, "s", "Impregnation duration"),
}


@dataclass(frozen=True)
class BatchParameters:
    cooking_duration: float
    target_temperature: float
    target_pressure: float
    impregnation_duration: float

    def __post_init__(self):
        problems = _check_bounds(asdict(self))
        if problems:
            raise ValidationError("; ".join(problems))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchParameters":
        """Build from a loosely typed mapping (HTTP JSON, preferences)."""
        values: Dict[str, float] = {}
        problems: List[str] = []
        for key, (_lo, _hi, _unit, label) in PARAM_BOUNDS.items():
            raw = data.get(key)
            if raw is None or isinstance(raw, bool):
                problems.append(f"{label} is required")
                continue
            try:
                values[key] = float(raw)
            except (TypeError, ValueError):
                problems.append(f"{label} must be a number, got {raw!r}")

        if problems:
            raise ValidationError("; ".join(problems))
        return cls(**values)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _check_bounds(values: Dict[str, Any]) -> List[str]:
    problems = []
    for key, (lo, hi, unit, label) in PARAM_BOUNDS.items():
        value = values.get(key)
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
            problems.append(f"{label} must be a finite number")
        elif not lo <= value < hi:
            problems.append(f"{label} must be at least {lo:g} and below {hi:g} {unit}, got {value:g}")
    return problems
