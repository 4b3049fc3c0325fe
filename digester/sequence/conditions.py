# digester/sequence/conditions.py
from __future__ import annotations

import operator

from digester.sequence.waiter import Condition
from digester.snapshot import TAG_FIELDS

COMPARISONS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def upper_level_reached() -> Condition:
    return Condition("LS+300 activated (digester T300 full)", lambda s: s.ls_plus_300)


def lower_level_cleared() -> Condition:
    return Condition("LS-300 deactivated (digester T300 empty)", lambda s: not s.ls_minus_300)


def temperature_reached(target: float) -> Condition:
    return Condition(f"TI300 >= {target:g} °C", lambda s: s.ti300 >= target)


def level_threshold(tag: str, op: str, bound: float) -> Condition:
    """Comparison of one level indicator against a bound, e.g. LI400 > 27."""
    if tag not in TAG_FIELDS:
        raise ValueError(f"unknown tag {tag!r}")
    if op not in COMPARISONS:
        raise ValueError(f"unknown comparison {op!r}")

    field, _ = TAG_FIELDS[tag]
    compare = COMPARISONS[op]
    return Condition(f"{tag} {op} {bound:g} (liquor displaced)", lambda s: compare(getattr(s, field), bound))
