# digester/config.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from digester.errors import ValidationError
from digester.params import BatchParameters
from digester.sequence.conditions import COMPARISONS, level_threshold
from digester.sequence.waiter import Condition
from digester.snapshot import TAG_FIELDS
from system.log_utils import info, warn
from system.preferences import (
    Preferences,
    KEY_COOKING_DURATION,
    KEY_TARGET_TEMPERATURE,
    KEY_TARGET_PRESSURE,
    KEY_IMPREGNATION_DURATION,
    KEY_POLL_INTERVAL,
    KEY_PRESSURE_GAIN,
    KEY_IMPREGNATION_FILL_TIMEOUT,
    KEY_LIQUOR_FILL_TIMEOUT,
    KEY_HEAT_UP_TIMEOUT,
    KEY_DISCHARGE_TIMEOUT,
    KEY_DEPRESSURIZE_PULSE,
    KEY_LIQUOR_DISPLACED_TAG,
    KEY_LIQUOR_DISPLACED_OP,
    KEY_LIQUOR_DISPLACED_LEVEL,
)


# preference keys that feed SequenceConfig; changing any of them rebuilds the config
SEQUENCE_PREF_KEYS = (
    KEY_POLL_INTERVAL,
    KEY_PRESSURE_GAIN,
    KEY_IMPREGNATION_FILL_TIMEOUT,
    KEY_LIQUOR_FILL_TIMEOUT,
    KEY_HEAT_UP_TIMEOUT,
    KEY_DISCHARGE_TIMEOUT,
    KEY_DEPRESSURIZE_PULSE,
    KEY_LIQUOR_DISPLACED_TAG,
    KEY_LIQUOR_DISPLACED_OP,
    KEY_LIQUOR_DISPLACED_LEVEL,
)

BATCH_PREF_KEYS = (
    KEY_COOKING_DURATION,
    KEY_TARGET_TEMPERATURE,
    KEY_TARGET_PRESSURE,
    KEY_IMPREGNATION_DURATION,
)


@dataclass(frozen=True)
class SequenceConfig:
    poll_interval: float = 0.05
    pressure_gain: float = 0.001
    impregnation_fill_timeout: float = 30.0   # LS+300 activated
    liquor_fill_timeout: float = 20.0         # liquor displaced, both fills
    heat_up_timeout: float = 300.0            # TI300 reaches target
    discharge_timeout: float = 100.0          # LS-300 deactivated
    depressurize_pulse: float = 1.0           # EM3_OP8 V204 open time
    # TODO: confirm liquor-displaced threshold against the plant P&ID; revisions used LI400 > 27 and LI400 < 100
    liquor_displaced_tag: str = "LI400"
    liquor_displaced_op: str = ">"
    liquor_displaced_level: float = 27.0

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        for name in ("impregnation_fill_timeout", "liquor_fill_timeout", "heat_up_timeout",
                     "discharge_timeout", "depressurize_pulse", "pressure_gain"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.liquor_displaced_tag not in TAG_FIELDS:
            raise ValueError(f"unknown liquor_displaced_tag {self.liquor_displaced_tag!r}")
        if self.liquor_displaced_op not in COMPARISONS:
            raise ValueError(f"unknown liquor_displaced_op {self.liquor_displaced_op!r}")

    def liquor_displaced(self) -> Condition:
        return level_threshold(self.liquor_displaced_tag, self.liquor_displaced_op, self.liquor_displaced_level)


def load_sequence_config(prefs: Optional[Preferences]) -> SequenceConfig:
    """Build a SequenceConfig from preferences. Invalid entries fall back to defaults."""
    defaults = SequenceConfig()
    if prefs is None:
        return defaults

    numeric = {
        "poll_interval": KEY_POLL_INTERVAL,
        "pressure_gain": KEY_PRESSURE_GAIN,
        "impregnation_fill_timeout": KEY_IMPREGNATION_FILL_TIMEOUT,
        "liquor_fill_timeout": KEY_LIQUOR_FILL_TIMEOUT,
        "heat_up_timeout": KEY_HEAT_UP_TIMEOUT,
        "discharge_timeout": KEY_DISCHARGE_TIMEOUT,
        "depressurize_pulse": KEY_DEPRESSURIZE_PULSE,
        "liquor_displaced_level": KEY_LIQUOR_DISPLACED_LEVEL,
    }
    kwargs = {field: prefs.get_float(key, getattr(defaults, field)) for field, key in numeric.items()}
    kwargs["liquor_displaced_tag"] = str(prefs.get(KEY_LIQUOR_DISPLACED_TAG, defaults.liquor_displaced_tag))
    kwargs["liquor_displaced_op"] = str(prefs.get(KEY_LIQUOR_DISPLACED_OP, defaults.liquor_displaced_op))

    try:
        cfg = SequenceConfig(**kwargs)
    except ValueError as e:
        warn(f"[CONFIG] invalid sequence preferences ({e}), using defaults")
        return defaults

    info(
        f"[CONFIG] poll={cfg.poll_interval}s gain={cfg.pressure_gain} "
        f"liquor_displaced={cfg.liquor_displaced_tag} {cfg.liquor_displaced_op} {cfg.liquor_displaced_level:g}"
    )
    return cfg


def default_batch_parameters(prefs: Optional[Preferences]) -> Optional[BatchParameters]:
    """Last-used batch parameters from preferences, or None when unset/invalid."""
    if prefs is None:
        return None

    # batch preference keys are named after the BatchParameters fields
    data = {key: prefs.get(key) for key in BATCH_PREF_KEYS}
    if any(v is None for v in data.values()):
        return None
    try:
        return BatchParameters.from_dict(data)
    except ValidationError as e:
        warn(f"[CONFIG] stored batch parameters rejected: {e}")
        return None
