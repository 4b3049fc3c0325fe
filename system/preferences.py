import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List
from system.log_utils import debug, warn, error

# --- Preference Keys ---
VALID_PREF_KEYS = [
        "cooking_duration",
        "target_temperature",
        "target_pressure",
        "impregnation_duration",
        "poll_interval",
        "pressure_gain",
        "impregnation_fill_timeout",
        "liquor_fill_timeout",
        "heat_up_timeout",
        "discharge_timeout",
        "depressurize_pulse",
        "liquor_displaced_tag",
        "liquor_displaced_op",
        "liquor_displaced_level",
        "simulator_enabled",
    ]

KEY_COOKING_DURATION          = VALID_PREF_KEYS[0]
KEY_TARGET_TEMPERATURE        = VALID_PREF_KEYS[1]
KEY_TARGET_PRESSURE           = VALID_PREF_KEYS[2]
KEY_IMPREGNATION_DURATION     = VALID_PREF_KEYS[3]
KEY_POLL_INTERVAL             = VALID_PREF_KEYS[4]
KEY_PRESSURE_GAIN             = VALID_PREF_KEYS[5]
KEY_IMPREGNATION_FILL_TIMEOUT = VALID_PREF_KEYS[6]
KEY_LIQUOR_FILL_TIMEOUT       = VALID_PREF_KEYS[7]
KEY_HEAT_UP_TIMEOUT           = VALID_PREF_KEYS[8]
KEY_DISCHARGE_TIMEOUT         = VALID_PREF_KEYS[9]
KEY_DEPRESSURIZE_PULSE        = VALID_PREF_KEYS[10]
KEY_LIQUOR_DISPLACED_TAG      = VALID_PREF_KEYS[11]
KEY_LIQUOR_DISPLACED_OP       = VALID_PREF_KEYS[12]
KEY_LIQUOR_DISPLACED_LEVEL    = VALID_PREF_KEYS[13]
KEY_SIMULATOR_ENABLED         = VALID_PREF_KEYS[14]

DEFAULT_PREFS_FILE = os.environ.get("DIGESTER_PREFS_FILE", "config/user_prefs.json")


class Preferences:
    """
    Simple JSON-based preference store with callback support.
    Holds default batch parameters and sequencer tunables.
    """

    def __init__(self, filename: str = DEFAULT_PREFS_FILE):
        self.file = Path(filename)
        self.data: Dict[str, Any] = {}
        self._callbacks: Dict[str, List[Callable[[str, Any], None]]] = {}
        self._load()

    # ------------------------------------------------------------------
    # Core file ops
    # ------------------------------------------------------------------

    def _load(self):
        if not self.file.exists():
            warn(f"[PREFS] file not found, using defaults until saved: {self.file}")
            self.data = {}
            return
        try:
            with open(self.file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            error(f"[PREFS] load failed: {e}")
            self.data = {}
            return

        if not isinstance(loaded, dict):
            error(f"[PREFS] ignoring {self.file}: top level is not an object")
            self.data = {}
            return

        self.data = {k: v for k, v in loaded.items() if k in VALID_PREF_KEYS}
        dropped = set(loaded) - set(self.data)
        if dropped:
            warn(f"[PREFS] ignoring unknown keys: {sorted(dropped)}")

    def save(self):
        """Public save method."""
        try:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.file, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2)
        except OSError as e:
            error(f"[PREFS] save failed: {e}")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def get_float(self, key: str, default: float = 0.0) -> float:
        try:
            return float(self.data.get(key, default))
        except (TypeError, ValueError):
            warn(f"[PREFS] {key} is not a number, using {default}")
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.data.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes", "on")
        return bool(value)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def update_from_dict(self, d: Dict[str, Any], write_disk: bool = False) -> List[str]:
        """Update preferences from dictionary.

        Args:
            d: Dictionary of key-value pairs to update
            write_disk: If True, saves to disk. If False, updates memory only.
        """
        updated = []
        for k, v in d.items():
            if k not in VALID_PREF_KEYS:
                continue

            if k not in self.data or self.data[k] != v:
                self.data[k] = v
                updated.append(k)
            else:
                debug(f"[PREFS] skipping {k}, value unchanged")

        if updated:
            debug(f"[PREFS] updating keys: {updated}")
            if write_disk:
                self.save()
            for k in updated:
                self._notify(k, self.data[k])

        return updated

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def register_callback(self, key, cb: Callable[[str, Any], None]):
        if key not in self._callbacks:
            self._callbacks[key] = []
        self._callbacks[key].append(cb)

    def _notify(self, key: str, value: Any):
        for cb in self._callbacks.get(key, []):
            try:
                cb(key, value)
            except Exception as e:
                warn(f"[PREFS] callback for '{key}' failed: {e}")

    # ------------------------------------------------------------------

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.data)
