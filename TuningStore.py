import math
import threading
from dataclasses import dataclass, replace
from typing import Any, List, Mapping

from config import CONFIG_FIELDS, DEFAULT_TUNING, MAX_STRIDE, MIN_STRIDE, TuningState


@dataclass(frozen=True)
class ConfigError:
    field: str
    value: Any
    reason: str


def _coerce(value, kind):
    """类型检查，失败抛 TypeError"""
    if kind is bool:
        if isinstance(value, bool):
            return value
        raise TypeError("expected bool")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected {kind.__name__}")
    if not math.isfinite(value):
        raise TypeError("expected a finite number")
    if kind is int:
        if isinstance(value, float) and not value.is_integer():
            raise TypeError("expected int")
        return int(value)
    return float(value)


class TuningStore:
    """
    Holds the current TuningState. Every write swaps in a new immutable
    snapshot with a bumped version; readers call snapshot() once per frame.
    """

    def __init__(self, initial: TuningState = DEFAULT_TUNING):
        self._state = initial
        self._lock = threading.Lock()

    def snapshot(self) -> TuningState:
        with self._lock:
            return self._state

    def publish(self, **changes) -> TuningState:
        """Apply field changes on top of the current state."""
        if "sample_stride" in changes:
            changes["sample_stride"] = min(MAX_STRIDE, max(MIN_STRIDE, int(changes["sample_stride"])))
        with self._lock:
            self._state = replace(self._state, version=self._state.version + 1, **changes)
            return self._state

    def configure(self, options: Mapping[str, Any]) -> List[ConfigError]:
        """
        Host configuration (camelCase keys). Unknown keys are ignored,
        badly typed values are rejected one by one, the rest are applied.
        """
        changes = {}
        errors = []
        for key, value in dict(options or {}).items():
            entry = CONFIG_FIELDS.get(key)
            if entry is None:
                continue
            name, kind, positive = entry
            try:
                coerced = _coerce(value, kind)
            except TypeError as e:
                errors.append(ConfigError(key, value, str(e)))
                continue
            if positive and coerced <= 0:
                errors.append(ConfigError(key, value, "must be > 0"))
                continue
            changes[name] = coerced

        if changes:
            self.publish(**changes)
        return errors
