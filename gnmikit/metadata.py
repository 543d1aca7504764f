"""Per-target metadata values kept alongside cached data.

Metadata values are named; each name is registered as a boolean, integer
or string value, and only registered names may be read or written.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

from gnmikit import latency

__all__ = [
    "ROOT",
    "SYNC",
    "CONNECTED",
    "CONNECTED_ADDR",
    "ADD_COUNT",
    "DEL_COUNT",
    "EMPTY_COUNT",
    "LEAF_COUNT",
    "UPDATE_COUNT",
    "STALE_COUNT",
    "SUPPRESSED_COUNT",
    "SIZE",
    "LATEST_TIMESTAMP",
    "CONNECT_ERROR",
    "TARGET_BOOL_VALUES",
    "TARGET_INT_VALUES",
    "TARGET_STR_VALUES",
    "InvalidValueError",
    "UnsetValueError",
    "IntValue",
    "StrValue",
    "Metadata",
    "register_int_value",
    "unregister_int_value",
    "path",
    "latency_path",
    "register_latency_metadata",
]

# Root node under which metadata is cached.
ROOT = "meta"

SYNC = "sync"
CONNECTED = "connected"
CONNECTED_ADDR = "connectedAddress"
ADD_COUNT = "targetLeavesAdded"
DEL_COUNT = "targetLeavesDeleted"
EMPTY_COUNT = "targetLeavesEmpty"
LEAF_COUNT = "targetLeaves"
UPDATE_COUNT = "targetLeavesUpdated"
STALE_COUNT = "targetLeavesStale"
SUPPRESSED_COUNT = "targetLeavesSuppressed"
SIZE = "targetSize"
LATEST_TIMESTAMP = "latestTimestamp"
CONNECT_ERROR = "connectError"


class InvalidValueError(ValueError):
    """Raised for an operation on a metadata name that is not registered."""

    def __init__(self, message: str = "invalid metadata value") -> None:
        super().__init__(message)


class UnsetValueError(LookupError):
    """Raised when reading a metadata value that has not been set."""

    def __init__(self, message: str = "unset value") -> None:
        super().__init__(message)


@dataclass
class IntValue:
    """Path of an integer metadata value and whether it starts at zero."""

    path: list[str] = field(default_factory=list)
    init_zero: bool = False


@dataclass
class StrValue:
    """Whether a string metadata value is valid and whether it starts empty."""

    valid: bool = False
    init_empty_str: bool = False


TARGET_BOOL_VALUES: dict[str, bool] = {
    SYNC: True,
    CONNECTED: True,
}

TARGET_INT_VALUES: dict[str, IntValue] = {
    name: IntValue([ROOT, name], True)
    for name in (
        ADD_COUNT,
        DEL_COUNT,
        EMPTY_COUNT,
        LEAF_COUNT,
        UPDATE_COUNT,
        STALE_COUNT,
        SUPPRESSED_COUNT,
        SIZE,
        LATEST_TIMESTAMP,
    )
}

TARGET_STR_VALUES: dict[str, StrValue] = {
    CONNECTED_ADDR: StrValue(valid=True, init_empty_str=True),
    CONNECT_ERROR: StrValue(valid=True, init_empty_str=False),
}


def register_int_value(name: str, val: IntValue) -> None:
    """Register an integer metadata value under name."""
    TARGET_INT_VALUES[name] = val


def unregister_int_value(name: str) -> None:
    """Remove the integer metadata value name, if registered."""
    TARGET_INT_VALUES.pop(name, None)


def _valid_int(value: str) -> bool:
    return TARGET_INT_VALUES.get(value) is not None


def _valid_bool(value: str) -> bool:
    return bool(TARGET_BOOL_VALUES.get(value))


def _valid_str(value: str) -> bool:
    val = TARGET_STR_VALUES.get(value)
    return val is not None and val.valid


def path(value: str) -> list[str] | None:
    """Return the full metadata path of a registered value, or None."""
    if _valid_bool(value) or _valid_str(value):
        return [ROOT, value]
    val = TARGET_INT_VALUES.get(value)
    if val is not None:
        return list(val.path)
    return None


def latency_path(window: int, typ: latency.StatType) -> list[str]:
    """Return the metadata path of the latency statistic typ for window."""
    return latency.path(window, typ, [ROOT])


def register_latency_metadata(window_sizes: Sequence[int]) -> None:
    """Register integer metadata for the latency statistics of each window.

    Call before creating any Metadata that should hold these values.
    """
    for size in window_sizes:
        for typ in (latency.StatType.AVG, latency.StatType.MAX, latency.StatType.MIN):
            register_int_value(
                latency.metadata_name(size, typ), IntValue(path=latency_path(size, typ))
            )


class Metadata:
    """Container of all metadata values for one target; thread-safe."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ints: dict[str, int] = {}
        self._bools: dict[str, bool] = {}
        self._strs: dict[str, str] = {}
        self.clear()

    def reset_entry(self, entry: str) -> None:
        """Reset entry to its zero value, or drop it if it has no initial value."""
        if _valid_bool(entry):
            self.set_bool(entry, False)
            return
        if _valid_int(entry):
            if TARGET_INT_VALUES[entry].init_zero:
                self.set_int(entry, 0)
            else:
                with self._lock:
                    self._ints.pop(entry, None)
            return
        if _valid_str(entry):
            if TARGET_STR_VALUES[entry].init_empty_str:
                self.set_str(entry, "")
            else:
                with self._lock:
                    self._strs.pop(entry, None)
            return
        raise InvalidValueError(f"unsupported entry {entry!r}")

    def clear(self) -> None:
        """Reset every registered value."""
        for registry in (TARGET_BOOL_VALUES, TARGET_INT_VALUES, TARGET_STR_VALUES):
            for name in list(registry):
                try:
                    self.reset_entry(name)
                except InvalidValueError:
                    pass

    def add_int(self, value: str, i: int) -> None:
        """Add i to the integer value named value."""
        if not _valid_int(value):
            raise InvalidValueError()
        with self._lock:
            self._ints[value] = self._ints.get(value, 0) + i

    def set_int(self, value: str, v: int) -> None:
        """Set the integer value named value to v."""
        if not _valid_int(value):
            raise InvalidValueError()
        with self._lock:
            self._ints[value] = v

    def get_int(self, value: str) -> int:
        """Return the integer value named value."""
        if not _valid_int(value):
            raise InvalidValueError()
        with self._lock:
            try:
                return self._ints[value]
            except KeyError:
                raise UnsetValueError() from None

    def set_bool(self, value: str, v: bool) -> None:
        """Set the boolean value named value to v."""
        if not _valid_bool(value):
            raise InvalidValueError()
        with self._lock:
            self._bools[value] = v

    def get_bool(self, value: str) -> bool:
        """Return the boolean value named value."""
        if not _valid_bool(value):
            raise InvalidValueError()
        with self._lock:
            try:
                return self._bools[value]
            except KeyError:
                raise UnsetValueError() from None

    def set_str(self, value: str, v: str) -> None:
        """Set the string value named value to v."""
        if not _valid_str(value):
            raise InvalidValueError()
        with self._lock:
            self._strs[value] = v

    def get_str(self, value: str) -> str:
        """Return the string value named value."""
        if not _valid_str(value):
            raise InvalidValueError()
        with self._lock:
            try:
                return self._strs[value]
            except KeyError:
                raise UnsetValueError() from None