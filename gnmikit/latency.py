"""Latency statistics (average, maximum, minimum) over sliding time windows.

Durations and timestamps are integer nanoseconds. Timestamps count from
the Unix epoch. Statistics are written to a metadata store through its
``set_int(name, value)`` method.
"""

from __future__ import annotations

import contextlib
import re
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol

__all__ = [
    "ELEM_LATENCY",
    "ELEM_WINDOW",
    "ELEM_AVG",
    "ELEM_MAX",
    "ELEM_MIN",
    "NANOSECOND",
    "MICROSECOND",
    "MILLISECOND",
    "SECOND",
    "MINUTE",
    "HOUR",
    "StatType",
    "LatencyOptions",
    "Latency",
    "parse_duration",
    "format_duration",
    "compact_duration_string",
    "path",
    "metadata_name",
    "parse_windows",
]

ELEM_LATENCY = "latency"
ELEM_WINDOW = "window"
ELEM_AVG = "avg"
ELEM_MAX = "max"
ELEM_MIN = "min"
_META_NAME = "LatencyWindow"

NANOSECOND = 1
MICROSECOND = 1_000
MILLISECOND = 1_000_000
SECOND = 1_000_000_000
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

_MAX_DURATION = 2**63 - 1

_UNITS = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "\u00b5s": MICROSECOND,
    "\u03bcs": MICROSECOND,
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
}
_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?(ns|us|\u00b5s|\u03bcs|ms|s|m|h)")


class StatType(IntEnum):
    """Kind of latency statistic kept for a window."""

    AVG = 0
    MAX = 1
    MIN = 2

    def __str__(self) -> str:
        return {StatType.AVG: ELEM_AVG, StatType.MAX: ELEM_MAX, StatType.MIN: ELEM_MIN}[self]


class _Metadata(Protocol):
    def set_int(self, name: str, value: int) -> object: ...


def parse_duration(text: str) -> int:
    """Parse a duration such as ``"1h10m30s"`` or ``"1.5ms"`` into nanoseconds."""
    s = text
    sign = 1
    if s[:1] in ("-", "+"):
        if s[0] == "-":
            sign = -1
        s = s[1:]
    if s == "0":
        return 0
    if not s:
        raise ValueError(f'time: invalid duration "{text}"')
    total = 0
    pos = 0
    while pos < len(s):
        m = _COMPONENT.match(s, pos)
        if m is None or not (m.group(1) or m.group(2)):
            raise ValueError(f'time: invalid duration "{text}"')
        whole, frac, unit = m.group(1), m.group(2) or "", m.group(3)
        scale = _UNITS[unit]
        total += int(whole or "0") * scale
        if frac:
            total += int(frac) * scale // 10 ** len(frac)
        if total > _MAX_DURATION + (1 if sign < 0 else 0):
            raise ValueError(f'time: invalid duration "{text}"')
        pos = m.end()
    return sign * total


def _fraction(value: int, unit: int) -> str:
    whole, rem = divmod(value, unit)
    if not rem:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{str(rem).rjust(digits, '0').rstrip('0')}"


def format_duration(nanos: int) -> str:
    """Format nanoseconds the way durations are conventionally printed, e.g. ``1h0m0s``."""
    if nanos == 0:
        return "0s"
    u = abs(nanos)
    if u < SECOND:
        if u < MICROSECOND:
            s = f"{u}ns"
        elif u < MILLISECOND:
            s = _fraction(u, MICROSECOND) + "\u00b5s"
        else:
            s = _fraction(u, MILLISECOND) + "ms"
    else:
        s = _fraction(u % MINUTE, SECOND) + "s"
        minutes = u // MINUTE
        if minutes:
            s = f"{minutes % 60}m{s}"
            hours = minutes // 60
            if hours:
                s = f"{hours}h{s}"
    return f"-{s}" if nanos < 0 else s


def compact_duration_string(nanos: int) -> str:
    """Format a duration, dropping redundant ``0m0s`` and ``0s`` suffixes."""
    s = format_duration(nanos)
    if len(s) >= 6 and s.endswith("h0m0s"):
        return s[:-4]
    if len(s) >= 4 and s.endswith("m0s"):
        return s[:-2]
    return s


def path(window: int, typ: StatType, prefix: Sequence[str] | None = None) -> list[str]:
    """Return the metadata path of the statistic typ for window."""
    return [
        *(prefix or []),
        ELEM_LATENCY,
        ELEM_WINDOW,
        compact_duration_string(window),
        str(typ),
    ]


def metadata_name(window: int, typ: StatType) -> str:
    """Return the metadata name of the statistic typ for window."""
    return f"{typ}{_META_NAME}{compact_duration_string(window)}"


def _quo(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _set(meta: _Metadata, name: str, value: int) -> None:
    # A store that does not know a statistic's name simply does not record it.
    with contextlib.suppress(Exception):
        meta.set_int(name, value)


@dataclass
class _Slot:
    total: int
    max: int
    min: int
    count: int
    start: int | None
    end: int


class _Window:
    def __init__(self, size: int, scale: int) -> None:
        self.size = size
        self.scale = scale
        self.total = 0
        self.count = 0
        self.slots: list[_Slot] = []
        self.covered = False
        self.stats: dict[str, Callable[[str, _Metadata], None]] = {
            metadata_name(size, StatType.AVG): self._set_avg,
            metadata_name(size, StatType.MAX): self._set_max,
            metadata_name(size, StatType.MIN): self._set_min,
        }

    def add(self, slot: _Slot) -> None:
        if slot.count == 0:
            return
        self.total += slot.total
        self.count += slot.count
        self.slots.append(slot)

    def _set_avg(self, name: str, meta: _Metadata) -> None:
        if self.count == 0:
            return
        avg = _quo(self.total, self.count)
        if avg:
            _set(meta, name, avg * self.scale)

    def _set_max(self, name: str, meta: _Metadata) -> None:
        largest = max((slot.max for slot in self.slots), default=0)
        largest = max(largest, 0)
        if largest:
            _set(meta, name, largest)

    def _set_min(self, name: str, meta: _Metadata) -> None:
        if not self.slots:
            return
        smallest = min(slot.min for slot in self.slots)
        if smallest:
            _set(meta, name, smallest)

    def slide(self, ts: int) -> None:
        cutoff = ts - self.size
        expired = [slot for slot in self.slots if slot.end <= cutoff]
        for slot in expired:
            self.count -= slot.count
            self.total -= slot.total
        self.slots = self.slots[len(expired):]

    def is_covered(self, ts: int) -> bool:
        if self.covered:
            return True
        if not self.slots:
            return False
        first = self.slots[0].start
        if first is not None and ts - first >= self.size:
            self.covered = True
            return True
        return False

    def update_meta(self, meta: _Metadata, ts: int, ignore_coverage: bool) -> None:
        if not ignore_coverage and not self.is_covered(ts):
            return
        self.slide(ts)
        for name, setter in self.stats.items():
            setter(name, meta)


@dataclass
class LatencyOptions:
    """Options for a Latency.

    ``avg_precision`` is the unit, in nanoseconds, in which latencies are
    summed for averages (0 means nanoseconds); exported values are always
    nanoseconds. ``compute_func(ts, now)`` returns the latency of an update,
    by default ``now - ts``. ``clock`` returns the current time.
    """

    avg_precision: int = 0
    compute_func: Callable[[int, int], int] | None = None
    clock: Callable[[], int] = field(default=time.time_ns)


class Latency:
    """Latency statistics kept for a set of window sizes."""

    def __init__(self, window_sizes: Sequence[int], opts: LatencyOptions | None = None) -> None:
        opts = opts or LatencyOptions()
        precision = opts.avg_precision or NANOSECOND
        self._scale = precision
        self._compute: Callable[[int, int], int] = opts.compute_func or (lambda ts, now: now - ts)
        self._clock = opts.clock
        self._windows = [_Window(size, precision) for size in window_sizes]
        self._lock = threading.Lock()
        self._start: int | None = None
        self._total = 0
        self._count = 0
        self._min = 0
        self._max = 0

    def compute(self, ts: int) -> None:
        """Record the latency of an update carrying timestamp ts."""
        with self._lock:
            now = self._clock()
            lat = self._compute(ts, now)
            self._total += _quo(lat, self._scale)
            self._count += 1
            if lat > self._max:
                self._max = lat
            if lat < self._min or self._min == 0:
                self._min = lat
            if self._start is None:
                self._start = now

    def update_reset(self, meta: _Metadata) -> None:
        """Fold the latest interval into every window and export their stats.

        A window exports nothing until it has seen a full window's worth of
        updates.
        """
        self._update(meta, False)

    def update_last(self, meta: _Metadata) -> None:
        """Like update_reset, but export even windows not yet fully covered."""
        self._update(meta, True)

    def _update(self, meta: _Metadata, ignore_coverage: bool) -> None:
        with self._lock:
            ts = self._clock()
            if self._count:
                slot = _Slot(
                    total=self._total,
                    max=self._max,
                    min=self._min,
                    count=self._count,
                    start=self._start,
                    end=ts,
                )
                for window in self._windows:
                    window.add(slot)
                self._total = 0
                self._count = 0
                self._min = 0
                self._max = 0
            for window in self._windows:
                window.update_meta(meta, ts, ignore_coverage)
            self._start = ts


def parse_windows(tds: Sequence[str], meta_update_period: int) -> list[int]:
    """Parse window durations, each of which must be a multiple of meta_update_period."""
    if meta_update_period == 0:
        raise ValueError("metadata update period must not be zero")
    durations = []
    for td in tds:
        try:
            dur = parse_duration(td)
        except ValueError as err:
            raise ValueError(f"parsing {td}: {err}") from err
        if _quo(dur, meta_update_period) * meta_update_period != dur:
            raise ValueError(
                f"latency stats window {td} is not a multiple of metadata update "
                f"period {format_duration(meta_update_period)}"
            )
        durations.append(dur)
    return durations