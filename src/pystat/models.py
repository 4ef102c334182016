"""Data models for pystat."""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

_NANOSECOND = 1
_MICROSECOND = 1000 * _NANOSECOND
_MILLISECOND = 1000 * _MICROSECOND
_SECOND = 1000 * _MILLISECOND
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE

_UNITS = {
    "ns": _NANOSECOND,
    "us": _MICROSECOND,
    "µs": _MICROSECOND,  # U+00B5 micro sign
    "μs": _MICROSECOND,  # U+03BC greek mu
    "ms": _MILLISECOND,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}

_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """
    Parse a Go-style duration string into seconds.

    Accepts a possibly signed sequence of decimal numbers, each with a unit
    suffix, such as "300ms", "1.5s" or "2h45m". A bare "0" is also valid.

    Raises:
        ValueError: If the string is not a valid duration.
    """
    orig = text
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f"invalid duration {orig!r}")

    total_ns = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {orig!r}")
        total_ns += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return sign * total_ns / _SECOND


def _fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{frac:0{digits}d}".rstrip("0")


def format_duration(seconds: float) -> str:
    """Format seconds the way Go's time.Duration.String does (e.g. "1m30.5s")."""
    ns = int(round(seconds * _SECOND))
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)

    if ns < _MICROSECOND:
        return f"{sign}{ns}ns"
    if ns < _MILLISECOND:
        return f"{sign}{_fraction(ns, _MICROSECOND)}µs"
    if ns < _SECOND:
        return f"{sign}{_fraction(ns, _MILLISECOND)}ms"

    hours, rest = divmod(ns, _HOUR)
    minutes, rest = divmod(rest, _MINUTE)
    secs = f"{_fraction(rest, _SECOND)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}"
    if minutes:
        return f"{sign}{minutes}m{secs}"
    return f"{sign}{secs}"


def normalize_device(name: str) -> str:
    """Strip the /dev/ prefix so names match psutil's per-disk keys."""
    if name.startswith("/dev/"):
        return name[len("/dev/"):]
    return name


@dataclass(slots=True, frozen=True)
class Settings:
    """Immutable run configuration, built once from the command line."""

    duration: float = 365 * 24 * 3600.0  # Seconds
    poll: float = 1.0  # Seconds
    show_cpu: bool = True
    show_disk: bool = True
    show_mem: bool = True
    show_swap: bool = False
    show_total: bool = False
    devices: tuple[str, ...] = ()
    disk_rate: bool = False
    verbose: bool = False


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """Cumulative aggregate CPU times since boot, in seconds."""

    user: float
    nice: float
    system: float
    idle: float

    @property
    def total(self) -> float:
        return self.user + self.nice + self.system + self.idle


@dataclass(slots=True, frozen=True)
class DiskCounters:
    """Cumulative I/O counters for one block device."""

    busy_time: int  # Milliseconds spent doing I/O
    read_bytes: int
    write_bytes: int


# Fallback for devices absent from a snapshot's disk mapping
ZERO_DISK_COUNTERS = DiskCounters(busy_time=0, read_bytes=0, write_bytes=0)


@dataclass(slots=True, frozen=True)
class MemoryUsage:
    """
    Instantaneous virtual memory usage, in bytes.

    free, shared, buffers and cached are only meaningful on Linux; other
    platforms report them as 0.
    """

    total: int
    used: int
    free: int
    shared: int
    buffers: int
    cached: int
    available: int
    used_percent: float


@dataclass(slots=True, frozen=True)
class SwapUsage:
    """Instantaneous swap usage, in bytes."""

    total: int
    used: int
    free: int
    used_percent: float


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Point-in-time read of every enabled metric section."""

    taken_at: float  # time.monotonic() seconds
    cpu: CpuTimes | None = None
    disk: Mapping[str, DiskCounters] | None = None
    memory: MemoryUsage | None = None
    swap: SwapUsage | None = None

    def __post_init__(self) -> None:
        if self.disk is not None:
            object.__setattr__(self, "disk", MappingProxyType(dict(self.disk)))

    def disk_counters(self, device: str) -> DiskCounters:
        """Counters for a device, or zero counters when it was not reported."""
        if self.disk is None:
            return ZERO_DISK_COUNTERS
        return self.disk.get(device, ZERO_DISK_COUNTERS)


@dataclass(slots=True, frozen=True)
class SamplePair:
    """Two snapshots plus the run start: the unit a record is computed from."""

    previous: Snapshot
    current: Snapshot
    start: float = 0.0  # time.monotonic() at the first snapshot

    @property
    def sample_time(self) -> float:
        return self.current.taken_at

    @property
    def interval(self) -> float:
        """Seconds between the two snapshots."""
        return self.current.taken_at - self.previous.taken_at
