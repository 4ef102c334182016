"""Delta computation and record rendering for pystat."""

import math
from typing import Any

from pystat.models import (
    CpuTimes,
    MemoryUsage,
    SamplePair,
    Settings,
    SwapUsage,
    format_duration,
)

KIB = 1024.0

# Output decimals per field; anything not listed uses three
_CPU_PRECISION = {"busy_percent": 2}
_DISK_PRECISION = 3
_USAGE_PRECISION = {"used_percent": 2}
_USAGE_DEFAULT_PRECISION = 0


def ratio(numerator: float, denominator: float) -> float:
    """
    Divide with IEEE float semantics instead of raising.

    0/0 is NaN and x/0 is an infinity carrying the sign of x, matching the
    NaN/Inf the tool reports for degenerate intervals.
    """
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def elapsed_seconds(start: float, sample_time: float) -> int:
    """Whole seconds between start and sample_time, truncated via milliseconds."""
    return int((sample_time - start) * 1000) // 1000


def cpu_usage(previous: CpuTimes, current: CpuTimes) -> dict[str, float]:
    """Busy and per-state percentages of the aggregate CPU over the interval."""
    idle = current.idle - previous.idle
    total = current.total - previous.total
    busy = total - idle
    return {
        "busy_percent": ratio(busy, total) * 100,
        "system": ratio(current.system - previous.system, total) * 100,
        "user": ratio(current.user - previous.user, total) * 100,
        "nice": ratio(current.nice - previous.nice, total) * 100,
        "idle": ratio(idle, total) * 100,
    }


def disk_usage(
    pair: SamplePair,
    devices: tuple[str, ...],
    rate: bool = False,
) -> dict[str, dict[str, float]]:
    """
    Per-device utilization and throughput, in device-list order.

    util is the busy-time delta over the milliseconds elapsed since the run
    started, and read and write are the KiB transferred between the two
    snapshots. With ``rate`` set, all three are normalized by the interval
    between the snapshots instead (util per interval, KiB/s).
    Devices missing from either snapshot count as zero counters.
    """
    if rate:
        span_ms = int(pair.interval * 1000)
    else:
        span_ms = int((pair.sample_time - pair.start) * 1000)
    usage: dict[str, dict[str, float]] = {}
    for device in devices:
        before = pair.previous.disk_counters(device)
        after = pair.current.disk_counters(device)
        read = (after.read_bytes - before.read_bytes) / KIB
        write = (after.write_bytes - before.write_bytes) / KIB
        if rate:
            read = ratio(read * 1000, span_ms)
            write = ratio(write * 1000, span_ms)
        usage[device] = {
            "util": ratio(after.busy_time - before.busy_time, span_ms) * 100,
            "read": read,
            "write": write,
        }
    return usage


def memory_usage(memory: MemoryUsage) -> dict[str, float]:
    """Current memory usage in KiB (free/shared/buffers/cached are Linux-only)."""
    return {
        "used_percent": float(memory.used_percent),
        "total": memory.total / KIB,
        "used": memory.used / KIB,
        "free": memory.free / KIB,
        "shared": memory.shared / KIB,
        "buffers": memory.buffers / KIB,
        "cached": memory.cached / KIB,
        "available": memory.available / KIB,
    }


def swap_usage(swap: SwapUsage) -> dict[str, float]:
    """Current swap usage in KiB."""
    return {
        "used_percent": float(swap.used_percent),
        "total": swap.total / KIB,
        "used": swap.used / KIB,
        "free": swap.free / KIB,
    }


def build_record(pair: SamplePair, settings: Settings) -> dict[str, Any]:
    """
    Compute one record from a sample pair.

    Keys appear in output order: elapsed, then cpu, disk, memory and swap for
    each section enabled in settings.
    """
    previous, current = pair.previous, pair.current
    record: dict[str, Any] = {"elapsed": elapsed_seconds(pair.start, pair.sample_time)}
    if settings.show_cpu and previous.cpu is not None and current.cpu is not None:
        record["cpu"] = cpu_usage(previous.cpu, current.cpu)
    if settings.show_disk:
        record["disk"] = disk_usage(pair, settings.devices, settings.disk_rate)
    if settings.show_mem and current.memory is not None:
        record["memory"] = memory_usage(current.memory)
    if settings.show_swap and current.swap is not None:
        record["swap"] = swap_usage(current.swap)
    return record


def format_number(value: float, precision: int) -> str:
    """Fixed-point formatting with NaN, +Inf and -Inf spelled out."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:.{precision}f}"


def _render_fields(fields: dict[str, float], precision: dict[str, int], default: int) -> str:
    body = ", ".join(
        f'"{key}": {format_number(value, precision.get(key, default))}' for key, value in fields.items()
    )
    return f"{{ {body} }}"


def render_record(record: dict[str, Any]) -> str:
    """Render a record as a single brace-delimited line."""
    parts = [f'"elapsed": {record["elapsed"]}']
    if "cpu" in record:
        parts.append(f'"cpu": {_render_fields(record["cpu"], _CPU_PRECISION, 3)}')
    if "disk" in record:
        devices = ", ".join(
            f'"{device}": {_render_fields(fields, {}, _DISK_PRECISION)}'
            for device, fields in record["disk"].items()
        )
        parts.append(f'"disk": {{ {devices} }}')
    if "memory" in record:
        parts.append(
            f'"memory": {_render_fields(record["memory"], _USAGE_PRECISION, _USAGE_DEFAULT_PRECISION)}'
        )
    if "swap" in record:
        parts.append(
            f'"swap": {_render_fields(record["swap"], _USAGE_PRECISION, _USAGE_DEFAULT_PRECISION)}'
        )
    return f"{{ {', '.join(parts)} }}"


def render_total(pair: SamplePair, settings: Settings) -> str:
    """Average record over the whole run, preceded by its comment header."""
    header = f"\n\n// measured average over {format_duration(pair.sample_time - pair.start)}\n"
    return header + render_record(build_record(pair, settings))
