"""System sampling engine for pystat."""

import logging
import threading
import time
from queue import Queue

import psutil

from pystat.models import (
    CpuTimes,
    DiskCounters,
    MemoryUsage,
    SamplePair,
    Settings,
    Snapshot,
    SwapUsage,
    normalize_device,
)

logger = logging.getLogger(__name__)

# Filesystem types never reported as disks (snap/loop images)
SKIPPED_FSTYPES = frozenset({"squashfs"})


class MetricsError(RuntimeError):
    """Raised when the metrics provider cannot read an enabled section."""


class PsutilProvider:
    """
    Metrics provider backed by psutil.

    Each method wraps one psutil call and converts its result into pystat
    models. Fields psutil does not report on the current platform (nice,
    busy_time, shared, buffers, cached) fall back to 0.
    """

    def cpu_times(self) -> CpuTimes:
        times = psutil.cpu_times(percpu=False)
        return CpuTimes(
            user=times.user,
            nice=getattr(times, "nice", 0.0),
            system=times.system,
            idle=times.idle,
        )

    def disk_partitions(self) -> list[tuple[str, str]]:
        """Return (device, fstype) for each mounted physical partition."""
        return [(part.device, part.fstype) for part in psutil.disk_partitions(all=False)]

    def disk_io_counters(self, devices: tuple[str, ...]) -> dict[str, DiskCounters]:
        counters = psutil.disk_io_counters(perdisk=True, nowrap=True) or {}
        wanted = set(devices)
        return {
            name: DiskCounters(
                busy_time=getattr(stat, "busy_time", 0),
                read_bytes=stat.read_bytes,
                write_bytes=stat.write_bytes,
            )
            for name, stat in counters.items()
            if name in wanted
        }

    def virtual_memory(self) -> MemoryUsage:
        mem = psutil.virtual_memory()
        return MemoryUsage(
            total=mem.total,
            used=mem.used,
            free=getattr(mem, "free", 0),
            shared=getattr(mem, "shared", 0),
            buffers=getattr(mem, "buffers", 0),
            cached=getattr(mem, "cached", 0),
            available=mem.available,
            used_percent=mem.percent,
        )

    def swap_memory(self) -> SwapUsage:
        swap = psutil.swap_memory()
        return SwapUsage(
            total=swap.total,
            used=swap.used,
            free=swap.free,
            used_percent=swap.percent,
        )


def discover_devices(provider: PsutilProvider) -> tuple[str, ...]:
    """
    Enumerate mounted partitions once, skipping squashfs and duplicates.

    Raises:
        MetricsError: If partitions cannot be listed.
    """
    try:
        partitions = provider.disk_partitions()
    except (psutil.Error, OSError, NotImplementedError) as exc:
        raise MetricsError(f"cannot list disk partitions: {exc}") from exc

    devices: list[str] = []
    for device, fstype in partitions:
        if fstype in SKIPPED_FSTYPES:
            continue
        name = normalize_device(device)
        if name and name not in devices:
            devices.append(name)
    logger.debug("Discovered disk devices: %s", ", ".join(devices) or "(none)")
    return tuple(devices)


def take_snapshot(provider: PsutilProvider, settings: Settings) -> Snapshot:
    """
    Read every enabled section from the provider.

    Raises:
        MetricsError: If any enabled section cannot be read. There is no
            retry and no partial snapshot.
    """
    taken_at = time.monotonic()
    try:
        return Snapshot(
            taken_at=taken_at,
            cpu=provider.cpu_times() if settings.show_cpu else None,
            disk=provider.disk_io_counters(settings.devices) if settings.show_disk else None,
            memory=provider.virtual_memory() if settings.show_mem else None,
            swap=provider.swap_memory() if settings.show_swap else None,
        )
    except (psutil.Error, OSError, NotImplementedError) as exc:
        raise MetricsError(f"cannot read system metrics: {exc}") from exc


class SnapshotHolder:
    """
    Lock-guarded holder for the first and latest snapshots of a run.

    The sampler thread publishes each new snapshot here; the shutdown path
    reads a consistent pair from it.
    """

    def __init__(self, first: Snapshot, start: float) -> None:
        self._lock = threading.Lock()
        self._first = first
        self._latest = first
        self._start = start

    def publish(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._latest = snapshot

    def totals(self) -> SamplePair:
        """Pair covering the whole run: first snapshot to latest snapshot."""
        with self._lock:
            return SamplePair(previous=self._first, current=self._latest, start=self._start)


class SystemSampler:
    """
    Fixed-interval sampler that collects snapshots using psutil.

    Runs in a separate daemon thread and pushes one SamplePair per tick to a
    thread-safe Queue. The thread always finishes by pushing None. A metrics
    failure stops the loop and is kept in ``error``.
    """

    def __init__(
        self,
        update_queue: "Queue[SamplePair | None]",
        settings: Settings,
        provider: PsutilProvider | None = None,
    ) -> None:
        """
        Initialize the SystemSampler and take the initial snapshot.

        Args:
            update_queue: Thread-safe queue to push sample pairs to.
            settings: Run configuration (sections, devices, poll, duration).
            provider: Metrics provider. Defaults to PsutilProvider.

        Raises:
            MetricsError: If the initial snapshot cannot be taken.
        """
        self._queue = update_queue
        self._settings = settings
        self._provider = provider or PsutilProvider()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.error: MetricsError | None = None

        first = take_snapshot(self._provider, settings)
        self._start = first.taken_at
        self._holder = SnapshotHolder(first, self._start)

    @property
    def start_time(self) -> float:
        return self._start

    @property
    def is_running(self) -> bool:
        """Check if the sampler thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the sampling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemSampler",
        )
        self._thread.start()
        logger.info("Sampler started (poll=%.3fs)", self._settings.poll)

    def stop(self) -> None:
        """Request the loop to stop. Safe to call from a signal handler."""
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the sampling thread to finish."""
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if not self._thread.is_alive():
                self._thread = None
                logger.info("Sampler stopped")

    def totals(self) -> SamplePair:
        """First-to-latest pair for the average record."""
        return self._holder.totals()

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        previous = self.totals().current
        try:
            while not self._stop_event.is_set():
                if time.monotonic() - self._start > self._settings.duration:
                    break
                # Wait for poll seconds or until stop is requested
                if self._stop_event.wait(timeout=self._settings.poll):
                    break

                current = take_snapshot(self._provider, self._settings)
                self._holder.publish(current)
                self._queue.put(SamplePair(previous=previous, current=current, start=self._start))
                previous = current
        except MetricsError as exc:
            logger.debug("Sampler aborted: %s", exc)
            self.error = exc
        finally:
            self._queue.put(None)
