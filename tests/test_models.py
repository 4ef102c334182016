"""Tests for pystat data models."""

import pytest

from pystat.models import (
    ZERO_DISK_COUNTERS,
    CpuTimes,
    DiskCounters,
    SamplePair,
    Settings,
    Snapshot,
    format_duration,
    normalize_device,
    parse_duration,
)


def test_settings_defaults():
    """Test Settings defaults match the command line defaults."""
    settings = Settings()

    assert settings.duration == 365 * 24 * 3600.0
    assert settings.poll == 1.0
    assert settings.show_cpu is True
    assert settings.show_disk is True
    assert settings.show_mem is True
    assert settings.show_swap is False
    assert settings.show_total is False
    assert settings.devices == ()
    assert settings.disk_rate is False


def test_settings_is_frozen():
    """Test that Settings is immutable (frozen)."""
    settings = Settings()

    with pytest.raises(AttributeError):
        settings.poll = 5.0


def test_snapshot_uses_slots():
    """Test that Snapshot uses __slots__ for memory efficiency."""
    snapshot = Snapshot(taken_at=0.0)

    # Slots-based dataclasses don't have __dict__
    assert not hasattr(snapshot, "__dict__")


def test_snapshot_disk_mapping_is_read_only():
    """Test the disk mapping of a Snapshot cannot be mutated."""
    disk = {"sda": DiskCounters(busy_time=1, read_bytes=2, write_bytes=3)}
    snapshot = Snapshot(taken_at=0.0, disk=disk)

    disk["sdb"] = ZERO_DISK_COUNTERS  # Mutating the source has no effect
    assert "sdb" not in snapshot.disk
    with pytest.raises(TypeError):
        snapshot.disk["sdc"] = ZERO_DISK_COUNTERS


def test_snapshot_missing_device_is_zero():
    """Test a device absent from the snapshot yields zero counters."""
    snapshot = Snapshot(taken_at=0.0, disk={})

    assert snapshot.disk_counters("sda") == ZERO_DISK_COUNTERS
    assert Snapshot(taken_at=0.0).disk_counters("sda") == ZERO_DISK_COUNTERS


def test_cpu_times_total():
    """Test CpuTimes.total sums the four tracked states."""
    times = CpuTimes(user=100.0, nice=1.0, system=50.0, idle=850.0)

    assert times.total == 1001.0


def test_sample_pair_interval():
    """Test SamplePair exposes sample time and interval."""
    pair = SamplePair(
        previous=Snapshot(taken_at=10.0),
        current=Snapshot(taken_at=12.5),
        start=9.0,
    )

    assert pair.sample_time == 12.5
    assert pair.interval == 2.5


class TestParseDuration:
    """Tests for Go-style duration parsing."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1s", 1.0),
            ("500ms", 0.5),
            ("1.5s", 1.5),
            ("2m", 120.0),
            ("1h30m", 5400.0),
            ("8760h", 365 * 24 * 3600.0),
            ("250us", 0.00025),
            ("250µs", 0.00025),
            ("0", 0.0),
            ("-1s", -1.0),
            (".5s", 0.5),
        ],
    )
    def test_valid(self, text, expected):
        """Test valid durations parse to seconds."""
        assert parse_duration(text) == pytest.approx(expected)

    @pytest.mark.parametrize("text", ["", "1", "s", "1x", "1s2", "ten seconds", "-"])
    def test_invalid(self, text):
        """Test invalid durations raise ValueError."""
        with pytest.raises(ValueError):
            parse_duration(text)


class TestFormatDuration:
    """Tests for Go-style duration formatting."""

    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, "0s"),
            (2.0, "2s"),
            (2.001, "2.001s"),
            (90.5, "1m30.5s"),
            (3600.0, "1h0m0s"),
            (0.5, "500ms"),
            (0.0015, "1.5ms"),
            (0.000002, "2µs"),
            (0.000000003, "3ns"),
            (-1.25, "-1.25s"),
        ],
    )
    def test_format(self, seconds, expected):
        """Test durations render like time.Duration.String."""
        assert format_duration(seconds) == expected


def test_normalize_device():
    """Test /dev/ prefix is stripped and bare names are kept."""
    assert normalize_device("/dev/sda1") == "sda1"
    assert normalize_device("nvme0n1p2") == "nvme0n1p2"
    assert normalize_device("/dev/mapper/root") == "mapper/root"
