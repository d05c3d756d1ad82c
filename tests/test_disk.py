"""Tests for the disk sampler."""

from collections import namedtuple

import psutil

from servstat.disk import VIRTUAL_FSTYPES, DiskSampler, percent_label, used_percent

Partition = namedtuple("Partition", ["device", "mountpoint", "fstype", "opts"])
Usage = namedtuple("Usage", ["total", "used", "free", "percent"])

GIB = 1024**3


def usage_table(table):
    """Build a disk_usage stand-in from a mountpoint mapping."""

    def usage(path):
        value = table[path]
        if isinstance(value, Exception):
            raise value
        return value

    return usage


class TestPercentages:
    """Tests for df-style percentages."""

    def test_used_percent(self):
        """Test the percentage is taken over used + free."""
        assert used_percent(25, 75) == 25.0

    def test_label_rounds_up(self):
        """Test the label rounds up the way df does."""
        assert percent_label(1, 2) == "34%"
        assert percent_label(50, 50) == "50%"

    def test_empty_filesystem(self):
        """Test zero capacity gives 0 rather than dividing by zero."""
        assert used_percent(0, 0) == 0.0
        assert percent_label(0, 0) == "0%"


class TestDiskSampler:
    """Tests for DiskSampler."""

    def test_aggregates_real_filesystems(self):
        """Test real filesystems are summed and virtual ones skipped."""
        partitions = [
            Partition("/dev/sda1", "/", "ext4", "rw"),
            Partition("tmpfs", "/run", "tmpfs", "rw"),
            Partition("/dev/sdb1", "/data", "xfs", "rw"),
        ]
        usage = usage_table(
            {
                "/": Usage(100 * GIB, 40 * GIB, 60 * GIB, 40.0),
                "/run": Usage(8 * GIB, 8 * GIB, 0, 100.0),
                "/data": Usage(200 * GIB, 20 * GIB, 180 * GIB, 10.0),
            }
        )

        snapshot = DiskSampler(partitions=lambda: partitions, usage=usage).sample()

        assert snapshot.scope == "aggregate"
        assert snapshot.total_bytes == 300 * GIB
        assert snapshot.used_bytes == 60 * GIB
        assert snapshot.free_bytes == 240 * GIB
        assert snapshot.used_percent == 20.0
        assert snapshot.percent_label == "20%"
        assert snapshot.total_human == "300.00 GiB"

    def test_repeated_device_counted_once(self):
        """Test bind mounts of one device are not double counted."""
        partitions = [
            Partition("/dev/sda1", "/", "ext4", "rw"),
            Partition("/dev/sda1", "/var/lib/docker", "ext4", "rw"),
        ]
        usage = usage_table(
            {
                "/": Usage(100 * GIB, 50 * GIB, 50 * GIB, 50.0),
                "/var/lib/docker": Usage(100 * GIB, 50 * GIB, 50 * GIB, 50.0),
            }
        )

        snapshot = DiskSampler(partitions=lambda: partitions, usage=usage).sample()

        assert snapshot.total_bytes == 100 * GIB

    def test_only_virtual_uses_root(self):
        """Test a list of only virtual mounts takes the root path, not a zero aggregate."""
        partitions = [Partition("tmpfs", "/dev/shm", "tmpfs", "rw")]
        usage = usage_table(
            {
                "/dev/shm": Usage(GIB, 0, GIB, 0.0),
                "/": Usage(10 * GIB, 5 * GIB, 5 * GIB, 50.0),
            }
        )

        snapshot = DiskSampler(partitions=lambda: partitions, usage=usage).sample()

        assert snapshot.scope == "root"
        assert snapshot.total_bytes == 10 * GIB
        assert snapshot.percent_label == "50%"

    def test_unreadable_mount_skipped(self):
        """Test a mount that cannot be queried is left out."""
        partitions = [
            Partition("server:/export", "/mnt/nfs", "nfs", "rw"),
            Partition("/dev/sda1", "/", "ext4", "rw"),
        ]
        usage = usage_table(
            {
                "/mnt/nfs": PermissionError("stale handle"),
                "/": Usage(10 * GIB, 1 * GIB, 9 * GIB, 10.0),
            }
        )

        snapshot = DiskSampler(partitions=lambda: partitions, usage=usage).sample()

        assert snapshot.scope == "aggregate"
        assert snapshot.total_bytes == 10 * GIB

    def test_listing_failure_uses_root(self):
        """Test the root filesystem is used when partitions cannot be listed."""

        def broken():
            raise psutil.AccessDenied()

        usage = usage_table({"/": Usage(10 * GIB, 2 * GIB, 8 * GIB, 20.0)})

        snapshot = DiskSampler(partitions=broken, usage=usage).sample()

        assert snapshot.scope == "root"
        assert snapshot.used_bytes == 2 * GIB

    def test_custom_root(self):
        """Test the fallback mount point is configurable."""
        usage = usage_table({"/srv": Usage(4 * GIB, 1 * GIB, 3 * GIB, 25.0)})

        snapshot = DiskSampler(partitions=lambda: [], usage=usage, root="/srv").sample()

        assert snapshot.scope == "root"
        assert snapshot.percent_label == "25%"

    def test_everything_fails(self):
        """Test the degraded snapshot when no filesystem can be queried."""
        usage = usage_table({"/": FileNotFoundError("no root")})

        snapshot = DiskSampler(partitions=lambda: [], usage=usage).sample()

        assert snapshot.is_degraded
        assert snapshot.scope == "unavailable"
        assert snapshot.used_human == "N/A"

    def test_live_sample(self):
        """Test the default wiring reads this machine."""
        snapshot = DiskSampler().sample()

        assert snapshot.scope in ("aggregate", "root")
        assert snapshot.total_bytes > 0
        assert snapshot.percent_label.endswith("%")

    def test_virtual_fstypes(self):
        """Test common in-memory filesystems are excluded."""
        assert {"tmpfs", "devtmpfs", "proc", "sysfs"} <= VIRTUAL_FSTYPES
        assert "ext4" not in VIRTUAL_FSTYPES
