"""
Tests for dry-run planning and the free space rule.
"""
import pytest

from udisk_backup.core.errors import InvalidArgument, TargetUnavailable
from udisk_backup.core.planner import TransferPlanner, has_enough_space, validate_mount_path

from conftest import FakeDiskUsage, FakeRunner


def test_has_enough_space_boundary():
    """Test the 5% margin is exact at the boundary."""
    assert has_enough_space(105, 100)
    assert not has_enough_space(104, 100)
    assert has_enough_space(0, 0)
    assert has_enough_space(1050000000000, 1000000000000)
    assert not has_enough_space(1049999999999, 1000000000000)


@pytest.mark.parametrize("path", ["", "   ", "media/usb", "./usb"])
def test_validate_mount_path_rejects(path):
    with pytest.raises(InvalidArgument):
        validate_mount_path(path)


def test_validate_mount_path_accepts_absolute():
    assert validate_mount_path(" /media/usb ") == "/media/usb"


def test_validate_mount_path_collapses_parent_segments():
    assert validate_mount_path("/media/usb/../../opt/data") == "/opt/data"
    assert validate_mount_path("/media/pi/USB_BACKUP/") == "/media/pi/USB_BACKUP"


def test_plan_builds_layout_and_dry_run(rsync_output, clock):
    """Test plan paths, dry-run arguments and the estimate."""
    runner = FakeRunner({"rsync": (0, rsync_output)})
    disk_usage = FakeDiskUsage(paths={"/media/usb": (10 ** 9, 0, 2000000)})
    planner = TransferPlanner(source="/mnt/shared", runner=runner, disk_usage=disk_usage, clock=clock)

    plan = planner.plan("/media/usb")

    assert plan.source_path == "/mnt/shared"
    assert plan.target_backup_dir == "/media/usb/UDiskBackup/incremental/2024-05-01_12-00-00"
    assert plan.deleted_dir == "/media/usb/UDiskBackup/.deleted/2024-05-01_12-00-00"
    assert plan.estimated_bytes == 1000000
    assert plan.free_bytes == 2000000
    assert plan.enough_space is True

    command = runner.calls[0]
    assert command[0] == "rsync"
    assert command[1] == "--dry-run"
    assert "--link-dest=/media/usb/UDiskBackup/current" in command
    assert command[-2:] == ["/mnt/shared/", "/media/usb/UDiskBackup/incremental/2024-05-01_12-00-00/"]
    assert plan.transfer_arguments == command[1:]


def test_plan_source_override(rsync_output, disk_usage, clock):
    runner = FakeRunner({"rsync": (0, rsync_output)})
    planner = TransferPlanner(runner=runner, disk_usage=disk_usage, clock=clock)

    plan = planner.plan("/media/usb", source="/srv/data")

    assert plan.source_path == "/srv/data"
    assert runner.calls[0][-2] == "/srv/data/"


def test_plan_not_enough_space(rsync_output, clock):
    runner = FakeRunner({"rsync": (0, rsync_output)})
    disk_usage = FakeDiskUsage(default=(10 ** 9, 0, 1049999))
    planner = TransferPlanner(runner=runner, disk_usage=disk_usage, clock=clock)

    assert planner.plan("/media/usb").enough_space is False


def test_plan_nonzero_exit_is_not_fatal(rsync_output, disk_usage, clock):
    """Test a dry run with exit code 23 still yields an estimate."""
    runner = FakeRunner({"rsync": (23, rsync_output + "rsync error: some files could not be transferred (code 23)\n")})
    planner = TransferPlanner(runner=runner, disk_usage=disk_usage, clock=clock)

    assert planner.plan("/media/usb").estimated_bytes == 1000000


def test_plan_missing_rsync_estimates_zero(disk_usage, clock):
    planner = TransferPlanner(runner=FakeRunner(), disk_usage=disk_usage, clock=clock)

    plan = planner.plan("/media/usb")

    assert plan.estimated_bytes == 0
    assert plan.enough_space is True


def test_plan_unavailable_target(clock):
    """Test stat failure raises before rsync is run."""
    runner = FakeRunner()
    planner = TransferPlanner(runner=runner, disk_usage=FakeDiskUsage(missing={"/media/gone"}), clock=clock)

    with pytest.raises(TargetUnavailable):
        planner.plan("/media/gone")
    assert runner.calls == []


def test_plan_relative_target(disk_usage):
    planner = TransferPlanner(runner=FakeRunner(), disk_usage=disk_usage)

    with pytest.raises(InvalidArgument):
        planner.plan("media/usb")


def test_plan_recomputes_every_call(rsync_output, clock):
    """Test the space verdict follows the current free space."""
    free = {"value": 10 ** 9}
    runner = FakeRunner({"rsync": (0, rsync_output)})
    planner = TransferPlanner(runner=runner, disk_usage=lambda path: (10 ** 10, 0, free["value"]), clock=clock)

    assert planner.plan("/media/usb").enough_space is True
    free["value"] = 10
    assert planner.plan("/media/usb").enough_space is False


@pytest.mark.parametrize("free,estimated,expected", [
    (100 * 10 ** 9, 90 * 10 ** 9, True),
    (50 * 10 ** 9, 90 * 10 ** 9, False),
    (94500000000, 90 * 10 ** 9, True),
    (94499999999, 90 * 10 ** 9, False),
])
def test_space_scenarios(free, estimated, expected):
    assert has_enough_space(free, estimated) is expected
