"""
Tests for the service facade wiring.
"""
import pytest

from udisk_backup.core.errors import NotAllowed
from udisk_backup.core.models import RunPhase, StatusEvent
from udisk_backup.core.service import BackupService

from conftest import FakeDiskUsage, FakeRunner, rsync_script, script_launcher


@pytest.fixture
def runner(lsblk_json, rsync_output, source_dir):
    return FakeRunner({
        "lsblk": (0, lsblk_json),
        "rsync": (0, rsync_output),
        "du": (0, f"5\t{source_dir}\n"),
    })


@pytest.fixture
def service(temp_config_file, runner):
    return BackupService(str(temp_config_file), runner=runner,
                         launcher=script_launcher(rsync_script(0)), disk_usage=FakeDiskUsage())


def test_components_follow_config(service, source_dir, tmp_path):
    assert service.source == str(source_dir)
    assert service.planner.source == str(source_dir)
    assert service.supervisor.allowed_roots == (f"{tmp_path}/media/",)
    assert service.resolver.label == "USB_BACKUP"
    assert service.recorder.default_limit == 20


def test_mount_roots_get_trailing_slash(tmp_path, runner):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("backup:\n  allowed_mount_roots: [/media]\n")

    service = BackupService(str(config_file), runner=runner, disk_usage=FakeDiskUsage())

    assert service.supervisor.allowed_roots == ("/media/",)
    with pytest.raises(NotAllowed):
        service.start("/mediaevil/usb")


def test_inventory_and_targets(service):
    assert len(service.list_disks()) == 3
    assert [t.mount_point for t in service.eligible_targets()] == ["/media/pi/USB_BACKUP"]


def test_plan_uses_configured_source(service, source_dir):
    plan = service.plan("/media/pi/USB_BACKUP")

    assert plan.source_path == str(source_dir)
    assert plan.estimated_bytes == 1000000


def test_backup_run_and_history(service, usb_mount):
    subscription = service.subscribe()

    operation_id = service.start(str(usb_mount))
    assert service.wait(30)

    state = service.current_state()
    assert state.operation_id == operation_id
    assert state.phase == RunPhase.COMPLETED
    assert "sending incremental file list" in service.live_log()

    statuses = [e.phase for e in subscription.drain() if isinstance(e, StatusEvent)]
    assert statuses == [RunPhase.RUNNING, RunPhase.COMPLETED]

    entries = service.history(str(usb_mount))
    assert [e.operation_id for e in entries] == [operation_id]
    assert service.stop() is False


def test_source_status(service, source_dir):
    status = service.source_status()

    assert status.path == str(source_dir)
    assert status.readable is True
    assert status.used_bytes == 5
