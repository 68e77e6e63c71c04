"""
Pytest configuration and shared fixtures.
"""
import json
import logging
import subprocess
import sys
from datetime import datetime, timedelta, timezone

import pytest


RSYNC_STATS_OUTPUT = """\
sending incremental file list
      1,234,567 100%  117.74MB/s    0:00:00 (xfr#2, to-chk=0/3)

Number of files: 3 (reg: 2, dir: 1)
Number of created files: 2 (reg: 2)
Number of deleted files: 1
Number of regular files transferred: 2
Total file size: 1,234,567 bytes
Total transferred file size: 1,000,000 bytes
Literal data: 900,000 bytes
Matched data: 100,000 bytes
File list size: 0
File list generation time: 0.001 seconds
File list transfer time: 0.000 seconds
Total bytes sent: 1,235,000
Total bytes received: 57

sent 1,235,000 bytes  received 57 bytes  2,470,114.00 bytes/sec
total size is 1,234,567  speedup is 1.00
"""


LSBLK_PAYLOAD = {
    "blockdevices": [
        {
            "name": "sda", "type": "disk", "size": 64023257088, "rota": False, "tran": "usb",
            "vendor": "SanDisk ", "model": "Ultra", "serial": "4C530001", "path": "/dev/sda",
            "fstype": None, "mountpoint": None, "mountpoints": [None], "label": None,
            "children": [
                {
                    "name": "sda1", "type": "part", "size": 64022208512, "rota": False, "tran": None,
                    "path": "/dev/sda1", "fstype": "ext4", "mountpoint": "/media/pi/USB_BACKUP",
                    "mountpoints": ["/media/pi/USB_BACKUP"], "label": "USB_BACKUP",
                }
            ],
        },
        {
            "name": "sdb", "type": "disk", "size": 32000000000, "rota": False, "tran": "usb",
            "vendor": "Kingston", "model": "DataTraveler", "serial": "0011", "path": "/dev/sdb",
            "children": [
                {
                    "name": "sdb1", "type": "part", "size": 32000000000, "path": "/dev/sdb1",
                    "fstype": "vfat", "mountpoint": None, "mountpoints": ["/media/pi/PHOTOS"],
                    "label": "PHOTOS",
                },
                {
                    "name": "sdb2", "type": "part", "size": 1000000, "path": "/dev/sdb2",
                    "fstype": "ext4", "mountpoint": None, "mountpoints": [None],
                    "label": "usb_backup",
                },
            ],
        },
        {
            "name": "mmcblk0", "type": "disk", "size": "31914983424", "rota": "0", "tran": None,
            "path": "/dev/mmcblk0",
            "children": [
                {
                    "name": "mmcblk0p2", "type": "part", "size": 31000000000, "path": "/dev/mmcblk0p2",
                    "fstype": "ext4", "mountpoint": "/", "label": "USB_BACKUP",
                }
            ],
        },
        {"name": "loop0", "type": "loop", "size": 4096, "path": "/dev/loop0"},
    ]
}


GB = 1000 ** 3


class FakeRunner:
    """Stands in for run_capture; answers by executable name and records calls."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def __call__(self, cmd):
        cmd = list(cmd)
        self.calls.append(cmd)
        response = self.responses.get(cmd[0], (127, f"{cmd[0]}: not found"))
        if callable(response):
            return response(cmd)
        return response


class FakeDiskUsage:
    """Stands in for shutil.disk_usage with per-path answers."""

    def __init__(self, default=(100 * GB, 40 * GB, 60 * GB), paths=None, missing=()):
        self.default = default
        self.paths = dict(paths or {})
        self.missing = set(missing)

    def __call__(self, path):
        path = str(path)
        if path in self.missing:
            raise FileNotFoundError(2, "No such file or directory", path)
        return self.paths.get(path, self.default)


class FixedClock:
    """Returns a fixed UTC time, advancing one second per call."""

    def __init__(self, start=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


def script_launcher(script):
    """Launcher running ``script`` with the current interpreter instead of rsync."""
    def launch(cmd):
        launch.commands.append(list(cmd))
        return subprocess.Popen(
            [sys.executable, "-c", script],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            bufsize=1,
            start_new_session=True,
        )
    launch.commands = []
    return launch


def rsync_script(exit_code=0, stderr_lines=()):
    """Script that prints a captured rsync run and exits with ``exit_code``."""
    return (
        "import sys\n"
        f"sys.stdout.write({RSYNC_STATS_OUTPUT!r})\n"
        "sys.stdout.flush()\n"
        f"for line in {list(stderr_lines)!r}:\n"
        "    sys.stderr.write(line + '\\n')\n"
        f"sys.exit({exit_code})\n"
    )


SLEEP_SCRIPT = (
    "import sys, time\n"
    "print('sending incremental file list', flush=True)\n"
    "time.sleep(60)\n"
)


@pytest.fixture
def rsync_output():
    return RSYNC_STATS_OUTPUT


@pytest.fixture
def lsblk_json():
    return json.dumps(LSBLK_PAYLOAD)


@pytest.fixture
def disk_usage():
    return FakeDiskUsage()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def usb_mount(tmp_path):
    """An existing directory standing in for a mounted USB drive."""
    mount = tmp_path / "media" / "USB_BACKUP"
    mount.mkdir(parents=True)
    return mount


@pytest.fixture
def source_dir(tmp_path):
    source = tmp_path / "shared"
    source.mkdir()
    (source / "a.txt").write_text("hello")
    return source


@pytest.fixture
def temp_config_file(tmp_path, source_dir):
    """Create a temporary configuration file for testing."""
    config = tmp_path / "config.yaml"
    config.write_text(
        "backup:\n"
        f"  source: {source_dir}\n"
        "  label: USB_BACKUP\n"
        "  allowed_mount_roots:\n"
        f"    - {tmp_path}/media/\n"
        "  rsync_path: rsync\n"
        "history:\n"
        "  limit: 20\n"
        "logging:\n"
        "  level: WARNING\n"
    )
    return config


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI replaces root handlers; put the originals back after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
