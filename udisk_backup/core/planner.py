"""Dry-run planning of a transfer against a target drive."""

import logging
import os
import shutil
from datetime import datetime
from typing import Callable, Optional

from .errors import InvalidArgument, TargetUnavailable
from .layout import BackupLayout
from .models import TransferPlan
from .rsync import parse_estimated_bytes
from ..utils.files import DiskUsage
from ..utils.formatters import utc_now
from ..utils.process import Runner, run_capture

DEFAULT_SOURCE = "/mnt/shared"

# free space must cover the estimate plus 5%
SAFETY_MARGIN_PERCENT = 105


def has_enough_space(free_bytes: int, estimated_bytes: int) -> bool:
    """``free_bytes >= estimated_bytes * 1.05`` without float rounding."""
    return free_bytes * 100 >= estimated_bytes * SAFETY_MARGIN_PERCENT


def validate_mount_path(target_mount: str) -> str:
    """Reject empty or relative target paths and collapse any '..' segments.

    Raises:
        InvalidArgument: If the path is unusable.
    """
    if not isinstance(target_mount, str) or not target_mount.strip():
        raise InvalidArgument("Target mount point must not be empty")
    target_mount = target_mount.strip()
    if not target_mount.startswith('/'):
        raise InvalidArgument(f"Target mount point must be an absolute path: {target_mount}")
    return os.path.normpath(target_mount)


class TransferPlanner:
    """Estimates how much a backup would transfer and whether it fits."""

    def __init__(self, source: str = DEFAULT_SOURCE, rsync_path: str = "rsync",
                 runner: Runner = run_capture, disk_usage: DiskUsage = shutil.disk_usage,
                 clock: Callable[[], datetime] = utc_now):
        self.source = source
        self.rsync_path = rsync_path
        self.runner = runner
        self.disk_usage = disk_usage
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def plan(self, target_mount: str, source: Optional[str] = None) -> TransferPlan:
        """Run an rsync dry run and compare its estimate with free space.

        Args:
            target_mount: Absolute mount point of the target drive.
            source: Directory to back up, defaults to the configured source.

        Returns:
            TransferPlan for the target.

        Raises:
            InvalidArgument: If target_mount is empty or relative.
            TargetUnavailable: If the target cannot be statted.
        """
        target_mount = validate_mount_path(target_mount)
        source = source or self.source

        try:
            free = int(self.disk_usage(target_mount)[2])
        except OSError as e:
            raise TargetUnavailable(f"Cannot read free space of {target_mount}: {e}") from e

        layout = BackupLayout.for_run(target_mount, self.clock())
        args = layout.rsync_args(source, dry_run=True)

        self.logger.info(f"Planning backup of {source} to {layout.incremental}")
        rc, output = self.runner([self.rsync_path] + args)
        if rc != 0:
            # rsync still prints stats when some source files are unreadable
            self.logger.warning(f"rsync dry run exited with code {rc}")

        estimated = parse_estimated_bytes(output)
        enough = has_enough_space(free, estimated)
        self.logger.info(f"Estimated {estimated} bytes, {free} bytes free, enough space: {enough}")

        return TransferPlan(
            source_path=source,
            target_backup_dir=str(layout.incremental),
            deleted_dir=str(layout.deleted),
            transfer_arguments=args,
            estimated_bytes=estimated,
            free_bytes=free,
            enough_space=enough,
        )
