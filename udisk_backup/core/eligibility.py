"""Selection of backup-eligible USB partitions."""

import logging
import os
import shutil
from typing import List

from .inventory import DiskInventory
from .models import BackupTarget
from ..utils.files import DiskUsage

DEFAULT_LABEL = "USB_BACKUP"


class EligibilityResolver:
    """Filters the disk inventory down to labeled, mounted USB partitions."""

    def __init__(self, inventory: DiskInventory, label: str = DEFAULT_LABEL,
                 disk_usage: DiskUsage = shutil.disk_usage):
        self.inventory = inventory
        self.label = label
        self.disk_usage = disk_usage
        self.logger = logging.getLogger(__name__)

    def find_eligible(self) -> List[BackupTarget]:
        """Return every mounted USB partition carrying the backup label.

        Partitions whose mount point cannot be statted are left out; an
        inventory failure yields an empty list.
        """
        try:
            disks = self.inventory.list_disks()
        except Exception as e:
            self.logger.error(f"Disk inventory failed: {e}")
            return []

        wanted = self.label.casefold()
        targets = []
        for disk in disks:
            if (disk.transport or "").casefold() != "usb":
                self.logger.debug(f"Skipping {disk.path}: transport {disk.transport}")
                continue

            for partition in disk.partitions:
                if (partition.label or "").casefold() != wanted:
                    continue
                if not partition.mount_point:
                    self.logger.debug(f"Skipping {partition.path}: not mounted")
                    continue
                try:
                    total, _used, free = self.disk_usage(partition.mount_point)
                except OSError as e:
                    self.logger.debug(f"Skipping {partition.path}: cannot stat {partition.mount_point}: {e}")
                    continue

                targets.append(BackupTarget(
                    mount_point=partition.mount_point,
                    device=partition.path,
                    label=partition.label or os.path.basename(partition.mount_point.rstrip('/')),
                    filesystem_type=partition.fs_type or "",
                    free_bytes=int(free),
                    total_bytes=int(total),
                ))

        self.logger.info(f"Found {len(targets)} eligible backup target(s)")
        return targets
