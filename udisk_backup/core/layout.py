"""On-disk layout of backups on a target drive.

    <mount>/UDiskBackup/
        current                 -> incremental/<ts> of the last successful run
        incremental/<ts>/       one snapshot per run
        .deleted/<ts>/          files removed or overwritten during that run
        logs/                   run summaries and reports
        archived/initial/       pre-existing real ``current`` directory, moved once
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List

from .errors import DirectoryError
from .rsync import build_rsync_args
from ..utils.formatters import utc_timestamp

BACKUP_DIR_NAME = "UDiskBackup"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupLayout:
    """Paths used by one run against one target mount."""
    mount: Path
    timestamp: str

    @classmethod
    def for_run(cls, mount: str, when: datetime) -> 'BackupLayout':
        return cls(mount=Path(mount), timestamp=utc_timestamp(when))

    @classmethod
    def from_snapshot(cls, snapshot_dir: str) -> 'BackupLayout':
        """Recover the layout from an ``incremental/<ts>`` directory path."""
        snapshot = Path(snapshot_dir)
        return cls(mount=snapshot.parent.parent.parent, timestamp=snapshot.name)

    @property
    def root(self) -> Path:
        return self.mount / BACKUP_DIR_NAME

    @property
    def current(self) -> Path:
        return self.root / "current"

    @property
    def incremental(self) -> Path:
        return self.root / "incremental" / self.timestamp

    @property
    def deleted(self) -> Path:
        return self.root / ".deleted" / self.timestamp

    @property
    def logs(self) -> Path:
        return self.root / "logs"

    @property
    def archived_initial(self) -> Path:
        return self.root / "archived" / "initial"

    def rsync_args(self, source: str, dry_run: bool = False) -> List[str]:
        return build_rsync_args(
            source, str(self.current), str(self.incremental), str(self.deleted), dry_run=dry_run
        )

    def has_baseline(self) -> bool:
        """True if ``current`` resolves to an existing directory."""
        return self.current.is_dir()

    def prepare(self) -> None:
        """Create the run's snapshot, deleted-files and log directories.

        Raises:
            DirectoryError: If any directory cannot be created.
        """
        for directory in (self.incremental, self.deleted, self.logs):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DirectoryError(f"Cannot create directory {directory}: {e}") from e

    def promote_current(self) -> Path:
        """Point ``current`` at this run's snapshot.

        A real directory left at ``current`` by the legacy layout is moved to
        ``archived/initial`` first. An existing link is swapped atomically.
        """
        current = self.current
        link_target = Path("incremental") / self.timestamp

        if current.exists() and not current.is_symlink():
            archive = self.archived_initial
            if archive.exists():
                archive = archive.with_name(f"initial_{self.timestamp}")
            archive.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Archiving pre-existing {current} to {archive}")
            current.rename(archive)

        tmp_link = self.root / f".current.{self.timestamp}.tmp"
        if tmp_link.is_symlink() or tmp_link.exists():
            tmp_link.unlink()
        os.symlink(link_target, tmp_link)
        os.replace(tmp_link, current)
        logger.info(f"Updated {current} -> {link_target}")
        return current
