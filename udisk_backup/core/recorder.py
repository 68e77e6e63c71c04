"""Persistence of run summaries and the history built from them."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import PersistenceFailure
from .layout import BackupLayout
from .models import BackupTarget, BackupType, HistoryEntry, RunSummary
from ..reporters.text_report import render_run_report
from ..utils.files import write_json, write_text

EXTENDED_SUFFIX = "_extended"

TargetProvider = Callable[[], List[BackupTarget]]


class RunRecorder:
    """Writes one summary, report and metadata file per finished run."""

    def __init__(self, target_provider: Optional[TargetProvider] = None, default_limit: int = 50):
        """Initialize run recorder.

        Args:
            target_provider: Returns the targets scanned when history is
                requested without an explicit mount point.
            default_limit: Number of entries returned when no limit is given.
        """
        self.target_provider = target_provider
        self.default_limit = default_limit
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def paths_for(summary: RunSummary) -> Tuple[Path, Path, Path]:
        """(summary json, report txt, extended json) paths of a run."""
        layout = BackupLayout.from_snapshot(summary.target)
        base = f"{layout.timestamp}_{summary.operation_id}"
        return (
            layout.logs / f"{base}.json",
            layout.logs / f"{base}.txt",
            layout.logs / f"{base}{EXTENDED_SUFFIX}.json",
        )

    def build_extended(self, summary: RunSummary) -> Dict[str, Any]:
        """Auxiliary metadata: backup type and hard-link savings."""
        layout = BackupLayout.from_snapshot(summary.target)
        sizes = summary.byte_counts
        total = sizes.total_file_size or 0
        matched = sizes.matched_data or 0
        incremental = summary.backup_type == BackupType.INCREMENTAL
        return {
            'summary': summary.to_dict(),
            'backup_type': summary.backup_type.value,
            'backup_path': summary.target,
            'link_dest_path': str(layout.current) if incremental else "",
            'deleted_path': summary.deleted_dir,
            'space_savings': {
                'literal_data': sizes.literal_data or 0,
                'matched_data': matched,
                'total_file_size': total,
                'savings_ratio': matched / total if total > 0 else 0,
            },
        }

    def persist(self, summary: RunSummary) -> Tuple[str, str]:
        """Write the summary record, its report and the extended metadata.

        Returns:
            Paths of the summary JSON and the text report.

        Raises:
            PersistenceFailure: If any file cannot be written.
        """
        json_path, txt_path, extended_path = self.paths_for(summary)
        extended = self.build_extended(summary)
        try:
            write_json(json_path, summary.to_dict())
            write_json(extended_path, extended)
            write_text(txt_path, render_run_report(summary, extended))
        except OSError as e:
            raise PersistenceFailure(f"Cannot write run summary to {json_path.parent}: {e}") from e

        self.logger.info(f"Run summary saved: {json_path}")
        return str(json_path), str(txt_path)

    def load_summary(self, json_path: str) -> RunSummary:
        """Read a summary back, including its backup type when recorded.

        Raises:
            OSError: If the file cannot be read.
            ValueError: If the record is malformed.
        """
        path = Path(json_path)
        data = json.loads(path.read_text(encoding='utf-8'))

        backup_type = BackupType.FULL
        extended_path = path.with_name(path.stem + EXTENDED_SUFFIX + ".json")
        if extended_path.exists():
            try:
                extended = json.loads(extended_path.read_text(encoding='utf-8'))
                backup_type = BackupType(extended.get('backup_type', BackupType.FULL.value))
            except (OSError, ValueError, AttributeError) as e:
                self.logger.debug(f"Ignoring unreadable metadata {extended_path}: {e}")

        try:
            return RunSummary.from_dict(data, backup_type=backup_type)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed summary {json_path}: {e}") from e

    def list_history(self, target_mount: Optional[str] = None,
                     limit: Optional[int] = None) -> List[HistoryEntry]:
        """List past runs, newest first.

        Args:
            target_mount: Only scan this mount point; otherwise scan every
                target returned by the target provider.
            limit: Maximum number of entries (at least one is allowed).
        """
        limit = self.default_limit if limit is None else limit

        if target_mount:
            label = os.path.basename(target_mount.rstrip('/')) or target_mount
            targets = [(target_mount, label)]
        elif self.target_provider is not None:
            targets = [(t.mount_point, t.label) for t in self.target_provider()]
        else:
            targets = []

        entries = []
        for mount, label in targets:
            entries.extend(self._scan_target(mount, label))

        entries.sort(key=lambda e: (e.started_at, e.operation_id), reverse=True)
        return entries[:max(1, limit)]

    def _scan_target(self, mount: str, label: Optional[str]) -> List[HistoryEntry]:
        logs_dir = BackupLayout(mount=Path(mount), timestamp="").logs
        if not logs_dir.is_dir():
            return []

        entries = []
        for json_path in sorted(logs_dir.glob("*.json")):
            if json_path.stem.endswith(EXTENDED_SUFFIX):
                continue
            try:
                summary = self.load_summary(str(json_path))
            except (OSError, ValueError) as e:
                self.logger.debug(f"Skipping unreadable summary {json_path}: {e}")
                continue

            txt_path = json_path.with_suffix(".txt")
            entries.append(HistoryEntry(
                operation_id=summary.operation_id,
                started_at=summary.started_at,
                ended_at=summary.ended_at,
                success=summary.success,
                duration=summary.duration,
                target_mount=mount,
                target_label=label,
                summary_json_path=str(json_path),
                summary_txt_path=str(txt_path) if txt_path.exists() else None,
                transferred_files=summary.file_counts.transferred,
                transferred_bytes=summary.byte_counts.total_transferred,
                backup_type=summary.backup_type.value,
            ))
        return entries
