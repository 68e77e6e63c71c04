"""Data models for backup orchestration."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class RunPhase(str, Enum):
    """Lifecycle phase of a transfer run."""
    IDLE = "Idle"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunPhase.COMPLETED, RunPhase.FAILED, RunPhase.CANCELLED)


class BackupType(str, Enum):
    """Whether a run had a previous snapshot to hard-link against."""
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass
class Partition:
    """A partition as reported by the disk inventory."""
    path: str
    fs_type: Optional[str] = None
    mount_point: Optional[str] = None
    label: Optional[str] = None
    size_bytes: Optional[int] = None
    used_bytes: Optional[int] = None
    free_bytes: Optional[int] = None


@dataclass
class Disk:
    """A whole block device with its partitions."""
    path: str
    transport: Optional[str] = None
    vendor: Optional[str] = None
    model: Optional[str] = None
    serial: Optional[str] = None
    size_bytes: Optional[int] = None
    rotational: bool = False
    partitions: List[Partition] = field(default_factory=list)
    type: str = "disk"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BackupTarget:
    """A mounted, labeled USB partition usable as a backup destination."""
    mount_point: str
    device: str
    label: str
    filesystem_type: str
    free_bytes: int
    total_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TransferPlan:
    """Result of a dry-run estimate against a target."""
    source_path: str
    target_backup_dir: str
    deleted_dir: str
    transfer_arguments: List[str]
    estimated_bytes: int
    free_bytes: int
    enough_space: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RunState:
    """Snapshot of the in-flight (or last finished) run."""
    operation_id: str
    phase: RunPhase
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operation_id': self.operation_id,
            'phase': self.phase.value,
            'message': self.message,
        }


@dataclass(frozen=True)
class FileCounts:
    total: Optional[int] = None
    dirs: Optional[int] = None
    transferred: Optional[int] = None
    deleted: Optional[int] = None


@dataclass(frozen=True)
class ByteCounts:
    total_file_size: Optional[int] = None
    total_transferred: Optional[int] = None
    literal_data: Optional[int] = None
    matched_data: Optional[int] = None
    file_list_size: Optional[int] = None
    bytes_sent: Optional[int] = None
    bytes_received: Optional[int] = None


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


@dataclass(frozen=True)
class RunSummary:
    """Immutable record of one finished transfer.

    ``backup_type`` is kept out of the primary record written by
    :meth:`to_dict`; the recorder stores it in the extended metadata file.
    """
    operation_id: str
    started_at: datetime
    ended_at: datetime
    source: str
    target: str
    deleted_dir: str
    exit_code: int
    success: bool
    free_bytes_before: Optional[int] = None
    free_bytes_after: Optional[int] = None
    file_counts: FileCounts = field(default_factory=FileCounts)
    byte_counts: ByteCounts = field(default_factory=ByteCounts)
    backup_type: BackupType = BackupType.FULL

    @property
    def duration(self) -> timedelta:
        return self.ended_at - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operation_id': self.operation_id,
            'started_at': self.started_at.isoformat(),
            'ended_at': self.ended_at.isoformat(),
            'duration_seconds': self.duration.total_seconds(),
            'source': self.source,
            'target': self.target,
            'deleted_dir': self.deleted_dir,
            'exit_code': self.exit_code,
            'success': self.success,
            'free_bytes_before': self.free_bytes_before,
            'free_bytes_after': self.free_bytes_after,
            'file_counts': asdict(self.file_counts),
            'byte_counts': asdict(self.byte_counts),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any],
                  backup_type: BackupType = BackupType.FULL) -> 'RunSummary':
        """Rebuild a summary from its persisted form.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a field cannot be converted.
        """
        if not isinstance(data, dict):
            raise ValueError("Summary record must be a JSON object")

        files = data.get('file_counts') or {}
        sizes = data.get('byte_counts') or {}
        if not isinstance(files, dict) or not isinstance(sizes, dict):
            raise ValueError("file_counts and byte_counts must be JSON objects")

        return cls(
            operation_id=str(data['operation_id']),
            started_at=_parse_time(data['started_at']),
            ended_at=_parse_time(data['ended_at']),
            source=data.get('source') or '',
            target=data.get('target') or '',
            deleted_dir=data.get('deleted_dir') or '',
            exit_code=int(data['exit_code']),
            success=bool(data['success']),
            free_bytes_before=_optional_int(data.get('free_bytes_before')),
            free_bytes_after=_optional_int(data.get('free_bytes_after')),
            file_counts=FileCounts(**{k: _optional_int(files.get(k)) for k in FileCounts.__dataclass_fields__}),
            byte_counts=ByteCounts(**{k: _optional_int(sizes.get(k)) for k in ByteCounts.__dataclass_fields__}),
            backup_type=backup_type,
        )


@dataclass(frozen=True)
class HistoryEntry:
    """Read projection of a persisted summary for history listings."""
    operation_id: str
    started_at: datetime
    ended_at: datetime
    success: bool
    duration: timedelta
    target_mount: str
    target_label: Optional[str]
    summary_json_path: str
    summary_txt_path: Optional[str]
    transferred_files: Optional[int]
    transferred_bytes: Optional[int]
    backup_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['started_at'] = self.started_at.isoformat()
        data['ended_at'] = self.ended_at.isoformat()
        data['duration'] = self.duration.total_seconds()
        return data


@dataclass(frozen=True)
class StatusEvent:
    """Run status pushed to subscribers."""
    operation_id: str
    phase: RunPhase
    message: str
    timestamp: datetime

    topic = "backupStatus"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operation_id': self.operation_id,
            'state': self.phase.value,
            'message': self.message,
            'ts': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class LogEvent:
    """A single classified line of transfer output."""
    operation_id: str
    level: str
    line: str
    timestamp: datetime

    topic = "backupLog"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operation_id': self.operation_id,
            'level': self.level,
            'line': self.line,
            'ts': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class SourceStatus:
    """Availability of the backup source directory."""
    path: str
    exists: bool
    readable: bool
    used_bytes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
