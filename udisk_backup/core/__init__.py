"""Core backup orchestration: data model and errors.

Components live in their own modules (``inventory``, ``eligibility``,
``planner``, ``supervisor``, ``recorder``, ``source``, ``service``) and are
imported from there.
"""

from .errors import (
    AlreadyRunning,
    DirectoryError,
    InvalidArgument,
    InventoryError,
    NotAllowed,
    PersistenceFailure,
    TargetUnavailable,
    UDiskBackupError,
)
from .models import (
    BackupTarget,
    BackupType,
    Disk,
    HistoryEntry,
    LogEvent,
    Partition,
    RunPhase,
    RunState,
    RunSummary,
    SourceStatus,
    StatusEvent,
    TransferPlan,
)

__all__ = [
    "AlreadyRunning", "DirectoryError", "InvalidArgument", "InventoryError", "NotAllowed",
    "PersistenceFailure", "TargetUnavailable", "UDiskBackupError",
    "BackupTarget", "BackupType", "Disk", "HistoryEntry", "LogEvent", "Partition",
    "RunPhase", "RunState", "RunSummary", "SourceStatus", "StatusEvent", "TransferPlan",
]
