"""
UDisk Backup - incremental rsync backups to labeled USB drives.

This package discovers eligible USB partitions, estimates transfers with an
rsync dry run, supervises a single live transfer with cancellation and live
output, and keeps a per-drive history of run summaries.
"""

__version__ = "1.0.0"

from .core.service import BackupService
from .core.supervisor import TransferSupervisor
from .core.planner import TransferPlanner
from .core.recorder import RunRecorder
from .reporters.notifications import InMemoryBroker

__all__ = ["BackupService", "TransferSupervisor", "TransferPlanner", "RunRecorder", "InMemoryBroker"]
