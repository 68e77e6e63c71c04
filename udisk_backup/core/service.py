"""Entry point wiring configuration and the backup components together."""

import logging
import shutil
from typing import List, Optional

from .eligibility import EligibilityResolver
from .inventory import DiskInventory
from .models import BackupTarget, Disk, HistoryEntry, RunState, SourceStatus, TransferPlan
from .planner import TransferPlanner
from .recorder import RunRecorder
from .source import SourceInspector
from .supervisor import TransferSupervisor
from ..config.config_manager import ConfigManager
from ..reporters.notifications import InMemoryBroker, LoggingSink, NotificationSink, Subscription
from ..utils.files import DiskUsage
from ..utils.process import Launcher, Runner, launch_streaming, run_capture


class BackupService:
    """Main backup coordinator used by the CLI and any API layer."""

    def __init__(self, config_path: Optional[str] = None, sink: Optional[NotificationSink] = None,
                 runner: Runner = run_capture, launcher: Launcher = launch_streaming,
                 disk_usage: DiskUsage = shutil.disk_usage):
        """Initialize backup service.

        Args:
            config_path: Optional path to configuration file.
            sink: Receives every event after the in-process subscribers;
                defaults to logging them.
            runner: Runs short external commands (lsblk, rsync dry run, du).
            launcher: Starts the live rsync transfer.
            disk_usage: Filesystem stat used for free space.
        """
        self.config_manager = ConfigManager(config_path)
        self.config = self.config_manager.load_config()
        self.runner = runner
        self.launcher = launcher
        self.disk_usage = disk_usage
        self.broker = InMemoryBroker(forward_to=sink if sink is not None else LoggingSink())
        self.logger = logging.getLogger(__name__)

        # Initialize components
        self._initialize_components()

    def _initialize_components(self):
        """Initialize backup components."""
        backup_config = self.config_manager.get_backup_config()
        history_config = self.config_manager.get_history_config()

        self.source = backup_config['source']
        rsync_path = backup_config['rsync_path']
        allowed_roots = [
            root if root.endswith('/') else root + '/'
            for root in self.config_manager.get_allowed_mount_roots()
        ]

        self.inventory = DiskInventory(runner=self.runner, disk_usage=self.disk_usage)
        self.resolver = EligibilityResolver(
            self.inventory, label=backup_config['label'], disk_usage=self.disk_usage
        )
        self.planner = TransferPlanner(
            source=self.source, rsync_path=rsync_path, runner=self.runner, disk_usage=self.disk_usage
        )
        self.recorder = RunRecorder(
            target_provider=self.resolver.find_eligible,
            default_limit=history_config['limit'],
        )
        self.supervisor = TransferSupervisor(
            self.recorder,
            sink=self.broker,
            source=self.source,
            allowed_roots=allowed_roots,
            rsync_path=rsync_path,
            launcher=self.launcher,
            disk_usage=self.disk_usage,
        )
        self.source_inspector = SourceInspector(source=self.source, runner=self.runner)

        self.logger.info(
            f"Backup service ready: source {self.source}, label {backup_config['label']}, "
            f"allowed roots {', '.join(allowed_roots)}"
        )

    def list_disks(self) -> List[Disk]:
        return self.inventory.list_disks()

    def eligible_targets(self) -> List[BackupTarget]:
        return self.resolver.find_eligible()

    def plan(self, target_mount: str, source: Optional[str] = None) -> TransferPlan:
        return self.planner.plan(target_mount, source)

    def start(self, target_mount: str) -> str:
        return self.supervisor.start(target_mount)

    def stop(self) -> bool:
        return self.supervisor.stop()

    def current_state(self) -> Optional[RunState]:
        return self.supervisor.get_current_state()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.supervisor.wait(timeout)

    def history(self, target_mount: Optional[str] = None, limit: Optional[int] = None) -> List[HistoryEntry]:
        return self.recorder.list_history(target_mount, limit)

    def live_log(self) -> str:
        return self.supervisor.get_live_log()

    def export_live_log(self, directory: str) -> str:
        return self.supervisor.export_live_log(directory)

    def source_status(self, path: Optional[str] = None) -> SourceStatus:
        return self.source_inspector.status(path)

    def subscribe(self) -> Subscription:
        """Receive status and log events of subsequent runs."""
        return self.broker.subscribe()
