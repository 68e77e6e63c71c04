"""Single-flight supervision of the live rsync transfer.

One run at a time moves through Running -> Completed | Failed | Cancelled.
The busy flag, the current state, the live output buffer, the process handle
and the cancel flag are guarded together by ``self._lock``; events are
published outside of it.
"""

import logging
import os
import queue
import shutil
import signal
import subprocess
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, IO, List, Optional, Sequence

from .errors import AlreadyRunning, NotAllowed, PersistenceFailure, TargetUnavailable
from .layout import BackupLayout
from .models import BackupType, LogEvent, RunPhase, RunState, RunSummary, StatusEvent
from .planner import DEFAULT_SOURCE, validate_mount_path
from .recorder import RunRecorder
from .rsync import classify_line, parse_stats
from ..reporters.notifications import NotificationSink, NullSink
from ..utils.files import DiskUsage, free_bytes
from ..utils.formatters import utc_now
from ..utils.process import Launcher, launch_streaming

DEFAULT_ALLOWED_ROOTS = ("/media/", "/mnt/", "/run/media/")

_EOF = object()


@dataclass
class _Run:
    """Everything the worker thread needs for one run."""
    operation_id: str
    layout: BackupLayout
    source: str
    command: List[str]
    started_at: datetime
    backup_type: BackupType
    free_before: Optional[int]
    cancel: threading.Event


def _kill(process: subprocess.Popen) -> None:
    """SIGKILL the process group (rsync forks helpers), else the process alone."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except OSError:
        process.kill()


def _pump(stream: IO[str], lines: "queue.Queue[Any]") -> None:
    try:
        for raw in iter(stream.readline, ''):
            lines.put(raw.rstrip('\r\n'))
    finally:
        stream.close()
        lines.put(_EOF)


class TransferSupervisor:
    """Owns the lifecycle of the one backup transfer allowed at a time."""

    def __init__(self, recorder: RunRecorder, sink: Optional[NotificationSink] = None,
                 source: str = DEFAULT_SOURCE, allowed_roots: Sequence[str] = DEFAULT_ALLOWED_ROOTS,
                 rsync_path: str = "rsync", launcher: Launcher = launch_streaming,
                 disk_usage: DiskUsage = shutil.disk_usage,
                 clock: Callable[[], datetime] = utc_now):
        """Initialize transfer supervisor.

        Args:
            recorder: Persists summaries of finished runs.
            sink: Receives status and log events.
            source: Directory to back up.
            allowed_roots: Mount point prefixes a target must live under.
            rsync_path: rsync executable.
            launcher: Starts the transfer process with piped output.
            disk_usage: Filesystem stat for free space before/after.
            clock: Returns the current UTC time.
        """
        self.recorder = recorder
        self.sink = sink or NullSink()
        self.source = source
        self.allowed_roots = tuple(allowed_roots)
        self.rsync_path = rsync_path
        self.launcher = launcher
        self.disk_usage = disk_usage
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._busy = False
        self._state: Optional[RunState] = None
        self._lines: List[str] = []
        self._process: Optional[subprocess.Popen] = None
        self._cancel = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._finishing = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self, target_mount: str) -> str:
        """Start a backup to ``target_mount`` and return its operation id.

        The transfer runs on a background thread; this call only validates,
        prepares directories and launches it.

        Raises:
            InvalidArgument: If the path is empty or relative.
            NotAllowed: If the path is outside the allowed mount roots.
            TargetUnavailable: If the path does not exist.
            AlreadyRunning: If another run is in progress.
            DirectoryError: If the run directories cannot be created.
        """
        mount = self._validate_target(target_mount)

        with self._lock:
            if self._busy:
                raise AlreadyRunning("A backup is already running")
            self._busy = True
            cancel = threading.Event()
            self._cancel = cancel
            self._process = None
            self._worker = None
            self._finishing = False

        try:
            run = self._prepare_run(mount, cancel)
        except BaseException:
            with self._lock:
                self._busy = False
            raise

        state = RunState(run.operation_id, RunPhase.RUNNING, "Backup started")
        worker = threading.Thread(
            target=self._run, args=(run,), name=f"transfer-{run.operation_id[:8]}", daemon=True
        )
        with self._lock:
            previous = self._state
            self._lines = []
            self._state = state

        self.logger.info(f"Starting backup {run.operation_id}: {run.source} -> {run.layout.incremental}")
        self._publish(StatusEvent(run.operation_id, state.phase, state.message, self.clock()))
        try:
            worker.start()
        except BaseException:
            with self._lock:
                self._state = previous
                self._busy = False
            raise
        with self._lock:
            self._worker = worker

        return run.operation_id

    def stop(self) -> bool:
        """Cancel the in-flight run.

        Returns:
            True if a run was signalled, False if nothing was running, rsync
            has already exited or a cancellation is already under way.
        """
        with self._lock:
            if not self._busy or self._finishing or self._cancel.is_set():
                return False
            self._cancel.set()
            process = self._process
            worker = self._worker

        self.logger.info("Stop requested for the running backup")
        if process is not None and process.poll() is None:
            self.logger.info(f"Killing rsync process {process.pid}")
            _kill(process)
            process.wait()

        if worker is not None and worker is not threading.current_thread():
            worker.join()
        return True

    def get_current_state(self) -> Optional[RunState]:
        """State of the current or last finished run, None before the first run."""
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._busy

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current run finishes; True if it has."""
        with self._lock:
            worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def get_live_log(self) -> str:
        """Output collected from the current or most recent run."""
        with self._lock:
            lines = list(self._lines)
        return "".join(f"{line}\n" for line in lines)

    def live_log_filename(self) -> str:
        return f"udiskbackup-live-{self.clock().strftime('%Y%m%d-%H%M%S')}.log"

    def export_live_log(self, directory: str) -> str:
        """Write the live log to ``directory`` and return the file path."""
        path = Path(directory) / self.live_log_filename()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.get_live_log(), encoding='utf-8')
        return str(path)

    # ------------------------------------------------------------------
    # Start helpers
    # ------------------------------------------------------------------
    def _validate_target(self, target_mount: str) -> str:
        mount = validate_mount_path(target_mount)
        if not any(mount.startswith(root) for root in self.allowed_roots):
            raise NotAllowed(
                f"Target {mount} is not under an allowed mount root ({', '.join(self.allowed_roots)})"
            )
        if not os.path.isdir(mount):
            raise TargetUnavailable(f"Mount point does not exist: {mount}")
        return mount

    def _prepare_run(self, mount: str, cancel: threading.Event) -> _Run:
        started_at = self.clock()
        layout = BackupLayout.for_run(mount, started_at)
        layout.prepare()

        backup_type = BackupType.INCREMENTAL if layout.has_baseline() else BackupType.FULL
        return _Run(
            operation_id=uuid.uuid4().hex,
            layout=layout,
            source=self.source,
            command=[self.rsync_path] + layout.rsync_args(self.source),
            started_at=started_at,
            backup_type=backup_type,
            free_before=free_bytes(mount, self.disk_usage),
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _run(self, run: _Run) -> None:
        process = None
        try:
            if run.cancel.is_set():
                self._set_state(run, RunPhase.CANCELLED, "Backup cancelled")
                return

            try:
                process = self.launcher(run.command)
            except OSError as e:
                self.logger.error(f"Could not launch {run.command[0]}: {e}")
                self._set_state(run, RunPhase.FAILED, f"Could not launch {run.command[0]}: {e}")
                return

            with self._lock:
                self._process = process
                cancelled = run.cancel.is_set()
            if cancelled:
                # stop() ran before the process handle was registered
                _kill(process)

            self._stream_output(run, process)
            exit_code = process.wait()
            ended_at = self.clock()

            with self._lock:
                self._process = None
                cancelled = run.cancel.is_set()
                # past this point stop() no longer applies to the run
                self._finishing = not cancelled
            if cancelled:
                self.logger.info(f"Backup {run.operation_id} was cancelled")
                self._set_state(run, RunPhase.CANCELLED, "Backup cancelled by user")
                return

            self._finish(run, exit_code, ended_at)
        except Exception as e:
            self.logger.exception(f"Backup {run.operation_id} failed unexpectedly")
            if process is not None and process.poll() is None:
                _kill(process)
                process.wait()
            self._set_state(run, RunPhase.FAILED, str(e))
        finally:
            with self._lock:
                state = self._state
                if state is not None and state.operation_id == run.operation_id and state.phase == RunPhase.RUNNING:
                    self._release()

    def _stream_output(self, run: _Run, process: subprocess.Popen) -> None:
        """Forward output lines in arrival order from a single consumer."""
        lines: "queue.Queue[Any]" = queue.Queue()
        readers = [
            threading.Thread(target=_pump, args=(stream, lines), daemon=True)
            for stream in (process.stdout, process.stderr)
            if stream is not None
        ]
        for reader in readers:
            reader.start()

        remaining = len(readers)
        while remaining:
            line = lines.get()
            if line is _EOF:
                remaining -= 1
                continue
            if run.cancel.is_set():
                continue
            with self._lock:
                self._lines.append(line)
            self._publish(LogEvent(run.operation_id, classify_line(line), line, self.clock()))

        for reader in readers:
            reader.join()

    def _finish(self, run: _Run, exit_code: int, ended_at: datetime) -> None:
        with self._lock:
            output = "\n".join(self._lines)
        stats = parse_stats(output)

        summary = RunSummary(
            operation_id=run.operation_id,
            started_at=run.started_at,
            ended_at=ended_at,
            source=run.source,
            target=str(run.layout.incremental),
            deleted_dir=str(run.layout.deleted),
            exit_code=exit_code,
            success=exit_code == 0,
            free_bytes_before=run.free_before,
            free_bytes_after=free_bytes(str(run.layout.mount), self.disk_usage),
            file_counts=stats.files,
            byte_counts=stats.sizes,
            backup_type=run.backup_type,
        )

        try:
            _json_path, report_path = self.recorder.persist(summary)
        except PersistenceFailure as e:
            self.logger.error(f"Could not persist summary of {run.operation_id}: {e}")
            report_path = str(self.recorder.paths_for(summary)[1])

        if summary.success:
            try:
                run.layout.promote_current()
            except OSError as e:
                self.logger.warning(f"Could not update 'current' pointer: {e}")
            self.logger.info(f"Backup {run.operation_id} completed")
            self._set_state(run, RunPhase.COMPLETED, f"Backup completed. Summary: {report_path}")
        else:
            self.logger.warning(f"Backup {run.operation_id} failed with rsync exit code {exit_code}")
            self._set_state(run, RunPhase.FAILED, f"rsync exit {exit_code}. Summary: {report_path}")

    # ------------------------------------------------------------------
    # State and events
    # ------------------------------------------------------------------
    def _set_state(self, run: _Run, phase: RunPhase, message: str) -> None:
        """Record a terminal state; the run gives up the busy flag in the same step."""
        state = RunState(run.operation_id, phase, message)
        with self._lock:
            self._state = state
            self._release()
        self._publish(StatusEvent(run.operation_id, phase, message, self.clock()))

    def _release(self) -> None:
        self._busy = False
        self._process = None
        self._finishing = False

    def _publish(self, event: Any) -> None:
        try:
            self.sink.publish(event)
        except Exception as e:
            self.logger.warning(f"Notification sink rejected {event.topic} event: {e}")
