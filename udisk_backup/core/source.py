"""Status of the backup source directory."""

import logging
import os
from typing import Optional

from .models import SourceStatus
from .planner import DEFAULT_SOURCE
from ..utils.process import Runner, run_capture


class SourceInspector:
    """Reports whether the source directory exists, is readable and how big it is."""

    def __init__(self, source: str = DEFAULT_SOURCE, runner: Runner = run_capture):
        self.source = source
        self.runner = runner
        self.logger = logging.getLogger(__name__)

    def status(self, path: Optional[str] = None) -> SourceStatus:
        path = path or self.source
        exists = os.path.isdir(path)
        readable = exists and self._is_readable(path)
        used = self._used_bytes(path) if readable else None
        return SourceStatus(path=path, exists=exists, readable=readable, used_bytes=used)

    def _is_readable(self, path: str) -> bool:
        try:
            with os.scandir(path) as entries:
                next(entries, None)
            return True
        except OSError as e:
            self.logger.debug(f"Source {path} is not readable: {e}")
            return False

    def _used_bytes(self, path: str) -> Optional[int]:
        """Apparent size from ``du -sb``; None when du fails."""
        rc, output = self.runner(["du", "-sb", path])
        if rc != 0:
            # unreadable subdirectories make du exit 1, the total is still printed
            self.logger.debug(f"du -sb {path} exited with code {rc}")
        if not output.strip():
            return None
        last = output.strip().splitlines()[-1].split()
        try:
            return int(last[0])
        except (IndexError, ValueError):
            return None
