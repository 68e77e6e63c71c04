"""Subprocess helpers for the external tools (rsync, lsblk, du)."""

import logging
import shlex
import subprocess
from typing import Callable, List, Sequence, Tuple

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str]], Tuple[int, str]]
Launcher = Callable[[Sequence[str]], subprocess.Popen]


def run_capture(cmd: Sequence[str]) -> Tuple[int, str]:
    """Run a command to completion, returning (exit code, stdout+stderr).

    A missing executable is reported as exit code 127 instead of raising.
    """
    cmd_list: List[str] = list(cmd)
    logger.debug(f"Running: {' '.join(shlex.quote(c) for c in cmd_list)}")
    try:
        completed = subprocess.run(
            cmd_list,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except FileNotFoundError as e:
        return 127, str(e)
    return completed.returncode, completed.stdout.decode("utf-8", "replace")


def launch_streaming(cmd: Sequence[str]) -> subprocess.Popen:
    """Start a long-running command with line-buffered text pipes."""
    cmd_list: List[str] = list(cmd)
    logger.info(f"Launching: {' '.join(shlex.quote(c) for c in cmd_list)}")
    return subprocess.Popen(
        cmd_list,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        text=True,
        encoding="utf-8",
        errors="replace",
        bufsize=1,
        start_new_session=True,
    )
