"""Integration boundary with rsync: arguments, line classification, stats parsing.

rsync reports its statistics as human readable text (``--info=stats2``), so
everything here is regex based. Each field is extracted independently and a
field that cannot be found is left as None instead of failing the parse.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from .models import ByteCounts, FileCounts

LEVEL_ERROR = "error"
LEVEL_PROGRESS = "progress"
LEVEL_INFO = "info"

_ERROR_RE = re.compile(r"error|failed", re.IGNORECASE)
_PROGRESS_RE = re.compile(r"\d+%|\bto-ch(?:ec)?k=\d+/\d+\b", re.IGNORECASE)

_NUMBER = r"(\d[\d,.]*[KMGTP]?)"
_UNITS = {"K": 1000, "M": 1000 ** 2, "G": 1000 ** 3, "T": 1000 ** 4, "P": 1000 ** 5}


def build_rsync_args(source: str, link_dest: str, dest: str, deleted: str,
                     dry_run: bool = False) -> List[str]:
    """Arguments for an incremental snapshot of ``source`` into ``dest``.

    Unchanged files are hard-linked from ``link_dest``; files removed or
    overwritten relative to the previous snapshot are kept under ``deleted``.
    """
    args = [
        "-a",
        "--delete",
        "--backup",
        f"--backup-dir={deleted}",
        f"--link-dest={link_dest}",
        "--info=stats2,progress2",
        "--no-inc-recursive",
        source.rstrip("/") + "/",
        dest.rstrip("/") + "/",
    ]
    if dry_run:
        args.insert(0, "--dry-run")
    return args


def _strip_paths(line: str) -> str:
    return " ".join(token for token in line.split() if "/" not in token)


def classify_line(line: str) -> str:
    """Classify one output line as error, progress or info.

    Error beats progress beats info. Words inside path-like tokens are
    ignored for the error check, so progress on ``/srv/errors/a.bin`` is
    still progress.
    """
    if _ERROR_RE.search(_strip_paths(line)):
        return LEVEL_ERROR
    if _PROGRESS_RE.search(line):
        return LEVEL_PROGRESS
    return LEVEL_INFO


def parse_size(token: str) -> Optional[int]:
    """Parse an rsync number such as ``1,234``, ``1.234`` or ``1.23G``."""
    token = token.strip()
    if not token:
        return None
    unit = token[-1].upper()
    try:
        if unit in _UNITS:
            return int(round(float(token[:-1].replace(",", "")) * _UNITS[unit]))
        return int(re.sub(r"[,.]", "", token))
    except ValueError:
        return None


def _find(text: str, pattern: str) -> Optional[int]:
    match = re.search(pattern, text, re.IGNORECASE | re.MULTILINE)
    if not match:
        return None
    return parse_size(match.group(1))


def parse_estimated_bytes(text: str) -> int:
    """Bytes a dry run says it would transfer.

    Prefers "Total transferred file size", falls back to "Literal data",
    and returns 0 when neither is present.
    """
    for pattern in (
        rf"Total transferred file size:\s*{_NUMBER}",
        rf"Literal data:\s*{_NUMBER}",
    ):
        value = _find(text, pattern)
        if value is not None:
            return value
    return 0


@dataclass(frozen=True)
class RsyncStats:
    files: FileCounts = field(default_factory=FileCounts)
    sizes: ByteCounts = field(default_factory=ByteCounts)


def parse_stats(text: str) -> RsyncStats:
    """Extract the full ``--stats`` block from captured rsync output."""
    dirs = _find(text, rf"^\s*Number of (?:directories|dirs):\s*{_NUMBER}")
    if dirs is None:
        # rsync >= 3.1 folds the directory count into the files line
        dirs = _find(text, rf"^\s*Number of files:.*?\bdir:\s*{_NUMBER}")

    files = FileCounts(
        total=_find(text, rf"^\s*Number of files:\s*{_NUMBER}"),
        dirs=dirs,
        transferred=_find(text, rf"^\s*Number of (?:regular )?files transferred:\s*{_NUMBER}"),
        deleted=_find(text, rf"^\s*Number of deleted files:\s*{_NUMBER}"),
    )
    sizes = ByteCounts(
        total_file_size=_find(text, rf"^\s*Total file size:\s*{_NUMBER}"),
        total_transferred=_find(text, rf"^\s*Total transferred file size:\s*{_NUMBER}"),
        literal_data=_find(text, rf"^\s*Literal data:\s*{_NUMBER}"),
        matched_data=_find(text, rf"^\s*Matched data:\s*{_NUMBER}"),
        file_list_size=_find(text, rf"^\s*File list size:\s*{_NUMBER}"),
        bytes_sent=_find(text, rf"^\s*Total bytes sent:\s*{_NUMBER}"),
        bytes_received=_find(text, rf"^\s*Total bytes received:\s*{_NUMBER}"),
    )
    return RsyncStats(files=files, sizes=sizes)
