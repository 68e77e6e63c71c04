"""Filesystem helpers: directory creation, atomic writes, free space."""

import json
import shutil
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

DiskUsage = Callable[[str], Tuple[int, int, int]]


def ensure_dir(path: Path) -> None:
    """Create directory with better error reporting."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        raise PermissionError(f"Cannot create directory {path} - insufficient permissions")
    except OSError as e:
        raise OSError(f"Cannot create directory {path}: {e}")


def write_text(path: Path, content: str) -> None:
    """Write text through a temporary sibling so readers never see a partial file."""
    ensure_dir(path.parent)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(content, encoding='utf-8')
    tmp.replace(path)


def write_json(path: Path, obj: Any) -> None:
    write_text(path, json.dumps(obj, indent=2))


def free_bytes(path: str, disk_usage: DiskUsage = shutil.disk_usage) -> Optional[int]:
    """Best-effort free space lookup; None when the path cannot be statted."""
    try:
        return int(disk_usage(path)[2])
    except OSError:
        return None
