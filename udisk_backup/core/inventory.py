"""Block device inventory based on ``lsblk`` JSON output."""

import json
import logging
import shutil
from typing import Any, Dict, List, Optional

from .errors import InventoryError
from .models import Disk, Partition
from ..utils.files import DiskUsage
from ..utils.process import Runner, run_capture

LSBLK_COLUMNS = "NAME,TYPE,SIZE,ROTA,TRAN,VENDOR,MODEL,SERIAL,PATH,FSTYPE,MOUNTPOINT,MOUNTPOINTS,LABEL"

_DISK_TYPES = {"disk", "rom"}
_PARTITION_TYPES = {"part", "crypt", "raid"}


def _text(node: Dict[str, Any], key: str) -> Optional[str]:
    value = node.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(node: Dict[str, Any], key: str) -> Optional[int]:
    value = node.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _flag(node: Dict[str, Any], key: str) -> bool:
    value = node.get(key)
    if isinstance(value, str):
        return value.strip() in ("1", "true")
    return bool(value)


def _mount_point(node: Dict[str, Any]) -> Optional[str]:
    mount = _text(node, "mountpoint")
    if mount:
        return mount
    mounts = node.get("mountpoints")
    if isinstance(mounts, list):
        for candidate in mounts:
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
    return None


class DiskInventory:
    """Lists disks and partitions using ``lsblk``."""

    def __init__(self, runner: Runner = run_capture, disk_usage: DiskUsage = shutil.disk_usage):
        """Initialize disk inventory.

        Args:
            runner: Callable running a command and returning (exit code, output).
            disk_usage: Filesystem stat used for used/free bytes of mounted partitions.
        """
        self.runner = runner
        self.disk_usage = disk_usage
        self.logger = logging.getLogger(__name__)

    def list_disks(self) -> List[Disk]:
        """Return all disks with their partitions.

        Raises:
            InventoryError: If lsblk fails or returns unusable output.
        """
        last_error = "no output"
        for args in (["lsblk", "-J", "-b", "-o", LSBLK_COLUMNS], ["lsblk", "-J", "-b"]):
            rc, out = self.runner(args)
            if rc != 0 or not out.strip():
                last_error = f"rc={rc}: {out.strip()[:200]}"
                self.logger.debug(f"{' '.join(args)} failed ({last_error})")
                continue
            try:
                disks = self.parse_lsblk(out)
            except ValueError as e:
                last_error = str(e)
                continue
            if disks:
                return disks
        raise InventoryError(f"lsblk did not return any disks ({last_error})")

    def parse_lsblk(self, payload: str) -> List[Disk]:
        """Parse ``lsblk -J`` output into Disk objects.

        Raises:
            ValueError: If the payload is not valid JSON.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValueError(f"lsblk output is not valid JSON: {e}")

        nodes = data.get("blockdevices") if isinstance(data, dict) else None
        if not isinstance(nodes, list):
            return []

        disks = []
        for node in nodes:
            if not isinstance(node, dict):
                continue
            try:
                disk = self._build_disk(node)
            except Exception as e:
                self.logger.warning(f"Skipping unparsable device {node.get('name')}: {e}")
                continue
            if disk is not None:
                disks.append(disk)
        return disks

    def _build_disk(self, node: Dict[str, Any]) -> Optional[Disk]:
        node_type = (_text(node, "type") or "").lower()
        if node_type not in _DISK_TYPES:
            return None
        name = _text(node, "name")
        if not name:
            return None

        partitions = []
        for child in node.get("children") or []:
            if not isinstance(child, dict):
                continue
            if (_text(child, "type") or "").lower() not in _PARTITION_TYPES:
                continue
            partitions.append(self._build_partition(child))

        return Disk(
            path=_text(node, "path") or f"/dev/{name}",
            transport=_text(node, "tran"),
            vendor=_text(node, "vendor"),
            model=_text(node, "model"),
            serial=_text(node, "serial"),
            size_bytes=_number(node, "size"),
            rotational=_flag(node, "rota"),
            partitions=partitions,
            type=node_type,
        )

    def _build_partition(self, node: Dict[str, Any]) -> Partition:
        name = _text(node, "name") or "?"
        mount = _mount_point(node)
        used = free = None
        if mount:
            try:
                total, used, free = self.disk_usage(mount)
            except OSError as e:
                self.logger.debug(f"Cannot stat {mount}: {e}")
        return Partition(
            path=_text(node, "path") or f"/dev/{name}",
            fs_type=_text(node, "fstype"),
            mount_point=mount,
            label=_text(node, "label"),
            size_bytes=_number(node, "size"),
            used_bytes=used,
            free_bytes=free,
        )
