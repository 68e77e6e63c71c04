"""Human-readable report for a finished backup run."""

from typing import Any, Dict, Optional

from ..core.models import RunSummary
from ..utils.formatters import format_count, format_date, format_duration, format_file_size

RULE = "=" * 64


def render_run_report(summary: RunSummary, extended: Optional[Dict[str, Any]] = None) -> str:
    """Render the text report stored next to each summary.

    Sections always appear in the same order: identity, timing, paths,
    disk space, transfer statistics and, when metadata is given, the
    incremental savings.
    """
    sizes = summary.byte_counts
    files = summary.file_counts
    status = "SUCCESS" if summary.success else "FAILED"

    lines = [
        RULE,
        "                    USB BACKUP RUN REPORT",
        RULE,
        f"Operation       : {summary.operation_id}",
        f"Backup type     : {summary.backup_type.value.upper()}",
        f"Status          : {status} (exit code {summary.exit_code})",
        "",
        "TIMING:",
        f"  Started       : {format_date(summary.started_at)} UTC",
        f"  Finished      : {format_date(summary.ended_at)} UTC",
        f"  Duration      : {format_duration(summary.duration)}",
        "",
        "PATHS:",
        f"  Source        : {summary.source}",
        f"  Target        : {summary.target}",
    ]
    if summary.deleted_dir:
        lines.append(f"  .deleted      : {summary.deleted_dir}")
    lines.append("")

    lines.extend([
        "DISK SPACE:",
        f"  Free before   : {format_file_size(summary.free_bytes_before)}",
        f"  Free after    : {format_file_size(summary.free_bytes_after)}",
    ])
    if summary.free_bytes_before is not None and summary.free_bytes_after is not None:
        change = summary.free_bytes_after - summary.free_bytes_before
        if change < 0:
            lines.append(f"  Used          : {format_file_size(-change)}")
        elif change > 0:
            lines.append(f"  Freed         : {format_file_size(change)}")
    lines.append("")

    lines.extend([
        "TRANSFER STATISTICS:",
        f"  Files total         : {format_count(files.total)}",
        f"  Directories         : {format_count(files.dirs)}",
        f"  Files transferred   : {format_count(files.transferred)}",
    ])
    if files.deleted:
        lines.append(f"  Files deleted       : {format_count(files.deleted)}")
    lines.extend([
        f"  Total size          : {format_file_size(sizes.total_file_size)}",
        f"  Transferred size    : {format_file_size(sizes.total_transferred)}",
    ])
    if sizes.total_file_size:
        ratio = (sizes.total_transferred or 0) / sizes.total_file_size * 100
        lines.append(f"  Transfer ratio      : {ratio:.2f}%")
    if sizes.literal_data:
        lines.append(f"  Literal data        : {format_file_size(sizes.literal_data)}")
    if sizes.matched_data:
        lines.append(f"  Matched data        : {format_file_size(sizes.matched_data)}")
    lines.append(f"  File list size      : {format_file_size(sizes.file_list_size)}")
    lines.append(
        f"  Sent / received     : {format_file_size(sizes.bytes_sent)} / {format_file_size(sizes.bytes_received)}"
    )

    if extended:
        savings = extended.get('space_savings') or {}
        lines.extend(["", "INCREMENTAL SAVINGS:"])
        ratio = savings.get('savings_ratio') or 0
        if ratio > 0:
            lines.append(f"  Space saved         : {ratio * 100:.2f}%")
        lines.append(f"  New data            : {format_file_size(savings.get('literal_data', 0))}")
        lines.append(f"  Hard-linked data    : {format_file_size(savings.get('matched_data', 0))}")
        if extended.get('link_dest_path'):
            lines.append(f"  Linked from         : {extended['link_dest_path']}")

    lines.extend(["", RULE])
    return "\n".join(lines) + "\n"
