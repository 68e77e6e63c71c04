"""
Tests for the data model.
"""
from datetime import timezone

import pytest

from udisk_backup.core.models import BackupType, RunPhase, RunState, RunSummary


def test_terminal_phases():
    assert not RunPhase.IDLE.is_terminal
    assert not RunPhase.RUNNING.is_terminal
    assert all(p.is_terminal for p in (RunPhase.COMPLETED, RunPhase.FAILED, RunPhase.CANCELLED))


def test_run_state_to_dict():
    state = RunState("op", RunPhase.CANCELLED, "Backup cancelled by user")

    assert state.to_dict() == {"operation_id": "op", "phase": "Cancelled", "message": "Backup cancelled by user"}


def test_summary_from_dict_minimal_record():
    """Test optional fields default and naive timestamps are read as UTC."""
    summary = RunSummary.from_dict({
        "operation_id": "op",
        "started_at": "2024-05-01T12:00:00",
        "ended_at": "2024-05-01T12:00:30",
        "exit_code": 0,
        "success": True,
    }, backup_type=BackupType.INCREMENTAL)

    assert summary.started_at.tzinfo == timezone.utc
    assert summary.duration.total_seconds() == 30
    assert summary.file_counts.total is None
    assert summary.byte_counts.matched_data is None
    assert summary.backup_type == BackupType.INCREMENTAL


@pytest.mark.parametrize("data", [
    {"operation_id": "op"},
    {"operation_id": "op", "started_at": "yesterday", "ended_at": "today", "exit_code": 0, "success": True},
])
def test_summary_from_dict_rejects(data):
    with pytest.raises((KeyError, ValueError)):
        RunSummary.from_dict(data)
