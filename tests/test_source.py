"""
Tests for source directory inspection.
"""
from udisk_backup.core.source import SourceInspector

from conftest import FakeRunner


def test_status_of_readable_source(source_dir):
    runner = FakeRunner({"du": (0, f"4096\t{source_dir}\n")})

    status = SourceInspector(str(source_dir), runner=runner).status()

    assert status.path == str(source_dir)
    assert status.exists is True
    assert status.readable is True
    assert status.used_bytes == 4096
    assert runner.calls == [["du", "-sb", str(source_dir)]]


def test_du_warnings_still_give_total(source_dir):
    output = f"du: cannot read directory '{source_dir}/private': Permission denied\n8192\t{source_dir}\n"
    runner = FakeRunner({"du": (1, output)})

    assert SourceInspector(str(source_dir), runner=runner).status().used_bytes == 8192


def test_du_missing_gives_unknown_size(source_dir):
    status = SourceInspector(str(source_dir), runner=FakeRunner()).status()

    assert status.readable is True
    assert status.used_bytes is None


def test_missing_source(tmp_path):
    runner = FakeRunner()

    status = SourceInspector(runner=runner).status(str(tmp_path / "absent"))

    assert status.exists is False
    assert status.readable is False
    assert status.used_bytes is None
    assert runner.calls == []
