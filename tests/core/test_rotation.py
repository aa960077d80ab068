from __future__ import annotations

import gzip
import os
import time
from pathlib import Path

import pytest

from runner_fleet_ops.core import rotation
from runner_fleet_ops.core.config import RotationConfig
from runner_fleet_ops.core.rotation import RotationEngine, rotate_logs


def _tree(root: Path) -> dict[str, bytes]:
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


@pytest.fixture
def log_dir(tmp_path: Path, age_file) -> Path:
    root = tmp_path / "_diag"
    (root / "archive").mkdir(parents=True)
    (root / "Runner_old.log").write_text("old runner output\n" * 200, encoding="utf-8")
    (root / "Runner_new.log").write_text("new runner output\n" * 10, encoding="utf-8")
    (root / "archive" / "Worker_ancient.log.gz").write_bytes(gzip.compress(b"ancient\n" * 50))
    (root / "archive" / "Worker_recent.log.gz").write_bytes(gzip.compress(b"recent\n" * 50))
    age_file(root / "Runner_old.log", 10)
    age_file(root / "Runner_new.log", 3)
    age_file(root / "archive" / "Worker_ancient.log.gz", 95)
    age_file(root / "archive" / "Worker_recent.log.gz", 5)
    return root


def test_rotation_compresses_aged_and_purges_expired(log_dir: Path) -> None:
    original = (log_dir / "Runner_old.log").read_bytes()
    ancient_size = (log_dir / "archive" / "Worker_ancient.log.gz").stat().st_size

    result = rotate_logs(log_dir, retention_days=7, archive_retention_days=90)

    assert result.files_scanned == 4
    assert result.files_compressed == 1
    assert result.files_deleted == 1
    assert result.warnings == ()
    assert not (log_dir / "Runner_old.log").exists()
    assert (log_dir / "Runner_new.log").exists()
    assert not (log_dir / "archive" / "Worker_ancient.log.gz").exists()
    assert (log_dir / "archive" / "Worker_recent.log.gz").exists()

    archives = sorted((log_dir / "archive").glob("Runner_old-*.log.gz"))
    assert len(archives) == 1
    assert gzip.decompress(archives[0].read_bytes()) == original
    assert result.bytes_freed == len(original) - archives[0].stat().st_size + ancient_size


def test_dry_run_changes_nothing_and_matches_real_run(log_dir: Path) -> None:
    before = _tree(log_dir)

    dry = rotate_logs(log_dir, dry_run=True)

    assert _tree(log_dir) == before
    assert dry.dry_run is True

    real = rotate_logs(log_dir)

    assert (dry.files_compressed, dry.files_deleted, dry.bytes_freed) == (
        real.files_compressed,
        real.files_deleted,
        real.bytes_freed,
    )


def test_dry_run_does_not_create_archive_dir(tmp_path: Path, age_file) -> None:
    (tmp_path / "a.log").write_text("x\n", encoding="utf-8")
    age_file(tmp_path / "a.log", 30)

    result = rotate_logs(tmp_path, dry_run=True)

    assert result.files_compressed == 1
    assert not (tmp_path / "archive").exists()


def test_second_run_is_a_no_op(log_dir: Path) -> None:
    rotate_logs(log_dir)
    again = rotate_logs(log_dir)

    assert again.files_compressed == 0
    assert again.files_deleted == 0
    assert again.bytes_freed == 0


def test_missing_directory_gives_empty_result(tmp_path: Path) -> None:
    result = rotate_logs(tmp_path / "missing")

    assert result.to_dict() == {
        "filesScanned": 0,
        "filesCompressed": 0,
        "filesDeleted": 0,
        "bytesFreed": 0,
        "dryRun": False,
        "warnings": [],
    }


def test_archive_name_collision_gets_suffix(tmp_path: Path) -> None:
    mtime = time.time() - 10 * 86400
    log = tmp_path / "a.log"
    log.write_text("first\n", encoding="utf-8")
    os.utime(log, (mtime, mtime))
    rotate_logs(tmp_path)
    log.write_text("second\n", encoding="utf-8")
    os.utime(log, (mtime, mtime))

    rotate_logs(tmp_path)

    day = time.strftime("%Y%m%d", time.gmtime(mtime))
    names = {p.name for p in (tmp_path / "archive").iterdir()}
    assert names == {f"a-{day}.log.gz", f"a-{day}-1.log.gz"}
    assert not (tmp_path / "a.log").exists()


def test_root_level_archives_are_subject_to_retention(tmp_path: Path, age_file) -> None:
    stale = tmp_path / "Runner_x.log.gz"
    stale.write_bytes(gzip.compress(b"x"))
    age_file(stale, 200)

    result = rotate_logs(tmp_path)

    assert result.files_deleted == 1
    assert not stale.exists()


def test_unmatched_files_are_left_alone(tmp_path: Path, age_file) -> None:
    other = tmp_path / "notes.md"
    other.write_text("keep me", encoding="utf-8")
    age_file(other, 400)

    result = rotate_logs(tmp_path)

    assert result.files_scanned == 0
    assert other.exists()


def test_invalid_config() -> None:
    with pytest.raises(ValueError):
        RotationConfig(retention_days=-1)
    with pytest.raises(ValueError):
        RotationConfig(archive_subdir="/abs/path")


def test_engine_scan_splits_plain_and_archives(log_dir: Path) -> None:
    plain, archives = RotationEngine().scan(log_dir)

    assert sorted(f.path.name for f in plain) == ["Runner_new.log", "Runner_old.log"]
    assert sorted(f.path.name for f in archives) == ["Worker_ancient.log.gz", "Worker_recent.log.gz"]


def _deny_unlink(monkeypatch: pytest.MonkeyPatch, blocked: Path) -> None:
    real_unlink = Path.unlink

    def unlink(self, *args, **kwargs):
        if self == blocked:
            raise PermissionError(13, "Permission denied", str(self))
        return real_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", unlink)


def test_failed_compression_is_warned_and_pass_continues(
    tmp_path: Path, age_file, monkeypatch: pytest.MonkeyPatch
) -> None:
    for name in ("a.log", "b.log"):
        (tmp_path / name).write_text("x" * 300, encoding="utf-8")
        age_file(tmp_path / name, 10)
    real_gzip_into = rotation._gzip_into

    def gzip_into(src, fileobj, *, mtime):
        if src.name == "a.log":
            raise PermissionError(13, "Permission denied", str(src))
        real_gzip_into(src, fileobj, mtime=mtime)

    monkeypatch.setattr(rotation, "_gzip_into", gzip_into)

    result = RotationEngine().run(tmp_path)

    assert result.files_scanned == 2
    assert result.files_compressed == 1
    assert len(result.warnings) == 1
    assert result.warnings[0].path.endswith("a.log")
    assert (tmp_path / "a.log").exists()
    archives = [p.name for p in (tmp_path / "archive").iterdir()]
    assert len(archives) == 1
    assert archives[0].startswith("b-") and archives[0].endswith(".log.gz")


def test_archive_rolled_back_when_original_cannot_be_removed(
    tmp_path: Path, age_file, monkeypatch: pytest.MonkeyPatch
) -> None:
    log = tmp_path / "locked.log"
    log.write_text("busy\n" * 100, encoding="utf-8")
    age_file(log, 10)
    _deny_unlink(monkeypatch, log)

    result = RotationEngine().run(tmp_path)

    assert result.files_scanned == 1
    assert result.files_compressed == 0
    assert result.bytes_freed == 0
    assert "cannot remove original" in result.warnings[0].reason
    assert log.exists()
    assert list((tmp_path / "archive").iterdir()) == []


def test_failed_delete_is_excluded_from_counts(log_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ancient = log_dir / "archive" / "Worker_ancient.log.gz"
    _deny_unlink(monkeypatch, ancient)

    result = RotationEngine().run(log_dir)

    assert result.files_scanned == 4
    assert result.files_deleted == 0
    assert result.files_compressed == 1
    assert ancient.exists()
    assert "delete failed" in result.warnings[0].reason
