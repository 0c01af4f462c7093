"""
test_files.py - 파일 이동/쓰기 테스트

DoD:
- safe_move: 원인 보존, dst 충돌 해결, 원자성
- fsync 경고 (실패해도 데이터 보존)
- atomic write: temp → rename, 실패 시 기존 파일 유지
"""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from photosync.core.files import atomic_write_bytes, atomic_write_json, safe_move

# =============================================================================
# safe_move 테스트
# =============================================================================


class TestSafeMove:
    """safe_move 함수 테스트."""

    def test_successful_move(self, tmp_path: Path):
        """정상 이동 성공."""
        src = tmp_path / "source.jpg"
        src.write_bytes(b"photo content")
        dst_dir = tmp_path / "archive"

        result = safe_move(src, dst_dir)

        assert result.success is True
        assert result.dst == dst_dir / "source.jpg"
        assert not src.exists()  # 원본 삭제됨
        assert result.dst.read_bytes() == b"photo content"

    def test_creates_destination_directory(self, tmp_path: Path):
        """대상 디렉터리 자동 생성."""
        src = tmp_path / "source.jpg"
        src.write_bytes(b"content")
        dst_dir = tmp_path / "nested" / "archive"

        result = safe_move(src, dst_dir)

        assert result.success is True
        assert dst_dir.is_dir()

    def test_collision_resolution(self, tmp_path: Path):
        """dst 충돌 시 timestamp suffix 추가, 기존 파일 보존."""
        dst_dir = tmp_path / "archive"
        dst_dir.mkdir()
        (dst_dir / "photo.jpg").write_bytes(b"existing")

        src = tmp_path / "photo.jpg"
        src.write_bytes(b"new")

        result = safe_move(src, dst_dir)

        assert result.success is True
        assert result.dst != dst_dir / "photo.jpg"
        assert result.dst.stem.startswith("photo_")
        assert result.dst.suffix == ".jpg"
        assert (dst_dir / "photo.jpg").read_bytes() == b"existing"

    def test_preserves_original_on_copy_failure(self, tmp_path: Path):
        """복사 실패 시 원본 보존 + 원인 기록."""
        src = tmp_path / "source.jpg"
        src.write_bytes(b"content")
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a directory")

        result = safe_move(src, blocker / "archive")

        assert result.success is False
        assert result.operation == "copy"
        assert result.errno_code is not None
        assert result.error_message
        assert src.exists()

    def test_unlink_failure_reported(self, tmp_path: Path):
        """원본 삭제 실패 → unlink_source로 보고, 사본은 남음."""
        src = tmp_path / "source.jpg"
        src.write_bytes(b"content")
        dst_dir = tmp_path / "archive"

        with patch.object(Path, "unlink", side_effect=PermissionError(13, "denied")):
            result = safe_move(src, dst_dir)

        assert result.success is False
        assert result.operation == "unlink_source"
        assert result.errno_code == 13
        assert (dst_dir / "source.jpg").exists()

    def test_fsync_warning_logged(self, tmp_path: Path, caplog):
        """fsync 실패 시 경고 로그, 이동은 성공."""
        src = tmp_path / "source.jpg"
        src.write_bytes(b"content")
        dst_dir = tmp_path / "archive"

        with patch("os.fsync", side_effect=OSError("mock fsync error")):
            with caplog.at_level(logging.WARNING):
                result = safe_move(src, dst_dir)

        assert result.success is True
        assert result.fsync_warning is True
        assert "fsync" in caplog.text.lower()


# =============================================================================
# atomic write 테스트
# =============================================================================


class TestAtomicWrite:
    """atomic_write_bytes / atomic_write_json 테스트."""

    def test_writes_bytes(self, tmp_path: Path):
        path = tmp_path / "out" / "A-100.jpg"

        atomic_write_bytes(path, b"jpeg")

        assert path.read_bytes() == b"jpeg"

    def test_overwrites_existing(self, tmp_path: Path):
        path = tmp_path / "A-100.jpg"
        path.write_bytes(b"old")

        atomic_write_bytes(path, b"new")

        assert path.read_bytes() == b"new"

    def test_no_temp_files_left(self, tmp_path: Path):
        atomic_write_bytes(tmp_path / "A-100.jpg", b"jpeg")

        assert [p.name for p in tmp_path.iterdir()] == ["A-100.jpg"]

    def test_failure_keeps_existing_and_cleans_temp(self, tmp_path: Path):
        """rename 실패 → 기존 파일 유지, temp 삭제."""
        path = tmp_path / "A-100.jpg"
        path.write_bytes(b"old")

        with patch("os.replace", side_effect=OSError("mock replace error")):
            with pytest.raises(OSError):
                atomic_write_bytes(path, b"new")

        assert path.read_bytes() == b"old"
        assert list(tmp_path.glob("*.tmp")) == []

    def test_json(self, tmp_path: Path):
        path = tmp_path / "run.json"

        atomic_write_json(path, {"result": "success", "메시지": "완료"})

        assert json.loads(path.read_text(encoding="utf-8")) == {
            "result": "success",
            "메시지": "완료",
        }
