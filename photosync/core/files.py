"""
파일 처리: safe_move (archive), atomic write (export, run log)

규칙:
- safe_move: 원인 보존, dst 충돌 해결, 원자성, fsync 경고
- atomic write: temp → rename, 실패 시 temp 정리, 기존 파일 보존
- fsync 실패는 경고만 남기고 계속 진행 (데이터는 보존)
"""

import json
import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

from photosync.domain.schemas import MoveResult

logger = logging.getLogger(__name__)


# =============================================================================
# Safe Move (Archive)
# =============================================================================

def _resolve_destination(src: Path, dst_dir: Path) -> Path:
    """
    dst 충돌 해결.

    같은 이름이 없으면 원래 이름 유지,
    있으면 {stem}_{timestamp}[_{n}]{suffix}
    """
    dst = dst_dir / src.name
    if not dst.exists():
        return dst

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    dst = dst_dir / f"{src.stem}_{timestamp}{src.suffix}"
    counter = 1
    while dst.exists():
        dst = dst_dir / f"{src.stem}_{timestamp}_{counter}{src.suffix}"
        counter += 1
    return dst


def _fsync_file(path: Path) -> bool:
    """파일 fsync. 성공 여부 반환 (실패 시 warning)."""
    try:
        fd = os.open(str(path), os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
        return True
    except OSError as e:
        logger.warning("fsync failed for %s: %s (data preserved)", path, e)
        return False


def safe_move(src: Path, dst_dir: Path) -> MoveResult:
    """
    안전한 파일 이동 (아카이브용).

    보장:
    - 원인 보존: 실패 시 operation/errno/message 기록
    - dst 충돌 해결: 동일 파일명 존재 시 suffix 추가
    - 원자성: 복사 완료 전 원본 삭제 없음
    - fsync 경고: fsync 실패 시 warn (데이터는 보존)

    Args:
        src: 원본 파일 경로
        dst_dir: 대상 디렉터리

    Returns:
        MoveResult
    """
    try:
        dst_dir.mkdir(parents=True, exist_ok=True)
        dst = _resolve_destination(src, dst_dir)
        shutil.copy2(str(src), str(dst))  # 먼저 복사
    except OSError as e:
        return MoveResult(
            success=False,
            src=src,
            operation="copy",
            errno_code=e.errno,
            error_message=str(e),
        )

    fsync_warning = not _fsync_file(dst)

    # 원본 삭제 (복사 성공 후에만)
    try:
        src.unlink()
    except OSError as e:
        return MoveResult(
            success=False,
            src=src,
            dst=dst,
            operation="unlink_source",
            errno_code=e.errno,
            error_message=str(e),
        )

    return MoveResult(
        success=True,
        src=src,
        dst=dst,
        fsync_warning=fsync_warning,
    )


# =============================================================================
# Atomic Write
# =============================================================================

def _fsync_dir(dir_path: Path) -> None:
    """
    디렉토리 fsync (가능한 환경에서).

    rename 후 디렉토리 엔트리까지 내구성을 강화하려면 필요.
    일부 OS/파일시스템에서는 지원되지 않을 수 있음.
    """
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        logger.warning(
            f"Directory fsync failed for {dir_path}: {e}. "
            f"Rename durability may not be guaranteed."
        )


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    원자적 바이트 쓰기.

    동작:
    - 중간 상태 없음: temp → rename (같은 디렉토리)
    - 파일 fsync + 디렉토리 fsync (실패 시 경고)
    - 실패 시 temp 파일 삭제, 기존 파일 유지

    Args:
        path: 저장할 파일 경로
        data: 파일 내용
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
        ) as f:
            temp_path = Path(f.name)
            f.write(data)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


def atomic_write_json(path: Path, data: dict) -> None:
    """원자적 JSON 쓰기 (run log용)."""
    payload = json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")
    atomic_write_bytes(path, payload)
