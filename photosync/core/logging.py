"""
Run logging: pass 1회 = run log 1개

규칙:
- 경고 필수 컨텍스트: level, code, key, message
- run log는 logs_dir/run_<run_id>.json 으로 원자적 저장
- result: pending → success | partial | failed | cancelled
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from photosync.core.files import atomic_write_json
from photosync.core.ids import generate_run_id
from photosync.domain.constants import RUN_LOG_PREFIX
from photosync.domain.schemas import PassResult, RunLog, WarningLog

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(operation: str, run_id: str | None = None) -> RunLog:
    """
    새 RunLog 생성.

    Args:
        operation: pass 이름 (import, export, cloud_sync, rehydrate)
        run_id: 지정하지 않으면 새로 발급

    Returns:
        초기화된 RunLog
    """
    now = datetime.now(UTC).isoformat()

    return RunLog(
        run_id=run_id or generate_run_id(),
        operation=operation,
        started_at=now,
        result="pending",
    )


def emit_warning(
    run_log: RunLog,
    code: str,
    key: str,
    message: str,
    level: str = "warning",
) -> None:
    """
    경고 이벤트 기록.

    Args:
        run_log: RunLog 인스턴스
        code: 경고 코드 (예: ARCHIVE_FAILED)
        key: 레코드 code 또는 파일 경로
        message: 경고 메시지
        level: 로그 레벨
    """
    run_log.warnings.append(
        WarningLog(level=level, code=code, key=key, message=message)
    )


def _result_label(result: PassResult) -> str:
    if result.cancelled:
        return "cancelled"
    if result.ok:
        return "success"
    return "partial"


def complete_run_log(
    run_log: RunLog,
    result: PassResult | None = None,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    RunLog 완료 처리.

    result가 없으면 pass 자체가 실패한 것으로 기록.

    Args:
        run_log: RunLog 인스턴스
        result: pass 결과 (치명 에러면 None)
        error_code: 에러 코드 (실패 시)
        error_context: 에러 컨텍스트 (실패 시)
    """
    run_log.finished_at = datetime.now(UTC).isoformat()

    if result is None:
        run_log.result = "failed"
        run_log.error_code = error_code
        run_log.error_context = error_context
        return

    run_log.result = _result_label(result)
    run_log.summary = result.to_dict()


def save_run_log(run_log: RunLog, logs_dir: Path) -> Path:
    """
    RunLog를 파일로 저장.

    Args:
        run_log: RunLog 인스턴스
        logs_dir: logs/ 디렉터리 경로

    Returns:
        저장된 파일 경로
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"{RUN_LOG_PREFIX}{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    """RunLog 파일 로드."""
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_run_logs(logs_dir: Path) -> list[Path]:
    """
    logs/ 디렉터리의 모든 run log 파일 목록.

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob(f"{RUN_LOG_PREFIX}*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs


def find_run_log(logs_dir: Path, run_id: str) -> Path | None:
    """run_id → 로그 파일 경로 (없거나 run_id에 경로 문자가 있으면 None)."""
    if not run_id or Path(run_id).name != run_id:
        return None
    log_path = logs_dir / f"{RUN_LOG_PREFIX}{run_id}.json"
    return log_path if log_path.is_file() else None
