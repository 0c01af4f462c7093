"""
Error definitions for photosync.

규칙:
- 조용한 실패 금지 → 코드가 붙은 예외로 명시적 실패
- pass 전체를 멈추는 에러(PassAbortedError)와 항목 단위 에러(GatewayError)를 구분
- Inconsistent 레코드 → DataIntegrityError, 자동 복구 금지
"""

from typing import Any


class PhotoSyncError(Exception):
    """
    photosync 에러 기본 클래스.

    Usage:
        raise PhotoSyncError("INVALID_SETTINGS", key="max_parallel_operations", value=0)
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **{k: str(v) if isinstance(v, BaseException) else v for k, v in self.context.items()},
        }


class PassAbortedError(PhotoSyncError):
    """
    pass 전체를 중단해야 하는 에러.

    - import 폴더 없음/읽기 불가
    - 레코드 저장소 연결 실패
    - blob 저장소 연결 실패

    pass 시작 시 한 번만 발생하며 cause를 context에 포함.
    """


class GatewayError(PhotoSyncError):
    """
    tier gateway가 던지는 항목 단위 실패.

    엔진은 worker 경계에서 잡아서 ItemError로 기록한다.
    """


class DataIntegrityError(PhotoSyncError):
    """
    payload도 cloud reference도 없는 레코드 발견.

    호출자에게 별도 에러 클래스로 보고되며 자동으로 고치지 않는다.
    """

    def __init__(self, record_code: str, **context: Any) -> None:
        super().__init__(ErrorCodes.INCONSISTENT_RECORD, record_code=record_code, **context)
        self.record_code = record_code


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Settings ===
    INVALID_SETTINGS = "INVALID_SETTINGS"

    # === Run logs ===
    RUN_LOG_NOT_FOUND = "RUN_LOG_NOT_FOUND"

    # === Pass-level (fatal) ===
    IMPORT_FOLDER_MISSING = "IMPORT_FOLDER_MISSING"
    EXPORT_FOLDER_UNAVAILABLE = "EXPORT_FOLDER_UNAVAILABLE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    BLOB_UNAVAILABLE = "BLOB_UNAVAILABLE"

    # === Item-level ===
    FILE_READ_FAILED = "FILE_READ_FAILED"
    RECORD_UPSERT_FAILED = "RECORD_UPSERT_FAILED"
    RECORD_UPDATE_FAILED = "RECORD_UPDATE_FAILED"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    PAYLOAD_CLEAR_FAILED = "PAYLOAD_CLEAR_FAILED"
    ARCHIVE_FAILED = "ARCHIVE_FAILED"  # warning, import는 유지
    EXPORT_WRITE_FAILED = "EXPORT_WRITE_FAILED"
    BLOB_UPLOAD_FAILED = "BLOB_UPLOAD_FAILED"
    BLOB_DOWNLOAD_FAILED = "BLOB_DOWNLOAD_FAILED"
    BLOB_NOT_FOUND = "BLOB_NOT_FOUND"
    BLOB_DELETE_FAILED = "BLOB_DELETE_FAILED"  # warning
    BLOB_CONTENT_MISMATCH = "BLOB_CONTENT_MISMATCH"
    NO_PAYLOAD = "NO_PAYLOAD"
    RECORD_CHANGED = "RECORD_CHANGED"  # warning, 다음 pass에서 다시 처리
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

    # === Integrity ===
    INCONSISTENT_RECORD = "INCONSISTENT_RECORD"
