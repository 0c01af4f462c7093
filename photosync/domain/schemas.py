"""
Data schemas for photosync.

규칙:
- 필드명 통일: photos 테이블 컬럼명과 동일하게 사용
- 시각은 모두 UTC aware datetime
- 결과 객체는 to_dict()로 JSON 직렬화 (run log, API 응답)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

# =============================================================================
# Enums (닫힌 집합)
# =============================================================================

class TierState(str, Enum):
    """
    레코드의 tier 상태.

    payload / cloud_reference 존재 여부로만 결정된다.
    """
    LOCAL_ONLY = "local_only"      # payload O, cloud X
    CLOUD_ONLY = "cloud_only"      # payload X, cloud O (업로드 후 offload)
    MIRRORED = "mirrored"          # 둘 다 O
    INCONSISTENT = "inconsistent"  # 둘 다 X → 데이터 무결성 에러


class RequiredAction(str, Enum):
    """tier 상태에서 도출되는 다음 액션."""
    NONE = "none"
    UPLOAD = "upload"
    REPORT_INTEGRITY = "report_integrity"


class NullableField(str, Enum):
    """
    비울 수 있는 필드 (문자열 필드명 dispatch 대신 닫힌 집합).

    각 값은 gateway의 전용 clear 연산에 매핑된다.
    """
    PAYLOAD = "payload"
    CLOUD_REFERENCE = "cloud_reference"


class WorkflowStep(str, Enum):
    """workflow 단계. 실행 순서는 정의 순서를 따른다."""
    IMPORT = "import"
    CLOUD_SYNC = "cloud_sync"
    REHYDRATE = "rehydrate"
    EXPORT = "export"


class OutcomeStatus(str, Enum):
    """항목 단위 처리 결과."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    INTEGRITY_VIOLATION = "integrity_violation"


# =============================================================================
# Core Schemas
# =============================================================================

@dataclass
class PhotoRecord:
    """
    동기화 단위 레코드 (photos 테이블 한 행).

    code는 전역 유일, 생성 후 변경 금지.
    """
    code: str
    payload: bytes | None = None
    cloud_reference: str | None = None
    file_hash: str | None = None
    file_size: int | None = None
    created_date: datetime | None = None
    modified_date: datetime | None = None

    # === Provenance (import 시 1회 설정) ===
    source_file_name: str | None = None
    image_source: str | None = None

    # === Lifecycle timestamps ===
    imported_date: datetime | None = None
    exported_date: datetime | None = None
    azure_uploaded_date: datetime | None = None
    photo_modified_date: datetime | None = None

    azure_sync_required: bool = False

    @property
    def has_payload(self) -> bool:
        return self.payload is not None

    @property
    def has_cloud_copy(self) -> bool:
        return bool(self.cloud_reference)

    @property
    def payload_size(self) -> int:
        return len(self.payload) if self.payload is not None else 0

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화용 (payload 바이트는 크기만 기록)."""
        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "code": self.code,
            "payload_size": self.payload_size if self.has_payload else None,
            "cloud_reference": self.cloud_reference,
            "file_hash": self.file_hash,
            "file_size": self.file_size,
            "created_date": iso(self.created_date),
            "modified_date": iso(self.modified_date),
            "source_file_name": self.source_file_name,
            "image_source": self.image_source,
            "imported_date": iso(self.imported_date),
            "exported_date": iso(self.exported_date),
            "azure_uploaded_date": iso(self.azure_uploaded_date),
            "photo_modified_date": iso(self.photo_modified_date),
            "azure_sync_required": self.azure_sync_required,
        }


@dataclass(frozen=True)
class Classification:
    """classify() 결과."""
    state: TierState
    required_action: RequiredAction


@dataclass
class MoveResult:
    """
    safe_move() 결과.

    원인 보존, dst 충돌 해결, 원자성, fsync 경고
    """
    success: bool
    src: Path
    dst: Path | None = None
    operation: str | None = None  # copy, unlink_source
    errno_code: int | None = None
    error_message: str | None = None
    fsync_warning: bool = False


# =============================================================================
# Pass Result Schemas
# =============================================================================

@dataclass
class ItemError:
    """항목 단위 에러 (code 또는 파일 경로로 식별)."""
    key: str
    code: str
    message: str
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "code": self.code,
            "message": self.message,
            "path": self.path,
        }


@dataclass
class ItemOutcome:
    """worker 하나가 반환하는 처리 결과."""
    key: str
    status: OutcomeStatus
    error: ItemError | None = None
    warnings: list[ItemError] = field(default_factory=list)
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass
class PassResult:
    """
    batch pass 공통 결과.

    부분 실패는 예외가 아니라 여기에 집계된다.
    errors/integrity_errors는 key 기준 정렬 + max_error_details로 제한.
    """
    operation: str = ""
    run_id: str | None = None
    found: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    errors: list[ItemError] = field(default_factory=list)
    integrity_errors: list[ItemError] = field(default_factory=list)
    warnings: list[ItemError] = field(default_factory=list)
    errors_truncated: int = 0
    started_at: str | None = None  # ISO 8601
    finished_at: str | None = None

    @property
    def ok(self) -> bool:
        """실패/무결성 위반/취소가 없는지."""
        return self.failed == 0 and not self.integrity_errors and not self.cancelled

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "run_id": self.run_id,
            "found": self.found,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "ok": self.ok,
            "errors": [e.to_dict() for e in self.errors],
            "integrity_errors": [e.to_dict() for e in self.integrity_errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "errors_truncated": self.errors_truncated,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass
class ImportResult(PassResult):
    """Import pass 결과."""
    folder: str = ""
    skipped_duplicate: int = 0
    archived: int = 0
    duplicate_files: list[str] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return self.succeeded

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "folder": self.folder,
            "imported": self.imported,
            "skipped_duplicate": self.skipped_duplicate,
            "archived": self.archived,
            "duplicate_files": list(self.duplicate_files),
        })
        return data


@dataclass
class ExportResult(PassResult):
    """Export pass 결과."""
    folder: str = ""
    incremental: bool = True
    exported_files: list[str] = field(default_factory=list)

    @property
    def exported(self) -> int:
        return self.succeeded

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "folder": self.folder,
            "incremental": self.incremental,
            "exported": self.exported,
            "exported_files": list(self.exported_files),
        })
        return data


@dataclass
class CloudSyncResult(PassResult):
    """Cloud-Sync pass 결과."""
    policy: str = ""
    migrate: bool = False
    offloaded: int = 0

    @property
    def uploaded(self) -> int:
        return self.succeeded

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "policy": self.policy,
            "migrate": self.migrate,
            "uploaded": self.uploaded,
            "offloaded": self.offloaded,
        })
        return data


@dataclass
class RehydrateResult(PassResult):
    """Rehydrate pass 결과 (cloud → relational tier 복원)."""

    @property
    def restored(self) -> int:
        return self.succeeded

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["restored"] = self.restored
        return data


@dataclass
class WorkflowResult:
    """
    workflow 실행 결과.

    step별 pass 결과와 pass 단위 치명 에러를 함께 기록.
    """
    steps: list[WorkflowStep] = field(default_factory=list)
    dry_run: bool = False
    nullified_field: NullableField | None = None
    records_nullified: int = 0
    results: dict[str, PassResult] = field(default_factory=dict)
    step_errors: dict[str, dict[str, Any]] = field(default_factory=dict)
    preview: dict[str, int] = field(default_factory=dict)

    @property
    def total_processed(self) -> int:
        return sum(r.succeeded for r in self.results.values())

    @property
    def total_failed(self) -> int:
        return sum(r.failed for r in self.results.values())

    @property
    def ok(self) -> bool:
        return not self.step_errors and all(r.ok for r in self.results.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [s.value for s in self.steps],
            "dry_run": self.dry_run,
            "nullified_field": self.nullified_field.value if self.nullified_field else None,
            "records_nullified": self.records_nullified,
            "results": {k: v.to_dict() for k, v in self.results.items()},
            "step_errors": dict(self.step_errors),
            "preview": dict(self.preview),
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
            "ok": self.ok,
        }


@dataclass
class SyncStatus:
    """저장소 전체 동기화 상태 요약."""
    total: int = 0
    local_only: int = 0
    cloud_only: int = 0
    mirrored: int = 0
    inconsistent: int = 0
    never_exported: int = 0
    stale_exports: int = 0
    pending_cloud_sync: int = 0
    with_hash: int = 0
    unique_hashes: int = 0
    first_import: datetime | None = None
    last_import: datetime | None = None
    first_export: datetime | None = None
    last_export: datetime | None = None
    first_upload: datetime | None = None
    last_upload: datetime | None = None

    @property
    def pending_export(self) -> int:
        return self.never_exported + self.stale_exports

    @property
    def duplicates(self) -> int:
        return self.with_hash - self.unique_hashes if self.with_hash else 0

    def to_dict(self) -> dict[str, Any]:
        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "total": self.total,
            "local_only": self.local_only,
            "cloud_only": self.cloud_only,
            "mirrored": self.mirrored,
            "inconsistent": self.inconsistent,
            "never_exported": self.never_exported,
            "stale_exports": self.stale_exports,
            "pending_export": self.pending_export,
            "pending_cloud_sync": self.pending_cloud_sync,
            "with_hash": self.with_hash,
            "unique_hashes": self.unique_hashes,
            "duplicates": self.duplicates,
            "first_import": iso(self.first_import),
            "last_import": iso(self.last_import),
            "first_export": iso(self.first_export),
            "last_export": iso(self.last_export),
            "first_upload": iso(self.first_upload),
            "last_upload": iso(self.last_upload),
        }


# =============================================================================
# Run Log Schemas
# =============================================================================

@dataclass
class WarningLog:
    """
    경고 로그.

    경고 필수 컨텍스트: level, code, key, message
    """
    level: str = "warning"
    code: str = ""
    key: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "key": self.key,
            "message": self.message,
        }


@dataclass
class RunLog:
    """
    실행 로그.

    pass 1회의 실행 결과 및 메타데이터.
    """
    run_id: str
    operation: str
    started_at: str  # ISO 8601
    finished_at: str | None = None
    result: str = "pending"  # pending, success, partial, failed, cancelled

    # Events
    warnings: list[WarningLog] = field(default_factory=list)

    # Pass summary (PassResult.to_dict())
    summary: dict[str, Any] | None = None

    # Error (if failed)
    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "operation": self.operation,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "warnings": [w.to_dict() for w in self.warnings],
            "summary": self.summary,
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
