"""
Batch reconciliation engine: Import / Export / Cloud-Sync / Rehydrate pass

흐름 (모든 pass 공통):
1. pass 시작 시 치명 조건 확인 (폴더, 저장소, blob) → PassAbortedError
2. gateway에서 후보 항목 수집
3. tiering 상태 판정 → 항목별 액션
4. run_bounded로 max_parallel_operations 만큼 동시 실행
5. 항목 결과를 PassResult로 집계 (부분 실패는 예외가 아님)

규칙:
- worker 경계 밖으로 항목 예외가 새지 않음 → ItemError
- Inconsistent → integrity_errors (errors와 별도), 자동 복구 금지
- archive는 upsert 확인 후에만, archive 실패는 경고
- offload(payload 비우기)는 mark_uploaded 성공 + blob 내용 확인 후 별도 update로만
- pass 후처리 update는 읽은 뒤 내용이 바뀌지 않은 레코드에만 (재import 보존)
- Cloud-Sync 액션은 classify() 결과로 결정
"""

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from photosync.core.hashing import compute_fingerprint, fingerprints_match
from photosync.core.ids import derive_code, generate_run_id, sanitize_blob_name
from photosync.core.logging import (
    complete_run_log,
    create_run_log,
    emit_warning,
    find_run_log,
    list_run_logs,
    load_run_log,
    save_run_log,
)
from photosync.core.pool import run_bounded
from photosync.core.settings import SyncSettings
from photosync.core.tiering import (
    classify,
    ensure_consistent,
    needs_cloud_sync,
    needs_export,
    tier_state,
)
from photosync.domain.constants import IMAGE_SOURCE_PREFIX, TIERING_POLICIES, TIERING_POLICY_OFFLOAD
from photosync.domain.errors import (
    DataIntegrityError,
    ErrorCodes,
    GatewayError,
    PassAbortedError,
    PhotoSyncError,
)
from photosync.domain.schemas import (
    CloudSyncResult,
    ExportResult,
    ImportResult,
    ItemError,
    ItemOutcome,
    NullableField,
    OutcomeStatus,
    PassResult,
    PhotoRecord,
    RehydrateResult,
    RequiredAction,
    RunLog,
    SyncStatus,
    TierState,
    WorkflowResult,
    WorkflowStep,
)
from photosync.gateways.base import BlobGateway, FilesystemGateway, RecordGateway

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


def _item_error(key: str, error: Exception, path: str | None = None) -> ItemError:
    """예외 → ItemError (코드 없는 예외는 UNEXPECTED_ERROR)."""
    if isinstance(error, PhotoSyncError):
        return ItemError(key=key, code=error.code, message=str(error), path=path)
    return ItemError(
        key=key,
        code=ErrorCodes.UNEXPECTED_ERROR,
        message=f"{type(error).__name__}: {error}",
        path=path,
    )


class ReconciliationEngine:
    """
    세 tier 사이의 사진 레코드를 맞추는 batch 엔진.

    Usage:
        engine = ReconciliationEngine(records, files, blobs, settings=settings)
        result = engine.run_import()
        if not result.ok:
            ...
    """

    def __init__(
        self,
        records: RecordGateway,
        files: FilesystemGateway,
        blobs: BlobGateway | None = None,
        settings: SyncSettings | None = None,
    ) -> None:
        self.records = records
        self.files = files
        self.blobs = blobs
        self.settings = settings or SyncSettings()

    # =========================================================================
    # Pass plumbing
    # =========================================================================

    def _require_store(self) -> None:
        try:
            self.records.ping()
        except (GatewayError, OSError) as e:
            raise PassAbortedError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e

    def _require_blobs(self) -> BlobGateway:
        if self.blobs is None:
            raise PassAbortedError(
                ErrorCodes.BLOB_UNAVAILABLE, reason="no blob gateway configured"
            )
        try:
            self.blobs.ping()
        except (GatewayError, OSError) as e:
            raise PassAbortedError(ErrorCodes.BLOB_UNAVAILABLE, cause=e) from e
        return self.blobs

    def _begin(self, result: PassResult) -> RunLog:
        run_log = create_run_log(result.operation, run_id=generate_run_id())
        result.run_id = run_log.run_id
        result.started_at = run_log.started_at
        logger.info("Starting %s pass (run_id=%s)", result.operation, result.run_id)
        return run_log

    def _save(self, run_log: RunLog) -> None:
        if not self.settings.logs_dir:
            return
        try:
            save_run_log(run_log, Path(self.settings.logs_dir))
        except OSError as e:
            logger.warning("Failed to save run log %s: %s", run_log.run_id, e)

    def _abort(self, run_log: RunLog, error: PassAbortedError) -> None:
        logger.error("%s pass aborted: %s", run_log.operation, error)
        complete_run_log(run_log, error_code=error.code, error_context=error.to_dict())
        self._save(run_log)

    def _finish(self, run_log: RunLog, result: PassResult) -> None:
        result.finished_at = _now().isoformat()
        for warning in result.warnings:
            emit_warning(run_log, warning.code, warning.key, warning.message)
        complete_run_log(run_log, result)
        self._save(run_log)
        logger.info(
            "Finished %s pass: found=%d succeeded=%d failed=%d skipped=%d "
            "integrity=%d cancelled=%s",
            result.operation,
            result.found,
            result.succeeded,
            result.failed,
            result.skipped,
            len(result.integrity_errors),
            result.cancelled,
        )

    def _guarded_failure(self, key_of: Callable[[Any], str]) -> Callable[[Any, Exception], ItemOutcome]:
        """worker 예외 → FAILED / INTEGRITY_VIOLATION outcome."""
        def on_error(item: Any, error: Exception) -> ItemOutcome:
            key = key_of(item)
            path = str(item) if isinstance(item, Path) else None
            if isinstance(error, DataIntegrityError):
                logger.error("Integrity violation for %s: %s", key, error)
                return ItemOutcome(
                    key=key,
                    status=OutcomeStatus.INTEGRITY_VIOLATION,
                    error=_item_error(key, error, path),
                )
            logger.warning("Item %s failed: %s", key, error)
            return ItemOutcome(
                key=key,
                status=OutcomeStatus.FAILED,
                error=_item_error(key, error, path),
            )
        return on_error

    def _run_items(
        self,
        items: Sequence[Any],
        worker: Callable[[Any], ItemOutcome],
        key_of: Callable[[Any], str],
        cancel: threading.Event | None,
    ) -> tuple[list[ItemOutcome], bool]:
        return run_bounded(
            items,
            worker,
            max_parallel=self.settings.photos.max_parallel_operations,
            on_error=self._guarded_failure(key_of),
            cancel=cancel,
        )

    def _fold(self, result: PassResult, outcomes: Iterable[ItemOutcome], cancelled: bool) -> None:
        """항목 결과 집계 + 에러 정렬/상한 적용."""
        errors: list[ItemError] = []
        integrity: list[ItemError] = []

        for outcome in outcomes:
            result.warnings.extend(outcome.warnings)
            if outcome.status == OutcomeStatus.SUCCEEDED:
                result.succeeded += 1
            elif outcome.status == OutcomeStatus.SKIPPED:
                result.skipped += 1
            elif outcome.status == OutcomeStatus.INTEGRITY_VIOLATION:
                if outcome.error:
                    integrity.append(outcome.error)
            elif outcome.status == OutcomeStatus.FAILED:
                result.failed += 1
                if outcome.error:
                    errors.append(outcome.error)

        limit = self.settings.photos.max_error_details
        errors.sort(key=lambda e: e.key)
        integrity.sort(key=lambda e: e.key)
        result.errors = errors[:limit]
        result.integrity_errors = integrity[:limit]
        result.errors_truncated = max(0, len(errors) - limit) + max(0, len(integrity) - limit)
        result.warnings.sort(key=lambda w: w.key)
        result.cancelled = cancelled

    # =========================================================================
    # Import
    # =========================================================================

    def run_import(
        self,
        folder: str | Path | None = None,
        *,
        skip_archive: bool = False,
        code_resolver: Callable[[Path], str] | None = None,
        cancel: threading.Event | None = None,
    ) -> ImportResult:
        """
        import 폴더 → photos 테이블.

        Args:
            folder: import 폴더 (None이면 설정값)
            skip_archive: True면 아카이브 이동 생략
            code_resolver: 파일 경로 → code (기본: 확장자 뺀 파일명)
            cancel: 취소 신호

        Returns:
            ImportResult

        Raises:
            PassAbortedError: 폴더 없음/읽기 불가, 저장소 연결 실패
        """
        photos = self.settings.photos
        source = Path(folder) if folder else (Path(photos.import_folder) if photos.import_folder else None)
        result = ImportResult(operation=WorkflowStep.IMPORT.value, folder=str(source or ""))
        run_log = self._begin(result)

        try:
            if source is None or not self.files.folder_exists(source):
                raise PassAbortedError(
                    ErrorCodes.IMPORT_FOLDER_MISSING, folder=str(source) if source else None
                )
            self._require_store()
            try:
                candidates = self.files.list_candidate_files(source, photos.allowed_extensions)
            except GatewayError as e:
                raise PassAbortedError(ErrorCodes.IMPORT_FOLDER_MISSING, folder=str(source), cause=e) from e
        except PassAbortedError as e:
            self._abort(run_log, e)
            raise

        archive_folder = None
        if photos.enable_auto_archive and not skip_archive:
            if photos.archive_folder:
                archive_folder = Path(photos.archive_folder)
            else:
                logger.warning("Auto-archive enabled but archive_folder is not set; skipping archive")

        resolver = code_resolver or derive_code
        result.found = len(candidates)
        logger.info("Found %d candidate file(s) in %s", result.found, source)

        outcomes, cancelled = self._run_items(
            candidates,
            lambda path: self._import_file(path, resolver, archive_folder),
            key_of=lambda path: path.name,
            cancel=cancel,
        )

        self._fold(result, outcomes, cancelled)
        for outcome in outcomes:
            if outcome.status == OutcomeStatus.SKIPPED_DUPLICATE:
                result.skipped_duplicate += 1
                result.duplicate_files.append(outcome.key)
            if outcome.detail.get("archived"):
                result.archived += 1
        result.duplicate_files.sort()

        self._finish(run_log, result)
        return result

    def _import_file(
        self,
        path: Path,
        resolver: Callable[[Path], str],
        archive_folder: Path | None,
    ) -> ItemOutcome:
        photos = self.settings.photos
        data = self.files.read_bytes(path)
        file_hash = compute_fingerprint(data) if photos.track_file_hash else None

        if photos.enable_duplicate_check and file_hash:
            existing = self.records.find_by_hash(file_hash)
            if existing is not None:
                logger.info("Skipping duplicate %s (matches %s)", path.name, existing.code)
                outcome = ItemOutcome(
                    key=path.name,
                    status=OutcomeStatus.SKIPPED_DUPLICATE,
                    detail={"code": existing.code},
                )
                if archive_folder is not None and photos.archive_duplicates:
                    self._archive(path, archive_folder, outcome)
                return outcome

        code = resolver(path)
        if not code:
            raise GatewayError(ErrorCodes.RECORD_UPSERT_FAILED, path=str(path), reason="empty code")

        now = _now()
        record = PhotoRecord(
            code=code,
            payload=data,
            file_hash=file_hash,
            file_size=len(data),
            created_date=now,
            modified_date=now,
            source_file_name=path.name,
            image_source=f"{IMAGE_SOURCE_PREFIX}{path}",
            imported_date=now,
            photo_modified_date=now,
            azure_sync_required=True,
        )
        created = self.records.upsert(record)

        outcome = ItemOutcome(
            key=path.name,
            status=OutcomeStatus.SUCCEEDED,
            detail={"code": code, "created": created},
        )
        # upsert 확인 후에만 이동
        if archive_folder is not None:
            self._archive(path, archive_folder, outcome)
        return outcome

    def _archive(self, path: Path, archive_folder: Path, outcome: ItemOutcome) -> None:
        """아카이브 이동. 실패는 경고로만 남김 (import 결과 유지)."""
        try:
            moved = self.files.move_to_archive(path, archive_folder)
        except (OSError, PhotoSyncError) as e:
            outcome.warnings.append(
                ItemError(path.name, ErrorCodes.ARCHIVE_FAILED, str(e), path=str(path))
            )
            return

        if moved.success:
            outcome.detail["archived"] = True
            return

        logger.warning(
            "Archive failed for %s: %s (%s)", path.name, moved.error_message, moved.operation
        )
        outcome.warnings.append(
            ItemError(
                path.name,
                ErrorCodes.ARCHIVE_FAILED,
                f"{moved.operation}: {moved.error_message}",
                path=str(path),
            )
        )

    # =========================================================================
    # Export
    # =========================================================================

    def run_export(
        self,
        folder: str | Path | None = None,
        *,
        force: bool = False,
        codes: Sequence[str] | None = None,
        cancel: threading.Event | None = None,
    ) -> ExportResult:
        """
        photos 테이블 → export 폴더.

        Args:
            folder: export 폴더 (None이면 설정값)
            force: True면 needs_export와 무관하게 전체
            codes: 지정하면 해당 code만
            cancel: 취소 신호

        Returns:
            ExportResult

        Raises:
            PassAbortedError: 폴더 생성 불가, 저장소 연결 실패
        """
        photos = self.settings.photos
        target = Path(folder) if folder else (Path(photos.export_folder) if photos.export_folder else None)
        incremental = photos.use_incremental_export and not force
        result = ExportResult(
            operation=WorkflowStep.EXPORT.value,
            folder=str(target or ""),
            incremental=incremental,
        )
        run_log = self._begin(result)
        # 후보를 읽기 전 시각: 이후 재import된 레코드는 다시 export 대상
        export_date = _now()

        try:
            if target is None:
                raise PassAbortedError(
                    ErrorCodes.EXPORT_FOLDER_UNAVAILABLE, reason="export folder not configured"
                )
            self._require_store()
            try:
                self.files.ensure_folder(target)
            except GatewayError as e:
                raise PassAbortedError(
                    ErrorCodes.EXPORT_FOLDER_UNAVAILABLE, folder=str(target), cause=e
                ) from e
            candidates = self._export_candidates(incremental, codes)
        except PassAbortedError as e:
            self._abort(run_log, e)
            raise

        result.found = len(candidates)

        outcomes, cancelled = self._run_items(
            candidates,
            lambda record: self._export_record(record, target, export_date),
            key_of=lambda record: record.code,
            cancel=cancel,
        )

        self._fold(result, outcomes, cancelled)
        result.exported_files = sorted(
            o.detail["file"] for o in outcomes if o.status == OutcomeStatus.SUCCEEDED
        )

        self._finish(run_log, result)
        return result

    def _export_candidates(self, incremental: bool, codes: Sequence[str] | None) -> list[PhotoRecord]:
        try:
            records = self.records.find_all()
        except GatewayError as e:
            raise PassAbortedError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e
        if codes:
            wanted = set(codes)
            records = [r for r in records if r.code in wanted]
        if incremental:
            records = [r for r in records if needs_export(r)]
        return records

    def export_file_name(self, code: str, export_date: datetime) -> str:
        """
        export 파일명.

        format 토큰: {code}, {export_date:%Y%m%d}
        """
        template = self.settings.photos.export_file_name_format
        try:
            return template.format(code=code, export_date=export_date)
        except (KeyError, IndexError, ValueError) as e:
            raise GatewayError(
                ErrorCodes.EXPORT_WRITE_FAILED, template=template, record_code=code, cause=e
            ) from e

    def _export_record(self, record: PhotoRecord, target: Path, export_date: datetime) -> ItemOutcome:
        ensure_consistent(record)

        if record.payload is not None:
            data = record.payload
        else:
            if self.blobs is None:
                raise GatewayError(
                    ErrorCodes.BLOB_UNAVAILABLE,
                    record_code=record.code,
                    reason="no blob gateway configured",
                )
            data = self.blobs.get(record.cloud_reference or "")

        file_name = self.export_file_name(record.code, export_date)
        written = self.files.write_export_file(target, file_name, data)

        outcome = ItemOutcome(
            key=record.code,
            status=OutcomeStatus.SUCCEEDED,
            detail={"file": written.name},
        )
        # 쓰기 확인 후에만 기록
        if not self.records.mark_exported(record.code, export_date, if_unchanged=record):
            self._record_changed(record, outcome)
        return outcome

    def _record_changed(self, record: PhotoRecord, outcome: ItemOutcome) -> None:
        """
        조건부 update가 0행 → 레코드 삭제(실패) 또는 읽은 뒤 재import(경고).

        재import된 레코드는 다음 pass에서 다시 처리된다.
        """
        if self.records.find_by_code(record.code) is None:
            raise GatewayError(ErrorCodes.RECORD_NOT_FOUND, record_code=record.code)
        logger.warning("Record %s changed during the pass; left for the next run", record.code)
        outcome.warnings.append(
            ItemError(record.code, ErrorCodes.RECORD_CHANGED, "record changed while the pass was running")
        )

    # =========================================================================
    # Cloud-Sync
    # =========================================================================

    def run_cloud_sync(
        self,
        *,
        migrate: bool = False,
        policy: str | None = None,
        cancel: threading.Event | None = None,
    ) -> CloudSyncResult:
        """
        photos 테이블 → blob 저장소.

        Args:
            migrate: True면 업로드 이력이 없는 LocalOnly 레코드도 대상
            policy: mirror / offload (None이면 설정값)
            cancel: 취소 신호

        Returns:
            CloudSyncResult

        Raises:
            PassAbortedError: 저장소/blob 연결 실패
            PhotoSyncError: 알 수 없는 policy
        """
        policy = policy or self.settings.storage.tiering_policy
        if policy not in TIERING_POLICIES:
            raise PhotoSyncError(
                ErrorCodes.INVALID_SETTINGS, key="policy", value=policy, allowed=list(TIERING_POLICIES)
            )

        result = CloudSyncResult(
            operation=WorkflowStep.CLOUD_SYNC.value, policy=policy, migrate=migrate
        )
        run_log = self._begin(result)

        try:
            self._require_store()
            blobs = self._require_blobs()
            candidates = self._cloud_sync_candidates(migrate)
        except PassAbortedError as e:
            self._abort(run_log, e)
            raise

        result.found = len(candidates)

        outcomes, cancelled = self._run_items(
            candidates,
            lambda record: self._sync_record(record, blobs, policy, migrate),
            key_of=lambda record: record.code,
            cancel=cancel,
        )

        self._fold(result, outcomes, cancelled)
        result.offloaded = sum(1 for o in outcomes if o.detail.get("offloaded"))

        self._finish(run_log, result)
        return result

    @staticmethod
    def _wants_cloud_sync(record: PhotoRecord, migrate: bool) -> bool:
        """업로드 대상이거나 sync 플래그가 켜진 레코드 (판정은 _sync_record에서)."""
        return record.azure_sync_required or needs_cloud_sync(record, migrate=migrate)

    def _cloud_sync_candidates(self, migrate: bool) -> list[PhotoRecord]:
        try:
            records = self.records.find_all() if migrate else self.records.find_sync_required()
        except GatewayError as e:
            raise PassAbortedError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e
        candidates = [r for r in records if self._wants_cloud_sync(r, migrate)]
        candidates.sort(key=lambda r: r.code)
        return candidates

    def _sync_record(
        self,
        record: PhotoRecord,
        blobs: BlobGateway,
        policy: str,
        migrate: bool,
    ) -> ItemOutcome:
        action = classify(record, migrate=migrate).required_action

        if action == RequiredAction.REPORT_INTEGRITY:
            raise DataIntegrityError(
                record.code, message="record has neither payload nor cloud reference"
            )
        if action == RequiredAction.UPLOAD:
            return self._upload(record, blobs, policy)

        outcome = ItemOutcome(key=record.code, status=OutcomeStatus.SKIPPED)
        if record.azure_sync_required and record.payload is None:
            # sync 플래그는 있는데 payload가 없음 → 건너뜀 (자동 복구 안 함)
            outcome.warnings.append(
                ItemError(record.code, ErrorCodes.NO_PAYLOAD, "no local payload to upload")
            )
        return outcome

    def _upload(self, record: PhotoRecord, blobs: BlobGateway, policy: str) -> ItemOutcome:
        payload = record.payload or b""
        reference = blobs.put(sanitize_blob_name(record.code), payload)

        if not self.records.mark_uploaded(record.code, reference, _now(), if_unchanged=record):
            # 업로드 중 재import → 플래그가 남아 다음 pass에서 새 내용으로 업로드
            outcome = ItemOutcome(key=record.code, status=OutcomeStatus.SKIPPED)
            self._record_changed(record, outcome)
            return outcome

        outcome = ItemOutcome(
            key=record.code,
            status=OutcomeStatus.SUCCEEDED,
            detail={"reference": reference},
        )

        previous = record.cloud_reference
        if previous and previous != reference:
            self._delete_stale_blob(blobs, previous, outcome)

        if policy == TIERING_POLICY_OFFLOAD:
            self._offload(record, blobs, reference, outcome)

        return outcome

    def _offload(
        self,
        record: PhotoRecord,
        blobs: BlobGateway,
        reference: str,
        outcome: ItemOutcome,
    ) -> None:
        """저장된 blob 내용을 확인한 뒤에만 payload 비움."""
        expected = record.file_hash or compute_fingerprint(record.payload or b"")
        try:
            stored = blobs.get(reference)
        except GatewayError as e:
            outcome.warnings.append(ItemError(record.code, e.code, str(e)))
            return

        if not fingerprints_match(stored, expected):
            logger.error("Blob %s does not match %s; payload kept", reference, record.code)
            outcome.warnings.append(
                ItemError(
                    record.code,
                    ErrorCodes.BLOB_CONTENT_MISMATCH,
                    f"stored blob fingerprint {compute_fingerprint(stored)} != {expected}",
                )
            )
            return

        try:
            cleared = self.records.clear_field(
                record.code, NullableField.PAYLOAD, if_unchanged=record
            )
        except GatewayError as e:
            outcome.warnings.append(
                ItemError(record.code, ErrorCodes.PAYLOAD_CLEAR_FAILED, str(e))
            )
            return

        if cleared == 1:
            outcome.detail["offloaded"] = True
        else:
            self._record_changed(record, outcome)

    def _delete_stale_blob(self, blobs: BlobGateway, reference: str, outcome: ItemOutcome) -> None:
        try:
            blobs.delete(reference)
        except GatewayError as e:
            logger.warning("Could not delete previous blob %s: %s", reference, e)
            outcome.warnings.append(
                ItemError(outcome.key, ErrorCodes.BLOB_DELETE_FAILED, str(e))
            )

    # =========================================================================
    # Rehydrate
    # =========================================================================

    def run_rehydrate(
        self,
        *,
        codes: Sequence[str] | None = None,
        cancel: threading.Event | None = None,
    ) -> RehydrateResult:
        """
        blob 저장소 → photos 테이블 (CloudOnly → Mirrored).

        받은 바이트의 fingerprint가 file_hash와 다르면 항목 실패.
        """
        result = RehydrateResult(operation=WorkflowStep.REHYDRATE.value)
        run_log = self._begin(result)

        try:
            self._require_store()
            blobs = self._require_blobs()
            try:
                records = self.records.find_all()
            except GatewayError as e:
                raise PassAbortedError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e
        except PassAbortedError as e:
            self._abort(run_log, e)
            raise

        if codes:
            wanted = set(codes)
            records = [r for r in records if r.code in wanted]
        candidates = [
            r for r in records
            if tier_state(r) in (TierState.CLOUD_ONLY, TierState.INCONSISTENT)
        ]
        result.found = len(candidates)

        outcomes, cancelled = self._run_items(
            candidates,
            lambda record: self._rehydrate_record(record, blobs),
            key_of=lambda record: record.code,
            cancel=cancel,
        )

        self._fold(result, outcomes, cancelled)
        self._finish(run_log, result)
        return result

    def _rehydrate_record(self, record: PhotoRecord, blobs: BlobGateway) -> ItemOutcome:
        ensure_consistent(record)

        data = blobs.get(record.cloud_reference or "")
        if not fingerprints_match(data, record.file_hash):
            raise GatewayError(
                ErrorCodes.BLOB_CONTENT_MISMATCH,
                record_code=record.code,
                expected=record.file_hash,
                actual=compute_fingerprint(data),
            )

        outcome = ItemOutcome(key=record.code, status=OutcomeStatus.SUCCEEDED)
        if not self.records.restore_payload(record.code, data, _now(), if_unchanged=record):
            # 재import된 payload를 예전 blob 내용으로 덮지 않음
            outcome.status = OutcomeStatus.SKIPPED
            self._record_changed(record, outcome)
        return outcome

    # =========================================================================
    # Workflow
    # =========================================================================

    def run_workflow(
        self,
        steps: Iterable[WorkflowStep | str],
        *,
        nullify: NullableField | None = None,
        skip_archive: bool = False,
        dry_run: bool = False,
    ) -> WorkflowResult:
        """
        여러 pass를 정해진 순서로 실행.

        순서: import → cloud_sync → rehydrate → export (입력 순서와 무관)
        step의 치명 에러는 step_errors에 기록하고 다음 step 계속.

        Args:
            steps: 실행할 step
            nullify: step 실행 전 모든 레코드에서 비울 필드
            skip_archive: import step에서 아카이브 생략
            dry_run: True면 대상 개수만 세고 변경 없음

        Raises:
            PassAbortedError: nullify 단계에서 저장소 연결 실패
        """
        requested = {WorkflowStep(s) for s in steps}
        ordered = [step for step in WorkflowStep if step in requested]
        result = WorkflowResult(steps=ordered, dry_run=dry_run, nullified_field=nullify)

        if dry_run:
            self._require_store()
            result.preview = self.preview(ordered, nullify)
            logger.info("Workflow dry run: %s", result.preview)
            return result

        if nullify is not None:
            self._require_store()
            try:
                result.records_nullified = self.records.clear_field_all(nullify)
            except GatewayError as e:
                raise PassAbortedError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e

        runners: dict[WorkflowStep, Callable[[], PassResult]] = {
            WorkflowStep.IMPORT: lambda: self.run_import(skip_archive=skip_archive),
            WorkflowStep.CLOUD_SYNC: self.run_cloud_sync,
            WorkflowStep.REHYDRATE: self.run_rehydrate,
            WorkflowStep.EXPORT: self.run_export,
        }

        for step in ordered:
            try:
                result.results[step.value] = runners[step]()
            except PassAbortedError as e:
                logger.error("Workflow step %s aborted: %s", step.value, e)
                result.step_errors[step.value] = e.to_dict()

        logger.info(
            "Workflow finished: processed=%d failed=%d step_errors=%d",
            result.total_processed,
            result.total_failed,
            len(result.step_errors),
        )
        return result

    def preview(self, steps: Sequence[WorkflowStep], nullify: NullableField | None = None) -> dict[str, int]:
        """
        각 step이 처리할 대상 개수 (변경 없음).

        Raises:
            PassAbortedError: 저장소 조회 실패, import 폴더 읽기 실패
        """
        photos = self.settings.photos
        try:
            records = self.records.find_all()
        except GatewayError as e:
            raise PassAbortedError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e
        counts: dict[str, int] = {}

        if nullify is not None:
            counts[f"nullify_{nullify.value}"] = sum(
                1 for r in records if tier_state(r) == TierState.MIRRORED
            )

        for step in steps:
            if step == WorkflowStep.IMPORT:
                counts[step.value] = self._count_import_candidates()
            elif step == WorkflowStep.CLOUD_SYNC:
                counts[step.value] = sum(
                    1 for r in records if self._wants_cloud_sync(r, migrate=False)
                )
            elif step == WorkflowStep.REHYDRATE:
                counts[step.value] = sum(
                    1 for r in records if tier_state(r) == TierState.CLOUD_ONLY
                )
            elif step == WorkflowStep.EXPORT:
                if photos.use_incremental_export:
                    counts[step.value] = sum(1 for r in records if needs_export(r))
                else:
                    counts[step.value] = len(records)

        return counts

    def _count_import_candidates(self) -> int:
        photos = self.settings.photos
        folder = Path(photos.import_folder) if photos.import_folder else None
        if folder is None or not self.files.folder_exists(folder):
            return 0
        try:
            return len(self.files.list_candidate_files(folder, photos.allowed_extensions))
        except GatewayError as e:
            raise PassAbortedError(ErrorCodes.IMPORT_FOLDER_MISSING, folder=str(folder), cause=e) from e

    # =========================================================================
    # Status
    # =========================================================================

    def get_sync_status(self) -> SyncStatus:
        """
        저장소 전체 동기화 상태.

        Raises:
            PassAbortedError: 저장소 연결 실패
        """
        self._require_store()
        try:
            records = self.records.find_all()
        except GatewayError as e:
            raise PassAbortedError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e

        status = SyncStatus(total=len(records))
        hashes: set[str] = set()
        state_fields = {
            TierState.LOCAL_ONLY: "local_only",
            TierState.CLOUD_ONLY: "cloud_only",
            TierState.MIRRORED: "mirrored",
            TierState.INCONSISTENT: "inconsistent",
        }

        for record in records:
            field_name = state_fields[tier_state(record)]
            setattr(status, field_name, getattr(status, field_name) + 1)

            if record.exported_date is None:
                status.never_exported += 1
            elif needs_export(record):
                status.stale_exports += 1

            if record.azure_sync_required:
                status.pending_cloud_sync += 1

            if record.file_hash:
                status.with_hash += 1
                hashes.add(record.file_hash)

        status.unique_hashes = len(hashes)

        def bounds(values: list[datetime | None]) -> tuple[datetime | None, datetime | None]:
            present = [v for v in values if v is not None]
            return (min(present), max(present)) if present else (None, None)

        status.first_import, status.last_import = bounds([r.imported_date for r in records])
        status.first_export, status.last_export = bounds([r.exported_date for r in records])
        status.first_upload, status.last_upload = bounds([r.azure_uploaded_date for r in records])
        return status

    # =========================================================================
    # Run logs
    # =========================================================================

    def list_runs(self, limit: int | None = None) -> list[dict[str, Any]]:
        """
        최근 run log 목록 (최신순).

        logs_dir가 설정되지 않았으면 빈 목록. 읽을 수 없는 파일은 경고 후 건너뜀.
        """
        if not self.settings.logs_dir:
            return []
        runs: list[dict[str, Any]] = []
        for log_path in list_run_logs(Path(self.settings.logs_dir))[:limit]:
            try:
                runs.append(load_run_log(log_path))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable run log %s: %s", log_path.name, e)
        return runs

    def get_run(self, run_id: str) -> dict[str, Any]:
        """
        run log 하나.

        Raises:
            PhotoSyncError: RUN_LOG_NOT_FOUND
        """
        log_path = (
            find_run_log(Path(self.settings.logs_dir), run_id) if self.settings.logs_dir else None
        )
        if log_path is None:
            raise PhotoSyncError(ErrorCodes.RUN_LOG_NOT_FOUND, run_id=run_id)
        return load_run_log(log_path)
