"""
Tiering 상태 판정: PhotoRecord → TierState / RequiredAction

규칙:
- 순수 함수만 (I/O 없음, 레코드 변경 없음)
- 상태는 payload / cloud_reference 존재 여부로만 결정
- Inconsistent → REPORT_INTEGRITY, 자동 복구 금지
- export 대상 여부(needs_export)는 저장하지 않고 매번 계산
"""

from datetime import datetime

from photosync.domain.errors import DataIntegrityError
from photosync.domain.schemas import (
    Classification,
    PhotoRecord,
    RequiredAction,
    TierState,
)


def tier_state(record: PhotoRecord) -> TierState:
    """payload / cloud_reference 존재 여부 → TierState."""
    if record.has_payload and record.has_cloud_copy:
        return TierState.MIRRORED
    if record.has_payload:
        return TierState.LOCAL_ONLY
    if record.has_cloud_copy:
        return TierState.CLOUD_ONLY
    return TierState.INCONSISTENT


def classify(record: PhotoRecord, migrate: bool = False) -> Classification:
    """
    레코드 상태와 다음 액션 판정.

    - Inconsistent → REPORT_INTEGRITY
    - LocalOnly/Mirrored + azure_sync_required → UPLOAD
    - LocalOnly (플래그 없음) → migrate 모드에서만 UPLOAD
    - 그 외 → NONE

    Args:
        record: 판정할 레코드
        migrate: 업로드 이력이 없는 LocalOnly도 업로드 대상으로 볼지

    Returns:
        Classification
    """
    state = tier_state(record)

    if state == TierState.INCONSISTENT:
        return Classification(state, RequiredAction.REPORT_INTEGRITY)

    if state in (TierState.LOCAL_ONLY, TierState.MIRRORED) and record.azure_sync_required:
        return Classification(state, RequiredAction.UPLOAD)

    if state == TierState.LOCAL_ONLY and migrate:
        return Classification(state, RequiredAction.UPLOAD)

    return Classification(state, RequiredAction.NONE)


def ensure_consistent(record: PhotoRecord) -> TierState:
    """
    Inconsistent 레코드면 DataIntegrityError.

    Returns:
        TierState (Inconsistent 제외)

    Raises:
        DataIntegrityError: payload도 cloud_reference도 없음
    """
    state = tier_state(record)
    if state == TierState.INCONSISTENT:
        raise DataIntegrityError(
            record.code,
            message="record has neither payload nor cloud reference",
        )
    return state


def needs_cloud_sync(record: PhotoRecord, migrate: bool = False) -> bool:
    """업로드 대상인지 (classify 결과가 UPLOAD)."""
    return classify(record, migrate=migrate).required_action == RequiredAction.UPLOAD


def _is_newer(value: datetime | None, reference: datetime) -> bool:
    return value is not None and value > reference


def needs_export(record: PhotoRecord) -> bool:
    """
    export 대상 여부.

    - exported_date 없음 → 대상
    - modified_date 또는 photo_modified_date가 exported_date보다 늦음 → 대상
    - 같은 시각은 대상 아님
    """
    exported = record.exported_date
    if exported is None:
        return True
    return _is_newer(record.modified_date, exported) or _is_newer(
        record.photo_modified_date, exported
    )
