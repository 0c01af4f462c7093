"""
Pass Routes: 동기화 pass 실행 및 상태 조회.

- GET  /api/status → 저장소 동기화 상태
- POST /api/passes/import → Import pass
- POST /api/passes/export → Export pass
- POST /api/passes/cloud-sync → Cloud-Sync pass
- POST /api/passes/rehydrate → Rehydrate pass
- POST /api/passes/workflow → 여러 pass 순서대로
- GET  /api/runs → 최근 run log 목록
- GET  /api/runs/{run_id} → run log 하나

pass는 블로킹 I/O → 동기 핸들러 (FastAPI threadpool에서 실행)
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from photosync.core.reconcile import ReconciliationEngine
from photosync.domain.errors import ErrorCodes, PassAbortedError, PhotoSyncError
from photosync.domain.schemas import NullableField, WorkflowStep

logger = logging.getLogger(__name__)

api_router = APIRouter()

# 연결 계열 → 503, 그 외 pass 치명 에러 → 409
_UNAVAILABLE_CODES = {ErrorCodes.STORE_UNAVAILABLE, ErrorCodes.BLOB_UNAVAILABLE}


def get_engine(request: Request) -> ReconciliationEngine:
    """Request에서 engine 가져오기."""
    engine: ReconciliationEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


def _http_error(error: PhotoSyncError) -> HTTPException:
    """PhotoSyncError → HTTPException."""
    logger.warning("Pass request rejected: %s", error)
    if error.code == ErrorCodes.RUN_LOG_NOT_FOUND:
        status_code = 404
    elif isinstance(error, PassAbortedError):
        status_code = 503 if error.code in _UNAVAILABLE_CODES else 409
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail=error.to_dict())


# =============================================================================
# Status
# =============================================================================

@api_router.get("/status")
def sync_status(request: Request) -> dict[str, Any]:
    """저장소 전체 동기화 상태."""
    engine = get_engine(request)
    try:
        return engine.get_sync_status().to_dict()
    except PhotoSyncError as e:
        raise _http_error(e) from e


# =============================================================================
# Passes
# =============================================================================

@api_router.post("/passes/import")
def run_import(
    request: Request,
    folder: str | None = Query(None),
    skip_archive: bool = Query(False),
) -> dict[str, Any]:
    """
    Import pass 실행.

    Args:
        folder: import 폴더 (없으면 설정값)
        skip_archive: 아카이브 이동 생략

    Returns:
        ImportResult
    """
    engine = get_engine(request)
    try:
        return engine.run_import(folder, skip_archive=skip_archive).to_dict()
    except PhotoSyncError as e:
        raise _http_error(e) from e


@api_router.post("/passes/export")
def run_export(
    request: Request,
    folder: str | None = Query(None),
    force: bool = Query(False),
    codes: list[str] | None = Query(None),
) -> dict[str, Any]:
    """Export pass 실행 (force=True면 전체)."""
    engine = get_engine(request)
    try:
        return engine.run_export(folder, force=force, codes=codes).to_dict()
    except PhotoSyncError as e:
        raise _http_error(e) from e


@api_router.post("/passes/cloud-sync")
def run_cloud_sync(
    request: Request,
    migrate: bool = Query(False),
    policy: str | None = Query(None),
) -> dict[str, Any]:
    """Cloud-Sync pass 실행."""
    engine = get_engine(request)
    try:
        return engine.run_cloud_sync(migrate=migrate, policy=policy).to_dict()
    except PhotoSyncError as e:
        raise _http_error(e) from e


@api_router.post("/passes/rehydrate")
def run_rehydrate(
    request: Request,
    codes: list[str] | None = Query(None),
) -> dict[str, Any]:
    """Rehydrate pass 실행."""
    engine = get_engine(request)
    try:
        return engine.run_rehydrate(codes=codes).to_dict()
    except PhotoSyncError as e:
        raise _http_error(e) from e


@api_router.post("/passes/workflow")
def run_workflow(
    request: Request,
    steps: list[WorkflowStep] = Query(...),
    nullify: NullableField | None = Query(None),
    skip_archive: bool = Query(False),
    dry_run: bool = Query(False),
) -> dict[str, Any]:
    """
    여러 pass를 import → cloud_sync → rehydrate → export 순서로 실행.

    step별 치명 에러는 응답의 step_errors에 포함 (HTTP 에러 아님).
    """
    engine = get_engine(request)
    try:
        result = engine.run_workflow(
            steps, nullify=nullify, skip_archive=skip_archive, dry_run=dry_run
        )
    except PhotoSyncError as e:
        raise _http_error(e) from e
    return result.to_dict()


# =============================================================================
# Run logs
# =============================================================================

@api_router.get("/runs")
def list_runs(
    request: Request,
    limit: int = Query(20, ge=1, le=500),
) -> list[dict[str, Any]]:
    """최근 pass run log 목록 (최신순)."""
    return get_engine(request).list_runs(limit)


@api_router.get("/runs/{run_id}")
def get_run(request: Request, run_id: str) -> dict[str, Any]:
    """run log 하나 (없으면 404)."""
    engine = get_engine(request)
    try:
        return engine.get_run(run_id)
    except PhotoSyncError as e:
        raise _http_error(e) from e
