"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uvicorn photosync.app.main:app --reload
- 프로덕션: uvicorn photosync.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from photosync import __version__
from photosync.app.routes import passes
from photosync.core.reconcile import ReconciliationEngine
from photosync.core.settings import load_settings
from photosync.gateways import build_gateways

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, gateway/engine 생성 (이미 주입된 engine이 있으면 유지)
    종료 시: DB 연결 정리
    """
    # Startup
    owned_records = None
    if getattr(app.state, "engine", None) is None:
        settings = load_settings()
        records, files, blobs = build_gateways(settings)
        app.state.settings = settings
        app.state.engine = ReconciliationEngine(records, files, blobs, settings=settings)
        owned_records = records
        logger.info("Engine ready (database=%s, storage=%s)",
                    records.engine.url.render_as_string(hide_password=True),
                    settings.storage.backend)

    yield

    # Shutdown
    if owned_records is not None:
        owned_records.close()
        app.state.engine = None


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Photo Tier Sync",
    description="파일시스템 / photos 테이블 / cloud blob 사이의 사진 동기화",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Routes
# =============================================================================

app.include_router(passes.api_router, prefix="/api", tags=["Passes API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    """엔드포인트 안내."""
    return {
        "message": "Photo Tier Sync",
        "endpoints": {
            "status": "/api/status",
            "passes": "/api/passes/{import,export,cloud-sync,rehydrate,workflow}",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "photosync.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
