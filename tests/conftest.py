"""
Pytest fixtures for the photosync tests.

구성:
- 경로: import / export / archive / blob / logs 폴더 (tmp_path 아래)
- 설정: 테스트 폴더를 가리키는 SyncSettings
- gateway: in-memory records/blobs + 로컬 파일시스템
- engine: 위 gateway로 만든 ReconciliationEngine
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import yaml

from photosync.core.hashing import compute_fingerprint
from photosync.core.reconcile import ReconciliationEngine
from photosync.core.settings import SyncSettings, settings_from_dict
from photosync.domain.schemas import PhotoRecord
from photosync.gateways.filesystem import LocalFilesystemGateway
from photosync.gateways.memory import InMemoryBlobGateway, InMemoryRecordGateway

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def folders(tmp_path: Path) -> dict[str, Path]:
    """import / export / archive / blobs / logs 폴더."""
    paths = {
        "import": tmp_path / "import",
        "export": tmp_path / "export",
        "archive": tmp_path / "archive",
        "blobs": tmp_path / "blobs",
        "logs": tmp_path / "logs",
    }
    paths["import"].mkdir()
    return paths


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def make_settings(folders: dict[str, Path]) -> Callable[..., SyncSettings]:
    """
    테스트 폴더를 가리키는 SyncSettings 생성기.

    Usage:
        settings = make_settings(enable_duplicate_check=False)
        settings = make_settings(storage={"tiering_policy": "offload"})
    """
    def factory(storage: dict[str, Any] | None = None, **photos: Any) -> SyncSettings:
        config = {
            "database": {"url": "sqlite://"},
            "photos": {
                "import_folder": str(folders["import"]),
                "export_folder": str(folders["export"]),
                "archive_folder": str(folders["archive"]),
                "max_parallel_operations": 4,
                **photos,
            },
            "storage": {
                "backend": "local",
                "local_root": str(folders["blobs"]),
                "container_name": "photos",
                "tiering_policy": "mirror",
                **(storage or {}),
            },
            "paths": {"logs_dir": str(folders["logs"])},
        }
        return settings_from_dict(config)

    return factory


@pytest.fixture
def settings(make_settings: Callable[..., SyncSettings]) -> SyncSettings:
    """기본 테스트 설정 (duplicate check, archive, mirror)."""
    return make_settings()


# =============================================================================
# Gateway / Engine Fixtures
# =============================================================================

@pytest.fixture
def records() -> InMemoryRecordGateway:
    return InMemoryRecordGateway()


@pytest.fixture
def blobs() -> InMemoryBlobGateway:
    return InMemoryBlobGateway()


@pytest.fixture
def files() -> LocalFilesystemGateway:
    return LocalFilesystemGateway()


@pytest.fixture
def engine(
    records: InMemoryRecordGateway,
    files: LocalFilesystemGateway,
    blobs: InMemoryBlobGateway,
    settings: SyncSettings,
) -> ReconciliationEngine:
    """in-memory gateway 기반 엔진."""
    return ReconciliationEngine(records, files, blobs, settings=settings)


# =============================================================================
# Data Helpers
# =============================================================================

@pytest.fixture
def write_photo() -> Callable[[Path, str, bytes], Path]:
    """폴더에 사진 파일 생성."""
    def factory(folder: Path, name: str, content: bytes) -> Path:
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        path.write_bytes(content)
        return path

    return factory


@pytest.fixture
def make_record() -> Callable[..., PhotoRecord]:
    """
    테스트용 PhotoRecord 생성기.

    기본값: LocalOnly, 1시간 전 import, export 이력 없음
    """
    def factory(code: str = "A-100", payload: bytes | None = b"jpeg-bytes", **overrides: Any) -> PhotoRecord:
        earlier = datetime.now(UTC) - timedelta(hours=1)
        values: dict[str, Any] = {
            "code": code,
            "payload": payload,
            "file_hash": compute_fingerprint(payload) if payload is not None else None,
            "file_size": len(payload) if payload is not None else None,
            "created_date": earlier,
            "modified_date": earlier,
            "imported_date": earlier,
            "photo_modified_date": earlier,
            "source_file_name": f"{code}.jpg",
        }
        values.update(overrides)
        return PhotoRecord(**values)

    return factory
