"""
설정 로드: default.yaml → SyncSettings (불변)

규칙:
- 전역 mutable 설정 금지 → pass 호출마다 SyncSettings 값을 명시적으로 전달
- override dict는 YAML 위에 deep-merge
- 잘못된 값은 INVALID_SETTINGS로 즉시 실패
"""

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from photosync.domain.constants import (
    DEFAULT_CONTAINER_NAME,
    DEFAULT_DATABASE_URL,
    DEFAULT_EXPORT_FILE_NAME_FORMAT,
    DEFAULT_MAX_ERROR_DETAILS,
    DEFAULT_MAX_PARALLEL_OPERATIONS,
    PHOTO_ALLOWED_EXTENSIONS,
    STORAGE_BACKEND_LOCAL,
    STORAGE_BACKENDS,
    TIERING_POLICIES,
    TIERING_POLICY_MIRROR,
)
from photosync.domain.errors import ErrorCodes, PhotoSyncError

AZURE_CONNECTION_STRING_ENV = "PHOTOSYNC_AZURE_CONNECTION_STRING"


@dataclass(frozen=True)
class PhotoSettings:
    """import/export 관련 설정."""
    import_folder: str = ""
    export_folder: str = ""
    archive_folder: str = ""
    allowed_extensions: tuple[str, ...] = PHOTO_ALLOWED_EXTENSIONS
    enable_auto_archive: bool = True
    archive_duplicates: bool = True
    enable_duplicate_check: bool = True
    track_file_hash: bool = True
    use_incremental_export: bool = True
    export_file_name_format: str = DEFAULT_EXPORT_FILE_NAME_FORMAT
    max_parallel_operations: int = DEFAULT_MAX_PARALLEL_OPERATIONS
    max_error_details: int = DEFAULT_MAX_ERROR_DETAILS


@dataclass(frozen=True)
class StorageSettings:
    """cloud tier 설정."""
    backend: str = STORAGE_BACKEND_LOCAL  # local, azure
    local_root: str = "blobs"
    connection_string: str = ""
    account_name: str = ""
    container_name: str = DEFAULT_CONTAINER_NAME
    tiering_policy: str = TIERING_POLICY_MIRROR  # mirror, offload
    max_retries: int = 3
    retry_delay: float = 1.0


@dataclass(frozen=True)
class SyncSettings:
    """pass 실행에 필요한 전체 설정."""
    database_url: str = DEFAULT_DATABASE_URL
    photos: PhotoSettings = field(default_factory=PhotoSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logs_dir: str | None = None


# =============================================================================
# Loading
# =============================================================================

def default_config_path() -> Path:
    """프로젝트 루트의 default.yaml."""
    return Path(__file__).parent.parent.parent / "default.yaml"


def _deep_merge(base: dict, overrides: dict) -> dict:
    """overrides를 base 위에 재귀적으로 병합 (base는 변경하지 않음)."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """설정 파일 로드 (없으면 빈 dict)."""
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[str, Any] | None = yaml.safe_load(f)
        return data or {}


def _normalize_extensions(values: Any) -> tuple[str, ...]:
    extensions = []
    for value in values or PHOTO_ALLOWED_EXTENSIONS:
        ext = str(value).lower()
        if not ext.startswith("."):
            ext = f".{ext}"
        extensions.append(ext)
    return tuple(extensions)


def settings_from_dict(config: dict[str, Any]) -> SyncSettings:
    """
    설정 dict → SyncSettings.

    Args:
        config: YAML과 같은 구조의 dict

    Returns:
        SyncSettings

    Raises:
        PhotoSyncError: INVALID_SETTINGS
    """
    photos_cfg = config.get("photos", {}) or {}
    storage_cfg = config.get("storage", {}) or {}
    database_cfg = config.get("database", {}) or {}
    paths_cfg = config.get("paths", {}) or {}

    defaults = PhotoSettings()
    photos = PhotoSettings(
        import_folder=photos_cfg.get("import_folder", defaults.import_folder) or "",
        export_folder=photos_cfg.get("export_folder", defaults.export_folder) or "",
        archive_folder=photos_cfg.get("archive_folder", defaults.archive_folder) or "",
        allowed_extensions=_normalize_extensions(photos_cfg.get("allowed_extensions")),
        enable_auto_archive=bool(photos_cfg.get("enable_auto_archive", defaults.enable_auto_archive)),
        archive_duplicates=bool(photos_cfg.get("archive_duplicates", defaults.archive_duplicates)),
        enable_duplicate_check=bool(
            photos_cfg.get("enable_duplicate_check", defaults.enable_duplicate_check)
        ),
        track_file_hash=bool(photos_cfg.get("track_file_hash", defaults.track_file_hash)),
        use_incremental_export=bool(
            photos_cfg.get("use_incremental_export", defaults.use_incremental_export)
        ),
        export_file_name_format=photos_cfg.get(
            "export_file_name_format", defaults.export_file_name_format
        ) or defaults.export_file_name_format,
        max_parallel_operations=int(
            photos_cfg.get("max_parallel_operations", defaults.max_parallel_operations)
        ),
        max_error_details=int(photos_cfg.get("max_error_details", defaults.max_error_details)),
    )

    storage_defaults = StorageSettings()
    storage = StorageSettings(
        backend=storage_cfg.get("backend", storage_defaults.backend),
        local_root=storage_cfg.get("local_root", storage_defaults.local_root),
        connection_string=(
            storage_cfg.get("connection_string")
            or os.environ.get(AZURE_CONNECTION_STRING_ENV, "")
        ),
        account_name=storage_cfg.get("account_name", storage_defaults.account_name) or "",
        container_name=storage_cfg.get("container_name", storage_defaults.container_name),
        tiering_policy=storage_cfg.get("tiering_policy", storage_defaults.tiering_policy),
        max_retries=int(storage_cfg.get("max_retries", storage_defaults.max_retries)),
        retry_delay=float(storage_cfg.get("retry_delay", storage_defaults.retry_delay)),
    )

    settings = SyncSettings(
        database_url=database_cfg.get("url", DEFAULT_DATABASE_URL),
        photos=photos,
        storage=storage,
        logs_dir=paths_cfg.get("logs_dir"),
    )
    validate_settings(settings)
    return settings


def validate_settings(settings: SyncSettings) -> None:
    """
    설정값 검증.

    Raises:
        PhotoSyncError: INVALID_SETTINGS
    """
    photos = settings.photos
    storage = settings.storage

    if photos.max_parallel_operations < 1:
        raise PhotoSyncError(
            ErrorCodes.INVALID_SETTINGS,
            key="photos.max_parallel_operations",
            value=photos.max_parallel_operations,
        )
    if photos.max_error_details < 0:
        raise PhotoSyncError(
            ErrorCodes.INVALID_SETTINGS,
            key="photos.max_error_details",
            value=photos.max_error_details,
        )
    if storage.tiering_policy not in TIERING_POLICIES:
        raise PhotoSyncError(
            ErrorCodes.INVALID_SETTINGS,
            key="storage.tiering_policy",
            value=storage.tiering_policy,
            allowed=list(TIERING_POLICIES),
        )
    if storage.backend not in STORAGE_BACKENDS:
        raise PhotoSyncError(
            ErrorCodes.INVALID_SETTINGS,
            key="storage.backend",
            value=storage.backend,
            allowed=list(STORAGE_BACKENDS),
        )
    if storage.max_retries < 0:
        raise PhotoSyncError(
            ErrorCodes.INVALID_SETTINGS,
            key="storage.max_retries",
            value=storage.max_retries,
        )


def load_settings(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SyncSettings:
    """
    YAML 설정 + override → SyncSettings.

    Args:
        config_path: 설정 파일 경로 (None이면 default.yaml)
        overrides: YAML 위에 병합할 dict

    Returns:
        SyncSettings
    """
    config = load_config(config_path)
    if overrides:
        config = _deep_merge(config, overrides)
    return settings_from_dict(config)
