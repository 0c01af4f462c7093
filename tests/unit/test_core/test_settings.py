"""
test_settings.py - 설정 로드 테스트

DoD:
- default.yaml → SyncSettings
- override deep-merge
- 잘못된 값 → INVALID_SETTINGS
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest
import yaml

from photosync.core.settings import (
    AZURE_CONNECTION_STRING_ENV,
    SyncSettings,
    load_settings,
    settings_from_dict,
)
from photosync.domain.errors import ErrorCodes, PhotoSyncError


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """테스트용 설정 파일."""
    config = {
        "database": {"url": "sqlite:///test.db"},
        "photos": {
            "import_folder": "in",
            "allowed_extensions": ["JPG", ".jpeg"],
            "max_parallel_operations": 8,
        },
        "storage": {"tiering_policy": "offload"},
    }
    path = tmp_path / "config.yaml"
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(config, f)
    return path


class TestLoadSettings:
    """load_settings 함수 테스트."""

    def test_default_yaml(self, default_config_path: Path):
        """프로젝트 default.yaml 로드."""
        settings = load_settings(default_config_path)

        assert settings.photos.max_parallel_operations == 4
        assert settings.photos.max_error_details == 100
        assert settings.photos.allowed_extensions == (".jpg", ".jpeg")
        assert settings.storage.tiering_policy == "mirror"
        assert settings.photos.export_file_name_format == "{code}.jpg"

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        settings = load_settings(tmp_path / "missing.yaml")

        assert settings == SyncSettings()

    def test_values_from_file(self, config_file: Path):
        settings = load_settings(config_file)

        assert settings.database_url == "sqlite:///test.db"
        assert settings.photos.import_folder == "in"
        assert settings.photos.max_parallel_operations == 8
        assert settings.storage.tiering_policy == "offload"

    def test_extensions_normalized(self, config_file: Path):
        """소문자 + 점 접두어."""
        settings = load_settings(config_file)

        assert settings.photos.allowed_extensions == (".jpg", ".jpeg")

    def test_overrides_deep_merge(self, config_file: Path):
        """override는 해당 키만 바꾸고 나머지 유지."""
        settings = load_settings(config_file, {"photos": {"max_parallel_operations": 2}})

        assert settings.photos.max_parallel_operations == 2
        assert settings.photos.import_folder == "in"

    def test_frozen(self, config_file: Path):
        """설정은 불변."""
        settings = load_settings(config_file)

        with pytest.raises(FrozenInstanceError):
            settings.photos.max_parallel_operations = 1  # type: ignore[misc]

    def test_connection_string_from_env(self, monkeypatch):
        monkeypatch.setenv(AZURE_CONNECTION_STRING_ENV, "UseDevelopmentStorage=true")

        settings = settings_from_dict({"storage": {"backend": "azure"}})

        assert settings.storage.connection_string == "UseDevelopmentStorage=true"


class TestValidation:
    """설정 검증 테스트."""

    @pytest.mark.parametrize(
        ("config", "key"),
        [
            ({"photos": {"max_parallel_operations": 0}}, "photos.max_parallel_operations"),
            ({"photos": {"max_error_details": -1}}, "photos.max_error_details"),
            ({"storage": {"tiering_policy": "archive"}}, "storage.tiering_policy"),
            ({"storage": {"backend": "s3"}}, "storage.backend"),
            ({"storage": {"max_retries": -1}}, "storage.max_retries"),
        ],
    )
    def test_invalid_values(self, config: dict, key: str):
        with pytest.raises(PhotoSyncError) as exc_info:
            settings_from_dict(config)

        assert exc_info.value.code == ErrorCodes.INVALID_SETTINGS
        assert exc_info.value.context["key"] == key
