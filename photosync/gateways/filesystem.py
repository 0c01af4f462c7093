"""
로컬 파일시스템 tier gateway

import 폴더 스캔, 아카이브 이동, export 파일 쓰기.
이동/쓰기 규칙은 photosync.core.files (safe_move, atomic write) 를 따른다.
"""

import logging
import os
from collections.abc import Sequence
from pathlib import Path

from photosync.core.files import atomic_write_bytes, safe_move
from photosync.domain.errors import ErrorCodes, GatewayError
from photosync.domain.schemas import MoveResult

logger = logging.getLogger(__name__)


class LocalFilesystemGateway:
    """FilesystemGateway 기본 구현."""

    def folder_exists(self, folder: Path) -> bool:
        return folder.is_dir() and os.access(folder, os.R_OK | os.X_OK)

    def list_candidate_files(self, folder: Path, extensions: Sequence[str]) -> list[Path]:
        """
        폴더 최상위의 후보 파일 목록.

        확장자는 대소문자 구분 없이 비교, 하위 폴더는 보지 않음, 이름순 정렬.
        """
        allowed = {ext.lower() for ext in extensions}
        try:
            entries = list(folder.iterdir())
        except OSError as e:
            raise GatewayError(ErrorCodes.IMPORT_FOLDER_MISSING, folder=str(folder), cause=e) from e

        files = [p for p in entries if p.is_file() and p.suffix.lower() in allowed]
        files.sort(key=lambda p: p.name)
        return files

    def read_bytes(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise GatewayError(ErrorCodes.FILE_READ_FAILED, path=str(path), cause=e) from e

    def move_to_archive(self, path: Path, archive_folder: Path) -> MoveResult:
        result = safe_move(path, archive_folder)
        if result.fsync_warning:
            logger.warning("Archived %s without fsync confirmation", path.name)
        return result

    def write_export_file(self, folder: Path, file_name: str, data: bytes) -> Path:
        target = folder / file_name
        if target.parent != folder:
            raise GatewayError(
                ErrorCodes.EXPORT_WRITE_FAILED, file_name=file_name, reason="name escapes folder"
            )
        try:
            atomic_write_bytes(target, data)
        except OSError as e:
            raise GatewayError(ErrorCodes.EXPORT_WRITE_FAILED, path=str(target), cause=e) from e
        return target

    def ensure_folder(self, folder: Path) -> None:
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise GatewayError(
                ErrorCodes.EXPORT_FOLDER_UNAVAILABLE, folder=str(folder), cause=e
            ) from e
