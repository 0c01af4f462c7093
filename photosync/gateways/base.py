"""
Tier gateway 인터페이스.

엔진은 이 Protocol에만 의존한다 (SQLAlchemy, Azure SDK, 파일시스템 세부사항 모름).
구현은 항목 단위 실패를 GatewayError(code, ...)로 던진다.
"""

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from photosync.domain.schemas import MoveResult, NullableField, PhotoRecord


@runtime_checkable
class RecordGateway(Protocol):
    """관계형 tier (photos 테이블)."""

    def ping(self) -> None:
        """연결 확인. 실패 시 GatewayError."""
        ...

    def upsert(self, record: PhotoRecord) -> bool:
        """code 기준 원자적 insert-or-update. 새로 만들었으면 True."""
        ...

    def find_all(self) -> list[PhotoRecord]:
        ...

    def find_by_code(self, code: str) -> PhotoRecord | None:
        ...

    def find_by_hash(self, file_hash: str) -> PhotoRecord | None:
        ...

    def find_sync_required(self) -> list[PhotoRecord]:
        """azure_sync_required가 켜진 레코드."""
        ...

    def count(self) -> int:
        ...

    def clear_field(
        self,
        code: str,
        field: NullableField,
        if_unchanged: PhotoRecord | None = None,
    ) -> int:
        """
        한 레코드의 필드를 비움.

        다른 쪽 tier가 남아 있을 때만 비운다 (Inconsistent 생성 금지).
        if_unchanged가 있으면 그 레코드를 읽은 뒤 file_hash / modified_date가
        바뀐 행은 건드리지 않는다.
        변경된 행 수 반환.
        """
        ...

    def clear_field_all(self, field: NullableField) -> int:
        """clear_field를 조건에 맞는 모든 레코드에 적용."""
        ...

    def mark_exported(
        self,
        code: str,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        ...

    def mark_uploaded(
        self,
        code: str,
        reference: str,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        """cloud_reference, azure_uploaded_date 기록 + sync 플래그 해제."""
        ...

    def restore_payload(
        self,
        code: str,
        data: bytes,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        ...


@runtime_checkable
class BlobGateway(Protocol):
    """cloud blob tier."""

    def ping(self) -> None:
        ...

    def put(self, key: str, data: bytes) -> str:
        """저장 후 reference(URI) 반환."""
        ...

    def get(self, reference: str) -> bytes:
        ...

    def exists(self, reference: str) -> bool:
        ...

    def delete(self, reference: str) -> bool:
        ...


@runtime_checkable
class FilesystemGateway(Protocol):
    """로컬 파일시스템 tier (import/archive/export 폴더)."""

    def folder_exists(self, folder: Path) -> bool:
        ...

    def list_candidate_files(self, folder: Path, extensions: Sequence[str]) -> list[Path]:
        ...

    def read_bytes(self, path: Path) -> bytes:
        ...

    def move_to_archive(self, path: Path, archive_folder: Path) -> MoveResult:
        ...

    def write_export_file(self, folder: Path, file_name: str, data: bytes) -> Path:
        ...

    def ensure_folder(self, folder: Path) -> None:
        ...
