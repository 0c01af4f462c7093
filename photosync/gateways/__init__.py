"""
Gateways: tier별 I/O 구현.

- records: photos 테이블 (SQLAlchemy)
- blobs: cloud blob (로컬 디렉터리 / Azure Blob Storage)
- filesystem: import/archive/export 폴더
- memory: 테스트용 in-memory 구현
"""

from photosync.core.settings import SyncSettings

from .base import BlobGateway, FilesystemGateway, RecordGateway
from .blobs import AzureBlobGateway, LocalBlobGateway, build_blob_gateway
from .filesystem import LocalFilesystemGateway
from .memory import InMemoryBlobGateway, InMemoryRecordGateway
from .records import SqlRecordGateway


def build_gateways(
    settings: SyncSettings,
) -> tuple[SqlRecordGateway, LocalFilesystemGateway, BlobGateway]:
    """설정으로 (records, files, blobs) 생성."""
    return (
        SqlRecordGateway(settings.database_url),
        LocalFilesystemGateway(),
        build_blob_gateway(settings.storage),
    )


__all__ = [
    "RecordGateway",
    "BlobGateway",
    "FilesystemGateway",
    "SqlRecordGateway",
    "LocalBlobGateway",
    "AzureBlobGateway",
    "LocalFilesystemGateway",
    "InMemoryRecordGateway",
    "InMemoryBlobGateway",
    "build_blob_gateway",
    "build_gateways",
]
