"""
Cloud blob tier gateway

구현:
- LocalBlobGateway: 로컬 디렉터리를 blob 저장소처럼 사용 (reference = file:// URI)
- AzureBlobGateway: Azure Blob Storage (reference = blob URL)

규칙:
- put은 같은 key면 덮어씀, reference(URI) 반환
- 없는 blob get → GatewayError(BLOB_NOT_FOUND)
- 일시적 전송 실패만 재시도 (storage.max_retries, retry_delay)
"""

import logging
import os
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContentSettings

from photosync.core.files import atomic_write_bytes
from photosync.core.settings import StorageSettings
from photosync.domain.constants import LOCAL_BLOB_SCHEME, STORAGE_BACKEND_AZURE
from photosync.domain.errors import ErrorCodes, GatewayError, PhotoSyncError
from photosync.utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

JPEG_CONTENT_TYPE = "image/jpeg"


# =============================================================================
# Local (file://)
# =============================================================================

class LocalBlobGateway:
    """
    로컬 디렉터리 기반 BlobGateway.

    blob은 {root}/{container}/{key} 로 저장된다.
    """

    def __init__(self, root: Path, container_name: str) -> None:
        self.container_dir = Path(root) / container_name

    def _path(self, reference: str) -> Path:
        parsed = urlparse(reference)
        if parsed.scheme != LOCAL_BLOB_SCHEME:
            raise GatewayError(
                ErrorCodes.BLOB_NOT_FOUND, reference=reference, reason="not a file:// reference"
            )
        return Path(url2pathname(parsed.path))

    def ping(self) -> None:
        try:
            self.container_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise GatewayError(
                ErrorCodes.BLOB_UNAVAILABLE, root=str(self.container_dir), cause=e
            ) from e
        if not os.access(self.container_dir, os.W_OK):
            raise GatewayError(
                ErrorCodes.BLOB_UNAVAILABLE, root=str(self.container_dir), reason="not writable"
            )

    def put(self, key: str, data: bytes) -> str:
        path = self.container_dir / key
        try:
            atomic_write_bytes(path, data)
        except OSError as e:
            raise GatewayError(ErrorCodes.BLOB_UPLOAD_FAILED, key=key, cause=e) from e
        logger.debug("Stored blob %s (%d bytes)", key, len(data))
        return path.resolve().as_uri()

    def get(self, reference: str) -> bytes:
        path = self._path(reference)
        if not path.is_file():
            raise GatewayError(ErrorCodes.BLOB_NOT_FOUND, reference=reference)
        try:
            return path.read_bytes()
        except OSError as e:
            raise GatewayError(ErrorCodes.BLOB_DOWNLOAD_FAILED, reference=reference, cause=e) from e

    def exists(self, reference: str) -> bool:
        try:
            return self._path(reference).is_file()
        except GatewayError:
            return False

    def delete(self, reference: str) -> bool:
        path = self._path(reference)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Blob not found for deletion: %s", reference)
            return False
        except OSError as e:
            raise GatewayError(ErrorCodes.BLOB_DELETE_FAILED, reference=reference, cause=e) from e
        return True


# =============================================================================
# Azure Blob Storage
# =============================================================================

_TRANSIENT_ERRORS = (ServiceRequestError, ServiceResponseError)


class AzureBlobGateway:
    """
    Azure Blob Storage 기반 BlobGateway.

    connection_string이 있으면 그것으로, 없으면 account_name +
    DefaultAzureCredential로 접속한다.
    """

    def __init__(
        self,
        container_name: str,
        connection_string: str | None = None,
        account_name: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        service_client: BlobServiceClient | None = None,
    ) -> None:
        if service_client is None:
            service_client = self._create_service_client(connection_string, account_name)
        self.container_name = container_name
        self.container = service_client.get_container_client(container_name)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        logger.info("Using container: %s", container_name)

    @staticmethod
    def _create_service_client(
        connection_string: str | None,
        account_name: str | None,
    ) -> BlobServiceClient:
        if connection_string:
            return BlobServiceClient.from_connection_string(connection_string)
        if account_name:
            return BlobServiceClient(
                account_url=f"https://{account_name}.blob.core.windows.net",
                credential=DefaultAzureCredential(),
            )
        raise PhotoSyncError(
            ErrorCodes.INVALID_SETTINGS,
            key="storage.connection_string",
            reason="provide connection_string or account_name",
        )

    def _retry(self, func, *args, **kwargs):
        return retry_with_exponential_backoff(
            func,
            *args,
            max_retries=self.max_retries,
            initial_delay=self.retry_delay,
            exceptions=_TRANSIENT_ERRORS,
            **kwargs,
        )

    def blob_name(self, reference: str) -> str:
        """
        reference(URL 또는 이름) → container 안의 blob 이름.

        https://acct.blob.core.windows.net/photos/A-100.jpg → A-100.jpg
        """
        path = urlparse(reference).path if "://" in reference else reference
        segments = [s for s in unquote(path).split("/") if s]
        if len(segments) > 1 and segments[0].lower() == self.container_name.lower():
            segments = segments[1:]
        return "/".join(segments)

    def ping(self) -> None:
        try:
            if not self._retry(self.container.exists):
                self.container.create_container()
        except ResourceExistsError:
            pass
        except AzureError as e:
            raise GatewayError(
                ErrorCodes.BLOB_UNAVAILABLE, container=self.container_name, cause=e
            ) from e
        logger.info("Azure Storage connection test successful. Container: %s", self.container_name)

    def put(self, key: str, data: bytes) -> str:
        blob = self.container.get_blob_client(key)
        try:
            self._retry(
                blob.upload_blob,
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=JPEG_CONTENT_TYPE),
            )
        except AzureError as e:
            raise GatewayError(ErrorCodes.BLOB_UPLOAD_FAILED, key=key, cause=e) from e
        logger.info("Uploaded blob %s (%d bytes)", key, len(data))
        return str(blob.url)

    def get(self, reference: str) -> bytes:
        name = self.blob_name(reference)
        blob = self.container.get_blob_client(name)
        try:
            downloader = self._retry(blob.download_blob)
            data: bytes = downloader.readall()
        except ResourceNotFoundError as e:
            raise GatewayError(ErrorCodes.BLOB_NOT_FOUND, reference=reference) from e
        except AzureError as e:
            raise GatewayError(ErrorCodes.BLOB_DOWNLOAD_FAILED, reference=reference, cause=e) from e
        return data

    def exists(self, reference: str) -> bool:
        blob = self.container.get_blob_client(self.blob_name(reference))
        try:
            return bool(self._retry(blob.exists))
        except AzureError as e:
            raise GatewayError(ErrorCodes.BLOB_DOWNLOAD_FAILED, reference=reference, cause=e) from e

    def delete(self, reference: str) -> bool:
        name = self.blob_name(reference)
        try:
            self._retry(self.container.delete_blob, name)
        except ResourceNotFoundError:
            logger.warning("Blob not found for deletion: %s", name)
            return False
        except AzureError as e:
            raise GatewayError(ErrorCodes.BLOB_DELETE_FAILED, reference=reference, cause=e) from e
        return True


# =============================================================================
# Factory
# =============================================================================

def build_blob_gateway(storage: StorageSettings) -> LocalBlobGateway | AzureBlobGateway:
    """storage.backend 설정으로 gateway 생성."""
    if storage.backend == STORAGE_BACKEND_AZURE:
        return AzureBlobGateway(
            container_name=storage.container_name,
            connection_string=storage.connection_string or None,
            account_name=storage.account_name or None,
            max_retries=storage.max_retries,
            retry_delay=storage.retry_delay,
        )
    return LocalBlobGateway(Path(storage.local_root), storage.container_name)
