"""
In-memory gateway 구현 (테스트, dry run 용)

SqlRecordGateway와 같은 규칙을 lock 하나로 보장한다.
반환 레코드는 복사본 → 호출자가 고쳐도 저장 상태는 변하지 않음.
"""

import threading
from dataclasses import replace
from datetime import UTC, datetime

from photosync.domain.errors import ErrorCodes, GatewayError
from photosync.domain.schemas import NullableField, PhotoRecord

MEMORY_BLOB_SCHEME = "memory"


class InMemoryRecordGateway:
    """dict 기반 RecordGateway."""

    def __init__(self, records: list[PhotoRecord] | None = None) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, PhotoRecord] = {}
        for record in records or []:
            self._rows[record.code] = replace(record)

    def ping(self) -> None:
        return None

    def upsert(self, record: PhotoRecord) -> bool:
        if not record.code:
            raise GatewayError(ErrorCodes.RECORD_UPSERT_FAILED, reason="empty code")

        with self._lock:
            existing = self._rows.get(record.code)
            if existing is None:
                self._rows[record.code] = replace(
                    record, created_date=record.created_date or datetime.now(UTC)
                )
                return True

            changed = record.file_hash is None or record.file_hash != existing.file_hash
            existing.payload = record.payload
            existing.file_hash = record.file_hash
            existing.file_size = record.file_size
            existing.imported_date = record.imported_date
            if changed:
                existing.modified_date = record.modified_date
                existing.photo_modified_date = record.photo_modified_date
                existing.azure_sync_required = record.azure_sync_required
            return False

    def find_all(self) -> list[PhotoRecord]:
        with self._lock:
            return [replace(self._rows[code]) for code in sorted(self._rows)]

    def find_by_code(self, code: str) -> PhotoRecord | None:
        with self._lock:
            record = self._rows.get(code)
            return replace(record) if record else None

    def find_by_hash(self, file_hash: str) -> PhotoRecord | None:
        with self._lock:
            for code in sorted(self._rows):
                if self._rows[code].file_hash == file_hash:
                    return replace(self._rows[code])
        return None

    def find_sync_required(self) -> list[PhotoRecord]:
        return [r for r in self.find_all() if r.azure_sync_required]

    def count(self) -> int:
        with self._lock:
            return len(self._rows)

    def _clear(self, record: PhotoRecord, field: NullableField) -> int:
        if not (record.has_payload and record.cloud_reference is not None):
            return 0
        if field == NullableField.PAYLOAD:
            record.payload = None
        elif field == NullableField.CLOUD_REFERENCE:
            record.cloud_reference = None
            record.azure_sync_required = True
        else:
            raise ValueError(f"Unsupported field: {field!r}")
        return 1

    def _lookup(self, code: str, if_unchanged: PhotoRecord | None) -> PhotoRecord | None:
        """lock 안에서 호출. 읽은 뒤 내용이 바뀌었으면 None."""
        record = self._rows.get(code)
        if record is None or if_unchanged is None:
            return record
        if (record.file_hash, record.modified_date) != (
            if_unchanged.file_hash,
            if_unchanged.modified_date,
        ):
            return None
        return record

    def clear_field(
        self,
        code: str,
        field: NullableField,
        if_unchanged: PhotoRecord | None = None,
    ) -> int:
        with self._lock:
            record = self._lookup(code, if_unchanged)
            return self._clear(record, field) if record else 0

    def clear_field_all(self, field: NullableField) -> int:
        with self._lock:
            return sum(self._clear(record, field) for record in self._rows.values())

    def mark_exported(
        self,
        code: str,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        with self._lock:
            record = self._lookup(code, if_unchanged)
            if record is None:
                return False
            record.exported_date = when
            return True

    def mark_uploaded(
        self,
        code: str,
        reference: str,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        with self._lock:
            record = self._lookup(code, if_unchanged)
            if record is None:
                return False
            record.cloud_reference = reference
            record.azure_uploaded_date = when
            record.azure_sync_required = False
            return True

    def restore_payload(
        self,
        code: str,
        data: bytes,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        with self._lock:
            record = self._lookup(code, if_unchanged)
            if record is None:
                return False
            record.payload = data
            record.file_size = len(data)
            return True


class InMemoryBlobGateway:
    """dict 기반 BlobGateway. reference = memory://<key>"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blobs: dict[str, bytes] = {}

    @staticmethod
    def _key(reference: str) -> str:
        prefix = f"{MEMORY_BLOB_SCHEME}://"
        return reference[len(prefix):] if reference.startswith(prefix) else reference

    def ping(self) -> None:
        return None

    def put(self, key: str, data: bytes) -> str:
        with self._lock:
            self._blobs[key] = bytes(data)
        return f"{MEMORY_BLOB_SCHEME}://{key}"

    def get(self, reference: str) -> bytes:
        with self._lock:
            data = self._blobs.get(self._key(reference))
        if data is None:
            raise GatewayError(ErrorCodes.BLOB_NOT_FOUND, reference=reference)
        return data

    def exists(self, reference: str) -> bool:
        with self._lock:
            return self._key(reference) in self._blobs

    def delete(self, reference: str) -> bool:
        with self._lock:
            return self._blobs.pop(self._key(reference), None) is not None
