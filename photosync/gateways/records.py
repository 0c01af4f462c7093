"""
관계형 tier: SQLAlchemy 기반 photos 테이블 gateway

규칙:
- code 기준 원자적 upsert (SQLite/PostgreSQL: ON CONFLICT DO UPDATE)
- 그 외 dialect: 트랜잭션 안에서 insert → IntegrityError 시 update
- created_date, source_file_name, image_source는 최초 저장 후 변경 금지
- tier bookkeeping 갱신(export/upload/clear/restore)은 modified_date를 건드리지 않음
- clear 연산은 조건부: 반대쪽 tier가 남아 있을 때만 비움
- if_unchanged: 읽은 뒤 재import로 내용이 바뀐 행에는 bookkeeping을 적용하지 않음
- SQLAlchemyError → GatewayError (항목 단위 실패)
"""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    case,
    create_engine,
    func,
    insert,
    literal,
    or_,
    select,
    text,
    true,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from photosync.domain.constants import PHOTOS_TABLE_NAME
from photosync.domain.errors import ErrorCodes, GatewayError
from photosync.domain.schemas import NullableField, PhotoRecord

logger = logging.getLogger(__name__)

metadata = MetaData()

photos_table = Table(
    PHOTOS_TABLE_NAME,
    metadata,
    Column("code", String(255), primary_key=True),
    Column("payload", LargeBinary, nullable=True),
    Column("cloud_reference", String(1024), nullable=True),
    Column("file_hash", String(128), nullable=True, index=True),
    Column("file_size", Integer, nullable=True),
    Column("created_date", DateTime(timezone=True), nullable=False),
    Column("modified_date", DateTime(timezone=True), nullable=True),
    Column("source_file_name", String(512), nullable=True),
    Column("image_source", String(1024), nullable=True),
    Column("imported_date", DateTime(timezone=True), nullable=True),
    Column("exported_date", DateTime(timezone=True), nullable=True),
    Column("azure_uploaded_date", DateTime(timezone=True), nullable=True),
    Column("photo_modified_date", DateTime(timezone=True), nullable=True),
    Column("azure_sync_required", Boolean, nullable=False, default=False),
)

_IMMUTABLE_COLUMNS = ("code", "created_date", "source_file_name", "image_source")
_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _as_utc(value: datetime | None) -> datetime | None:
    """DB에서 읽은 naive datetime → UTC aware."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _row_to_record(row: Row) -> PhotoRecord:
    data = row._mapping
    return PhotoRecord(
        code=data["code"],
        payload=bytes(data["payload"]) if data["payload"] is not None else None,
        cloud_reference=data["cloud_reference"],
        file_hash=data["file_hash"],
        file_size=data["file_size"],
        created_date=_as_utc(data["created_date"]),
        modified_date=_as_utc(data["modified_date"]),
        source_file_name=data["source_file_name"],
        image_source=data["image_source"],
        imported_date=_as_utc(data["imported_date"]),
        exported_date=_as_utc(data["exported_date"]),
        azure_uploaded_date=_as_utc(data["azure_uploaded_date"]),
        photo_modified_date=_as_utc(data["photo_modified_date"]),
        azure_sync_required=bool(data["azure_sync_required"]),
    )


def _record_values(record: PhotoRecord) -> dict[str, Any]:
    now = datetime.now(UTC)
    return {
        "code": record.code,
        "payload": record.payload,
        "cloud_reference": record.cloud_reference,
        "file_hash": record.file_hash,
        "file_size": record.file_size,
        "created_date": record.created_date or now,
        "modified_date": record.modified_date,
        "source_file_name": record.source_file_name,
        "image_source": record.image_source,
        "imported_date": record.imported_date,
        "exported_date": record.exported_date,
        "azure_uploaded_date": record.azure_uploaded_date,
        "photo_modified_date": record.photo_modified_date,
        "azure_sync_required": record.azure_sync_required,
    }


def _conflict_values(incoming: Any) -> dict[str, Any]:
    """
    기존 행 위에 덮어쓸 값.

    incoming은 insert 값 컬럼 모음 (excluded 또는 literal dict).
    내용 변경 판정: 새 해시가 없거나 기존 해시와 다름.
    """
    c = photos_table.c
    changed = or_(
        incoming["file_hash"].is_(None),
        c.file_hash.is_distinct_from(incoming["file_hash"]),
    )
    return {
        "payload": incoming["payload"],
        "file_hash": incoming["file_hash"],
        "file_size": incoming["file_size"],
        "imported_date": incoming["imported_date"],
        "modified_date": case(
            (changed, incoming["modified_date"]), else_=c.modified_date
        ),
        "photo_modified_date": case(
            (changed, incoming["photo_modified_date"]), else_=c.photo_modified_date
        ),
        "azure_sync_required": case(
            (changed, incoming["azure_sync_required"]), else_=c.azure_sync_required
        ),
    }


class SqlRecordGateway:
    """
    SQLAlchemy Core 기반 RecordGateway.

    Usage:
        records = SqlRecordGateway("sqlite:///photosync.db")
        records.upsert(PhotoRecord(code="A-100", payload=b"..."))
    """

    def __init__(
        self,
        url: str | None = None,
        engine: Engine | None = None,
        create_schema: bool = True,
    ) -> None:
        if engine is None:
            if not url:
                raise ValueError("url or engine is required")
            engine = self._create_engine(url)
        self.engine = engine
        if create_schema:
            metadata.create_all(self.engine)

    @staticmethod
    def _create_engine(url: str) -> Engine:
        if url.startswith("sqlite"):
            kwargs: dict[str, Any] = {
                "connect_args": {"timeout": 30, "check_same_thread": False},
            }
            if url in _IN_MEMORY_URLS:
                kwargs["poolclass"] = StaticPool
            return create_engine(url, **kwargs)
        return create_engine(url, pool_pre_ping=True, pool_timeout=30)

    def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # Health
    # =========================================================================

    def ping(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise GatewayError(
                ErrorCodes.STORE_UNAVAILABLE,
                url=self.engine.url.render_as_string(hide_password=True),
                cause=e,
            ) from e

    # =========================================================================
    # Upsert
    # =========================================================================

    def upsert(self, record: PhotoRecord) -> bool:
        """
        code 기준 insert-or-update.

        Returns:
            새 행을 만들었으면 True
        """
        if not record.code:
            raise GatewayError(ErrorCodes.RECORD_UPSERT_FAILED, reason="empty code")

        values = _record_values(record)
        try:
            with self.engine.begin() as conn:
                existed = self._exists(conn, record.code)
                dialect = self.engine.dialect.name
                if dialect in ("sqlite", "postgresql"):
                    self._native_upsert(conn, dialect, values)
                else:
                    self._fallback_upsert(conn, values)
        except SQLAlchemyError as e:
            raise GatewayError(
                ErrorCodes.RECORD_UPSERT_FAILED, record_code=record.code, cause=e
            ) from e

        return not existed

    def _exists(self, conn: Connection, code: str) -> bool:
        stmt = select(photos_table.c.code).where(photos_table.c.code == code)
        return conn.execute(stmt).first() is not None

    def _native_upsert(self, conn: Connection, dialect: str, values: dict[str, Any]) -> None:
        dialect_insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
        stmt = dialect_insert(photos_table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[photos_table.c.code],
            set_=_conflict_values(stmt.excluded),
        )
        conn.execute(stmt)

    def _fallback_upsert(self, conn: Connection, values: dict[str, Any]) -> None:
        try:
            with conn.begin_nested():
                conn.execute(insert(photos_table).values(**values))
            return
        except IntegrityError:
            logger.debug("Insert conflicted for %s, updating existing row", values["code"])

        incoming = {
            name: literal(value, photos_table.c[name].type)
            for name, value in values.items()
            if name not in _IMMUTABLE_COLUMNS
        }
        conn.execute(
            update(photos_table)
            .where(photos_table.c.code == values["code"])
            .values(**_conflict_values(incoming))
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def _fetch(self, stmt: Any) -> list[PhotoRecord]:
        try:
            with self.engine.connect() as conn:
                return [_row_to_record(row) for row in conn.execute(stmt)]
        except SQLAlchemyError as e:
            raise GatewayError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e

    def find_all(self) -> list[PhotoRecord]:
        return self._fetch(select(photos_table).order_by(photos_table.c.code))

    def find_by_code(self, code: str) -> PhotoRecord | None:
        rows = self._fetch(select(photos_table).where(photos_table.c.code == code))
        return rows[0] if rows else None

    def find_by_hash(self, file_hash: str) -> PhotoRecord | None:
        stmt = (
            select(photos_table)
            .where(photos_table.c.file_hash == file_hash)
            .order_by(photos_table.c.code)
            .limit(1)
        )
        rows = self._fetch(stmt)
        return rows[0] if rows else None

    def find_sync_required(self) -> list[PhotoRecord]:
        stmt = (
            select(photos_table)
            .where(photos_table.c.azure_sync_required == true())
            .order_by(photos_table.c.code)
        )
        return self._fetch(stmt)

    def count(self) -> int:
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(select(func.count()).select_from(photos_table)).scalar_one())
        except SQLAlchemyError as e:
            raise GatewayError(ErrorCodes.STORE_UNAVAILABLE, cause=e) from e

    # =========================================================================
    # Updates
    # =========================================================================

    def _execute_update(self, stmt: Any, error_code: str, **context: Any) -> int:
        try:
            with self.engine.begin() as conn:
                return int(conn.execute(stmt).rowcount or 0)
        except SQLAlchemyError as e:
            raise GatewayError(error_code, cause=e, **context) from e

    @staticmethod
    def _guard(stmt: Any, if_unchanged: PhotoRecord | None) -> Any:
        """읽은 시점 이후 내용(file_hash, modified_date)이 바뀐 행은 제외."""
        if if_unchanged is None:
            return stmt
        c = photos_table.c
        return stmt.where(
            c.file_hash.is_not_distinct_from(if_unchanged.file_hash),
            c.modified_date.is_not_distinct_from(if_unchanged.modified_date),
        )

    def _clear_statement(self, field: NullableField) -> Any:
        c = photos_table.c
        base = update(photos_table).where(c.payload.is_not(None), c.cloud_reference.is_not(None))
        if field == NullableField.PAYLOAD:
            return base.values(payload=None)
        if field == NullableField.CLOUD_REFERENCE:
            return base.values(cloud_reference=None, azure_sync_required=True)
        raise ValueError(f"Unsupported field: {field!r}")

    def clear_field(
        self,
        code: str,
        field: NullableField,
        if_unchanged: PhotoRecord | None = None,
    ) -> int:
        stmt = self._guard(
            self._clear_statement(field).where(photos_table.c.code == code), if_unchanged
        )
        return self._execute_update(
            stmt, ErrorCodes.PAYLOAD_CLEAR_FAILED, record_code=code, field=field.value
        )

    def clear_field_all(self, field: NullableField) -> int:
        cleared = self._execute_update(
            self._clear_statement(field), ErrorCodes.PAYLOAD_CLEAR_FAILED, field=field.value
        )
        logger.info("Cleared %s on %d record(s)", field.value, cleared)
        return cleared

    def mark_exported(
        self,
        code: str,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        stmt = (
            update(photos_table)
            .where(photos_table.c.code == code)
            .values(exported_date=when)
        )
        stmt = self._guard(stmt, if_unchanged)
        return self._execute_update(stmt, ErrorCodes.RECORD_UPDATE_FAILED, record_code=code) == 1

    def mark_uploaded(
        self,
        code: str,
        reference: str,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        stmt = (
            update(photos_table)
            .where(photos_table.c.code == code)
            .values(
                cloud_reference=reference,
                azure_uploaded_date=when,
                azure_sync_required=False,
            )
        )
        stmt = self._guard(stmt, if_unchanged)
        return self._execute_update(stmt, ErrorCodes.RECORD_UPDATE_FAILED, record_code=code) == 1

    def restore_payload(
        self,
        code: str,
        data: bytes,
        when: datetime,
        if_unchanged: PhotoRecord | None = None,
    ) -> bool:
        """
        cloud에서 받은 바이트를 payload로 복원.

        when은 호출 시각 기록용 (tier bookkeeping → modified_date 유지).
        """
        stmt = (
            update(photos_table)
            .where(photos_table.c.code == code)
            .values(payload=data, file_size=len(data))
        )
        stmt = self._guard(stmt, if_unchanged)
        restored = self._execute_update(stmt, ErrorCodes.RECORD_UPDATE_FAILED, record_code=code) == 1
        if restored:
            logger.debug("Restored payload for %s at %s", code, when.isoformat())
        return restored
