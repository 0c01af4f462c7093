"""
test_reconcile_export.py - Export pass 테스트

DoD:
- incremental: 수정 시각 > export 시각 인 레코드만
- force / codes 필터
- CloudOnly → blob에서 읽어서 export
- Inconsistent → integrity_errors (failed와 별도)
- export 파일 쓰기 확인 후에만 exported_date 기록
- exported_date = 후보를 읽기 전 시각, export 중 재import된 레코드는 다시 대상
"""

from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from photosync.core.reconcile import ReconciliationEngine
from photosync.core.tiering import needs_export
from photosync.domain.errors import ErrorCodes, GatewayError, PassAbortedError

# =============================================================================
# Fatal 테스트
# =============================================================================


class TestExportFatal:
    """pass 전체 중단 조건."""

    def test_folder_not_configured(self, records, files, blobs, make_settings):
        engine = ReconciliationEngine(records, files, blobs, settings=make_settings(export_folder=""))

        with pytest.raises(PassAbortedError) as exc_info:
            engine.run_export()

        assert exc_info.value.code == ErrorCodes.EXPORT_FOLDER_UNAVAILABLE

    def test_folder_cannot_be_created(self, engine, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a folder")

        with pytest.raises(PassAbortedError) as exc_info:
            engine.run_export(blocker / "export")

        assert exc_info.value.code == ErrorCodes.EXPORT_FOLDER_UNAVAILABLE

    def test_store_unavailable(self, engine, records):
        with patch.object(
            records, "ping", side_effect=GatewayError(ErrorCodes.STORE_UNAVAILABLE)
        ):
            with pytest.raises(PassAbortedError) as exc_info:
                engine.run_export()

        assert exc_info.value.code == ErrorCodes.STORE_UNAVAILABLE


# =============================================================================
# 정상 export 테스트
# =============================================================================


class TestExportPass:
    """Export pass 동작."""

    def test_exports_local_payload(self, engine, records, folders, make_record):
        records.upsert(make_record("A-100", b"photo-a"))
        records.upsert(make_record("A-101", b"photo-b"))

        result = engine.run_export()

        assert result.found == 2
        assert result.exported == 2
        assert result.ok is True
        assert result.exported_files == ["A-100.jpg", "A-101.jpg"]
        assert (folders["export"] / "A-100.jpg").read_bytes() == b"photo-a"
        assert records.find_by_code("A-100").exported_date is not None

    def test_incremental_skips_unchanged(self, engine, records, make_record):
        """두 번째 실행 → 변경 없으면 대상 0."""
        records.upsert(make_record("A-100"))
        engine.run_export()

        second = engine.run_export()

        assert second.incremental is True
        assert second.found == 0
        assert second.exported_files == []

    def test_incremental_picks_reimported(self, engine, records, make_record, folders, write_photo):
        """export 후 내용이 바뀐 레코드만 다시 export."""
        records.upsert(make_record("A-100", b"v1"))
        records.upsert(make_record("A-101", b"other"))
        engine.run_export()

        write_photo(folders["import"], "A-100.jpg", b"v2")
        engine.run_import(skip_archive=True)
        result = engine.run_export()

        assert result.exported_files == ["A-100.jpg"]
        assert (folders["export"] / "A-100.jpg").read_bytes() == b"v2"

    def test_force_exports_all(self, engine, records, make_record):
        records.upsert(make_record("A-100"))
        engine.run_export()

        result = engine.run_export(force=True)

        assert result.incremental is False
        assert result.exported == 1

    def test_incremental_disabled_in_settings(self, records, files, blobs, make_settings, make_record):
        engine = ReconciliationEngine(
            records, files, blobs, settings=make_settings(use_incremental_export=False)
        )
        records.upsert(make_record("A-100"))
        engine.run_export()

        assert engine.run_export().exported == 1

    def test_codes_filter(self, engine, records, make_record):
        for code in ("A-100", "A-101", "A-102"):
            records.upsert(make_record(code))

        result = engine.run_export(codes=["A-101", "Z-999"])

        assert result.found == 1
        assert result.exported_files == ["A-101.jpg"]

    def test_explicit_folder(self, engine, records, make_record, tmp_path):
        records.upsert(make_record("A-100"))
        target = tmp_path / "elsewhere"

        result = engine.run_export(target)

        assert result.folder == str(target)
        assert (target / "A-100.jpg").exists()

    def test_cloud_only_read_from_blob(self, engine, records, blobs, folders, make_record):
        """payload 없는 CloudOnly → blob 내용으로 export."""
        reference = blobs.put("A-100.jpg", b"cloud-bytes")
        records.upsert(make_record("A-100", None, cloud_reference=reference))

        result = engine.run_export()

        assert result.exported == 1
        assert (folders["export"] / "A-100.jpg").read_bytes() == b"cloud-bytes"

    def test_file_name_format_with_date(self, records, files, blobs, make_settings, make_record):
        engine = ReconciliationEngine(
            records,
            files,
            blobs,
            settings=make_settings(export_file_name_format="{code}_{export_date:%Y%m%d}.jpg"),
        )
        records.upsert(make_record("A-100"))

        result = engine.run_export()

        name = result.exported_files[0]
        assert name.startswith("A-100_")
        assert len(name) == len("A-100_20240101.jpg")


# =============================================================================
# 항목 실패 / 무결성 테스트
# =============================================================================


class TestExportFailures:
    """항목 단위 실패."""

    def test_inconsistent_reported_separately(self, engine, records, make_record):
        """Inconsistent → integrity_errors, 다른 레코드는 계속."""
        records.upsert(make_record("A-100"))
        records.upsert(make_record("B-200", None))

        result = engine.run_export()

        assert result.exported == 1
        assert result.failed == 0
        assert len(result.integrity_errors) == 1
        assert result.integrity_errors[0].key == "B-200"
        assert result.integrity_errors[0].code == ErrorCodes.INCONSISTENT_RECORD
        assert result.ok is False
        assert records.find_by_code("B-200").exported_date is None

    def test_missing_blob(self, engine, records, make_record):
        records.upsert(make_record("A-100", None, cloud_reference="memory://gone.jpg"))

        result = engine.run_export()

        assert result.failed == 1
        assert result.errors[0].code == ErrorCodes.BLOB_NOT_FOUND

    def test_cloud_only_without_blob_gateway(self, records, files, settings, make_record):
        engine = ReconciliationEngine(records, files, None, settings=settings)
        records.upsert(make_record("A-100", None, cloud_reference="memory://A-100.jpg"))
        records.upsert(make_record("A-101"))

        result = engine.run_export()

        assert result.exported == 1
        assert result.failed == 1
        assert result.errors[0].code == ErrorCodes.BLOB_UNAVAILABLE

    def test_bad_file_name_format(self, records, files, blobs, make_settings, make_record):
        engine = ReconciliationEngine(
            records, files, blobs, settings=make_settings(export_file_name_format="{missing}.jpg")
        )
        records.upsert(make_record("A-100"))

        result = engine.run_export()

        assert result.failed == 1
        assert result.errors[0].code == ErrorCodes.EXPORT_WRITE_FAILED

    def test_name_escaping_folder_rejected(self, records, files, blobs, make_settings, make_record, folders):
        engine = ReconciliationEngine(
            records, files, blobs, settings=make_settings(export_file_name_format="../{code}.jpg")
        )
        records.upsert(make_record("A-100"))

        result = engine.run_export()

        assert result.failed == 1
        assert not (folders["export"].parent / "A-100.jpg").exists()

    def test_write_failure_not_marked(self, engine, records, files, make_record):
        """쓰기 실패 → exported_date 기록 안 함."""
        records.upsert(make_record("A-100"))

        with patch.object(
            files,
            "write_export_file",
            side_effect=GatewayError(ErrorCodes.EXPORT_WRITE_FAILED),
        ):
            result = engine.run_export()

        assert result.failed == 1
        assert records.find_by_code("A-100").exported_date is None

    def test_record_vanished_before_mark(self, engine, records, make_record):
        records.upsert(make_record("A-100"))

        with patch.object(records, "mark_exported", return_value=False), patch.object(
            records, "find_by_code", return_value=None
        ):
            result = engine.run_export()

        assert result.failed == 1
        assert result.errors[0].code == ErrorCodes.RECORD_NOT_FOUND

    def test_reimport_during_export_stays_due(self, engine, records, files, make_record):
        """export 중 재import → exported_date 기록 안 함, 다음 pass에서 다시 export."""
        records.upsert(make_record("A-100", b"v1"))
        original_write = files.write_export_file

        def write_then_reimport(folder, file_name, data):
            written = original_write(folder, file_name, data)
            records.upsert(make_record("A-100", b"v2", modified_date=datetime.now(UTC)))
            return written

        with patch.object(files, "write_export_file", side_effect=write_then_reimport):
            result = engine.run_export()
        record = records.find_by_code("A-100")

        assert result.succeeded == 1
        assert result.warnings[0].code == ErrorCodes.RECORD_CHANGED
        assert record.exported_date is None
        assert needs_export(record) is True

    def test_exported_date_within_pass(self, engine, records, make_record):
        records.upsert(make_record("A-100"))
        before = datetime.now(UTC)

        engine.run_export()
        after = datetime.now(UTC)
        exported = records.find_by_code("A-100").exported_date

        assert before <= exported <= after
        assert needs_export(records.find_by_code("A-100")) is False
