"""
test_api_passes.py - Passes API E2E 테스트

엔드포인트:
- GET /health
- GET /api/status
- POST /api/passes/import
- POST /api/passes/export
- POST /api/passes/cloud-sync
- POST /api/passes/rehydrate
- POST /api/passes/workflow
- GET /api/runs
- GET /api/runs/{run_id}

engine은 in-memory gateway로 미리 주입 (lifespan은 주입된 engine 유지).
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from photosync.app.main import app
from photosync.core.reconcile import ReconciliationEngine
from photosync.domain.errors import ErrorCodes, GatewayError

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def client(engine: ReconciliationEngine):
    """engine이 주입된 FastAPI TestClient."""
    app.state.engine = engine
    with TestClient(app) as client:
        yield client
    app.state.engine = None


# =============================================================================
# Root / Status
# =============================================================================


class TestRoot:
    """루트 엔드포인트."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_status(self, client, records, make_record):
        records.upsert(make_record("A-100", azure_sync_required=True))

        response = client.get("/api/status")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["local_only"] == 1
        assert data["pending_cloud_sync"] == 1

    def test_status_store_down(self, client, records):
        with patch.object(records, "ping", side_effect=GatewayError(ErrorCodes.STORE_UNAVAILABLE)):
            response = client.get("/api/status")

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == ErrorCodes.STORE_UNAVAILABLE


# =============================================================================
# Passes
# =============================================================================


class TestPassRoutes:
    """pass 실행 엔드포인트."""

    def test_import(self, client, folders, write_photo):
        write_photo(folders["import"], "A-100.jpg", b"photo-a")

        response = client.post("/api/passes/import", params={"skip_archive": True})

        assert response.status_code == 200
        data = response.json()
        assert data["operation"] == "import"
        assert data["imported"] == 1
        assert data["archived"] == 0
        assert data["ok"] is True

    def test_import_missing_folder(self, client, tmp_path):
        response = client.post("/api/passes/import", params={"folder": str(tmp_path / "missing")})

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == ErrorCodes.IMPORT_FOLDER_MISSING

    def test_export_with_codes(self, client, records, make_record):
        records.upsert(make_record("A-100"))
        records.upsert(make_record("A-101"))

        response = client.post("/api/passes/export", params=[("codes", "A-101")])

        assert response.status_code == 200
        assert response.json()["exported_files"] == ["A-101.jpg"]

    def test_cloud_sync(self, client, records, make_record):
        records.upsert(make_record("A-100", azure_sync_required=True))

        response = client.post("/api/passes/cloud-sync", params={"policy": "offload"})

        assert response.status_code == 200
        data = response.json()
        assert data["uploaded"] == 1
        assert data["offloaded"] == 1

    def test_cloud_sync_bad_policy(self, client):
        response = client.post("/api/passes/cloud-sync", params={"policy": "archive"})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == ErrorCodes.INVALID_SETTINGS

    def test_cloud_sync_blob_down(self, client, blobs):
        with patch.object(blobs, "ping", side_effect=GatewayError(ErrorCodes.BLOB_UNAVAILABLE)):
            response = client.post("/api/passes/cloud-sync")

        assert response.status_code == 503

    def test_rehydrate(self, client, records, blobs, make_record):
        ref = blobs.put("A-100.jpg", b"cloud")
        records.upsert(make_record("A-100", None, cloud_reference=ref))

        response = client.post("/api/passes/rehydrate")

        assert response.status_code == 200
        assert response.json()["restored"] == 1


class TestWorkflowRoute:
    """workflow 엔드포인트."""

    def test_workflow(self, client, folders, write_photo):
        write_photo(folders["import"], "A-100.jpg", b"photo-a")

        response = client.post(
            "/api/passes/workflow",
            params=[("steps", "export"), ("steps", "import"), ("steps", "cloud_sync")],
        )

        assert response.status_code == 200
        data = response.json()
        assert data["steps"] == ["import", "cloud_sync", "export"]
        assert data["total_processed"] == 3
        assert data["ok"] is True

    def test_workflow_dry_run(self, client, folders, write_photo):
        write_photo(folders["import"], "A-100.jpg", b"photo-a")

        response = client.post(
            "/api/passes/workflow",
            params={"steps": "import", "dry_run": True, "nullify": "payload"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["preview"] == {"nullify_payload": 0, "import": 1}
        assert (folders["import"] / "A-100.jpg").exists()

    def test_workflow_unknown_step(self, client):
        response = client.post("/api/passes/workflow", params={"steps": "upload"})

        assert response.status_code == 422

    def test_workflow_requires_steps(self, client):
        response = client.post("/api/passes/workflow")

        assert response.status_code == 422

    def test_workflow_dry_run_store_down(self, client, records):
        with patch.object(records, "find_all", side_effect=GatewayError(ErrorCodes.STORE_UNAVAILABLE)):
            response = client.post("/api/passes/workflow", params={"steps": "export", "dry_run": True})

        assert response.status_code == 503
        assert response.json()["detail"]["code"] == ErrorCodes.STORE_UNAVAILABLE


# =============================================================================
# Run logs
# =============================================================================


class TestRunRoutes:
    """run log 조회 엔드포인트."""

    def test_list_runs(self, client, records, make_record):
        records.upsert(make_record("A-100"))
        run_id = client.post("/api/passes/export").json()["run_id"]

        response = client.get("/api/runs")

        assert response.status_code == 200
        assert [run["run_id"] for run in response.json()] == [run_id]

    def test_list_runs_limit_validated(self, client):
        response = client.get("/api/runs", params={"limit": 0})

        assert response.status_code == 422

    def test_get_run(self, client):
        run_id = client.post("/api/passes/export").json()["run_id"]

        response = client.get(f"/api/runs/{run_id}")

        assert response.status_code == 200
        assert response.json()["operation"] == "export"

    def test_get_unknown_run(self, client):
        response = client.get("/api/runs/RUN-missing")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == ErrorCodes.RUN_LOG_NOT_FOUND
