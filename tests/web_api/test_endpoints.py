"""
Web API Endpoint Tests
======================
Integration tests for the analysis API.

Usage:
    pip install db-guardian[api]
    pytest tests/web_api/test_endpoints.py -v
"""
import pytest
from pathlib import Path


# Skip entire module if FastAPI not installed
pytest.importorskip("fastapi")


from fastapi.testclient import TestClient

from db_guardian.core.service import AnalysisService
from db_guardian.events import NullEventSink
from db_guardian.storage import InMemoryRunStore, LocalArtifactStore
from db_guardian.web_api.deps import get_service
from db_guardian.web_api.main import app


@pytest.fixture
def service(tmp_path: Path):
    svc = AnalysisService(
        InMemoryRunStore(),
        LocalArtifactStore(tmp_path / "artifacts", "test-secret"),
        events=NullEventSink(),
    )
    yield svc
    svc.close()


@pytest.fixture
def client(service):
    """Test client wired to an in-memory service."""
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def completed_run(client, ecommerce_repo: Path) -> str:
    response = client.post("/api/analyze", json={"source": str(ecommerce_repo)})
    assert response.status_code == 202
    return response.json()["run_id"]


# ============================================================================
# HEALTH ENDPOINTS
# ============================================================================

class TestHealthEndpoint:
    """Tests for GET /health and GET /ready"""

    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data

    def test_ready(self, client, service):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        assert service.artifact_store.base_dir.is_dir()

    def test_not_ready_when_storage_unusable(self, client, service, tmp_path: Path):
        blocker = tmp_path / "blocked"
        blocker.write_text("a file")
        service.artifact_store.base_dir = blocker / "artifacts"
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"

    def test_root(self, client):
        data = client.get("/").json()
        assert data["name"] == "DB Guardian API"


# ============================================================================
# ANALYZE ENDPOINT
# ============================================================================

class TestAnalyzeEndpoint:
    """Tests for POST /api/analyze"""

    def test_accepted(self, client, ecommerce_repo: Path):
        response = client.post(
            "/api/analyze",
            json={"source": str(ecommerce_repo), "dialect": "postgres"},
        )
        assert response.status_code == 202
        data = response.json()
        assert data["run_id"]
        assert data["status"] == "STARTED"

    def test_background_run_completes(self, client, completed_run):
        # TestClient runs background tasks before returning.
        data = client.get(f"/api/runs/{completed_run}").json()
        assert data["status"] == "COMPLETED"
        assert data["has_report"] is True
        assert data["summary"]["critical_issues"] > 0
        assert data["summary"]["total_issues"] == (
            data["summary"]["critical_issues"]
            + data["summary"]["warning_issues"]
            + data["summary"]["info_issues"]
        )

    def test_missing_path_returns_404(self, client):
        response = client.post("/api/analyze", json={"source": "/nonexistent/path/xyz"})
        assert response.status_code == 404

    def test_blank_dialect_returns_400(self, client, ecommerce_repo: Path):
        response = client.post(
            "/api/analyze", json={"source": str(ecommerce_repo), "dialect": "  "}
        )
        assert response.status_code == 400

    def test_missing_source_returns_422(self, client):
        response = client.post("/api/analyze", json={})
        assert response.status_code == 422

    def test_dynamic_mode_fails_run(self, client, ecommerce_repo: Path):
        response = client.post(
            "/api/analyze", json={"source": str(ecommerce_repo), "mode": "DYNAMIC"}
        )
        run_id = response.json()["run_id"]
        assert client.get(f"/api/runs/{run_id}").json()["status"] == "FAILED"

    def test_run_without_candidates_fails(self, client, tmp_path: Path):
        empty = tmp_path / "empty"
        empty.mkdir()
        run_id = client.post("/api/analyze", json={"source": str(empty)}).json()["run_id"]
        data = client.get(f"/api/runs/{run_id}").json()
        assert data["status"] == "FAILED"
        assert data["has_report"] is False


# ============================================================================
# RUN + REPORT ENDPOINTS
# ============================================================================

class TestReportEndpoint:
    """Tests for GET /api/runs/{id} and GET /api/report/{id}"""

    def test_unknown_run_returns_404(self, client):
        assert client.get("/api/runs/nope").status_code == 404
        assert client.get("/api/report/nope").status_code == 404

    def test_inline_report(self, client, completed_run):
        response = client.get(f"/api/report/{completed_run}")
        assert response.status_code == 200
        data = response.json()
        assert data["report"]["schema_version"] == "analysis_report_v1"
        assert data["report"]["run_id"] == completed_run
        assert data["url"] is None
        assert data["summary"] == data["report"]["summary"]

    def test_signed_url(self, client, service, completed_run):
        response = client.get(f"/api/report/{completed_run}", params={"format": "url"})
        assert response.status_code == 200
        data = response.json()
        assert data["report"] is None
        assert data["expires_at"] is not None
        ref = service.artifact_store.verify_url(data["url"])
        assert ref == service.get_run(completed_run).report_ref

    def test_unsupported_format_returns_400(self, client, completed_run):
        response = client.get(f"/api/report/{completed_run}", params={"format": "pdf"})
        assert response.status_code == 400

    def test_report_of_unfinished_run_returns_409(self, client, service, ecommerce_repo: Path):
        from db_guardian.model.run import AnalysisConfig

        run_id = service.start(AnalysisConfig(dialect="postgres", source=str(ecommerce_repo)))
        response = client.get(f"/api/report/{run_id}")
        assert response.status_code == 409
