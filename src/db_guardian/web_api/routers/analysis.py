"""
Analysis Router
===============
Endpoints for starting analysis runs and fetching their reports.
"""
import logging
from datetime import timedelta
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from db_guardian.core.service import AnalysisService
from db_guardian.errors import (
    ConfigurationError,
    GuardianError,
    ReportNotAvailableError,
    RunNotFoundError,
)
from db_guardian.model.run import AnalysisConfig, AnalysisRun, utc_now
from db_guardian.web_api.config import settings
from db_guardian.web_api.deps import get_service
from db_guardian.web_api.schemas.analysis import (
    AnalyzeRequest,
    AnalyzeResponse,
    ReportResponse,
    RunResponse,
    RunSummary,
)

_logger = logging.getLogger(__name__)

router = APIRouter()


def _run_analysis(service: AnalysisService, run_id: str, config: AnalysisConfig) -> None:
    try:
        service.analyze(run_id, config)
    except GuardianError as e:
        # Already recorded on the run as FAILED.
        _logger.warning("analysis run %s failed: %s", run_id, e)
    except Exception:
        _logger.exception("analysis run %s failed unexpectedly", run_id)


def _load_run(service: AnalysisService, run_id: str) -> AnalysisRun:
    try:
        return service.get_run(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")


def _to_response(run: AnalysisRun) -> RunResponse:
    data = run.to_dict()
    return RunResponse(
        run_id=run.run_id,
        mode=run.mode,
        status=run.status,
        started_at=run.started_at,
        completed_at=run.completed_at,
        config=data["config"],
        summary=RunSummary(**data["summary"]),
        has_report=run.has_report,
    )


@router.post("/analyze", response_model=AnalyzeResponse, status_code=202)
def start_analysis(
    request: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    service: AnalysisService = Depends(get_service),
):
    """
    Start an analysis run; the pipeline runs in the background.

    - **source**: Local path to analyze
    - **dialect**: SQL dialect (default: postgres)
    - **migration_paths**: Extra migration directories
    """
    if not Path(request.source).exists():
        raise HTTPException(status_code=404, detail=f"Path not found: {request.source}")
    try:
        config = AnalysisConfig(
            dialect=request.dialect,
            source=request.source,
            migration_paths=tuple(request.migration_paths),
            schema_path=request.schema_path,
            code_path=request.code_path,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    run_id = service.start(config, request.mode)
    background_tasks.add_task(_run_analysis, service, run_id, config)
    return AnalyzeResponse(run_id=run_id, status=service.get_run(run_id).status)


@router.get("/runs/{run_id}", response_model=RunResponse)
def get_run(run_id: str, service: AnalysisService = Depends(get_service)):
    """Fetch the run record."""
    return _to_response(_load_run(service, run_id))


@router.get("/report/{run_id}", response_model=ReportResponse)
def get_report(
    run_id: str,
    format: str = Query(default="json", description="json (inline) or url (signed link)"),
    service: AnalysisService = Depends(get_service),
):
    """
    Fetch the report of a completed run.

    - **format=json**: full report inline
    - **format=url**: signed URL valid for ``URL_TTL_MINUTES``
    """
    if format not in ("json", "url"):
        raise HTTPException(status_code=400, detail=f"Unsupported format: {format}")

    run = _load_run(service, run_id)
    response = ReportResponse(
        run_id=run.run_id,
        status=run.status,
        summary=RunSummary(**run.summary.to_dict()),
    )
    try:
        if format == "url":
            ttl = timedelta(minutes=settings.URL_TTL_MINUTES)
            response.url = service.report_url(run_id, "json", ttl)
            response.expires_at = utc_now() + ttl
        else:
            response.report = service.get_report(run_id)
    except ReportNotAvailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return response
