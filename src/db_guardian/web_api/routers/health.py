"""
Health Check Router
==================
Endpoints for health checks and readiness probes.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from db_guardian import __version__
from db_guardian.core.service import AnalysisService
from db_guardian.web_api.deps import get_service

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns OK if the service is running.
    """
    return {"status": "ok", "version": __version__}


@router.get("/ready")
def readiness_check(service: AnalysisService = Depends(get_service)):
    """
    Readiness check endpoint.
    Ready once the report store's directory can be created.
    """
    base_dir = getattr(service.artifact_store, "base_dir", None)
    if base_dir is not None:
        try:
            base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return JSONResponse(
                status_code=503, content={"status": "unavailable", "detail": str(e)}
            )
    return {"status": "ready"}
