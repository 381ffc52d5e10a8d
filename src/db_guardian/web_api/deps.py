"""
Service Wiring
==============
One ``AnalysisService`` per process, built from ``settings``.  Tests swap
it out through ``app.dependency_overrides[get_service]``.
"""
from functools import lru_cache
from pathlib import Path

from db_guardian.core.service import AnalysisService
from db_guardian.storage import JsonRunStore, LocalArtifactStore
from db_guardian.web_api.config import settings


@lru_cache(maxsize=1)
def get_service() -> AnalysisService:
    return AnalysisService(
        JsonRunStore(Path(settings.RUNS_DIR)),
        LocalArtifactStore(Path(settings.REPORTS_DIR), settings.URL_SECRET),
    )
