"""
Analysis Schemas
================
Request and response models for analysis endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from db_guardian.model import AnalysisMode, AnalysisStatus


class AnalyzeRequest(BaseModel):
    """Request to start an analysis run"""

    source: str = Field(..., description="Local path of the source tree to analyze")
    dialect: str = Field(default="postgres", description="SQL dialect")
    mode: AnalysisMode = Field(default=AnalysisMode.STATIC)
    migration_paths: List[str] = Field(default_factory=list)
    schema_path: Optional[str] = Field(default=None)
    code_path: Optional[str] = Field(default=None)

    class Config:
        json_schema_extra = {
            "example": {
                "source": "/path/to/repo",
                "dialect": "postgres",
                "mode": "STATIC",
                "migration_paths": ["/path/to/repo/db/migrations"],
            }
        }


class AnalyzeResponse(BaseModel):
    """Accepted analysis run"""

    run_id: str
    status: AnalysisStatus


class RunSummary(BaseModel):
    """Issue and coverage counters of a run"""

    total_issues: int = Field(default=0)
    critical_issues: int = Field(default=0)
    warning_issues: int = Field(default=0)
    info_issues: int = Field(default=0)
    files_analyzed: int = Field(default=0)
    queries_analyzed: int = Field(default=0)


class RunResponse(BaseModel):
    """Run record"""

    run_id: str
    mode: AnalysisMode
    status: AnalysisStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    summary: RunSummary
    has_report: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "run_id": "2f1d6c4e-8b1f-4c39-9f55-0c8e3b9e7a10",
                "mode": "STATIC",
                "status": "COMPLETED",
                "started_at": "2026-01-31T12:00:00+00:00",
                "completed_at": "2026-01-31T12:00:04+00:00",
                "config": {"dialect": "postgres", "source": "/path/to/repo"},
                "summary": {
                    "total_issues": 3,
                    "critical_issues": 1,
                    "warning_issues": 2,
                    "info_issues": 0,
                    "files_analyzed": 4,
                    "queries_analyzed": 11,
                },
                "has_report": True,
            }
        }


class ReportResponse(BaseModel):
    """Report of a completed run, inline or as a signed URL"""

    run_id: str
    status: AnalysisStatus
    summary: RunSummary
    url: Optional[str] = Field(default=None, description="Signed, time-limited report URL")
    expires_at: Optional[datetime] = None
    report: Optional[Dict[str, Any]] = Field(default=None, description="Full JSON report")
