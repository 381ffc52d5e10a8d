"""
Pydantic Schemas
===============
Request and response models for the API.
"""
from .analysis import (
    AnalyzeRequest,
    AnalyzeResponse,
    ReportResponse,
    RunResponse,
    RunSummary,
)

__all__ = [
    "AnalyzeRequest",
    "AnalyzeResponse",
    "ReportResponse",
    "RunResponse",
    "RunSummary",
]
