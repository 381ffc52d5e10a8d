"""Enums shared across the engine, reports and storage layers."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Issue severity, worst first."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"


class AnalysisMode(str, Enum):
    """How a run inspects the target.  Only STATIC is implemented."""

    STATIC = "STATIC"
    DYNAMIC = "DYNAMIC"


class AnalysisStatus(str, Enum):
    STARTED = "STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class FileCategory(str, Enum):
    """Why a file is an analysis candidate."""

    SQL = "sql"
    CODE = "code"
    CONFIG = "config"
