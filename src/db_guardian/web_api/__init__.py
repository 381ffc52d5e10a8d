"""
DB Guardian Web API
===================
FastAPI-based REST API for triggering analyses and fetching reports.

Quick Start:
    uvicorn db_guardian.web_api.main:app --reload
"""
from .main import app

__all__ = ["app"]
