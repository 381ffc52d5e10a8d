"""
API Routers
===========
Each router handles a specific domain of the API.
"""
from . import analysis, health

__all__ = ["analysis", "health"]
