"""db-guardian: static detection of database anti-patterns in SQL and ORM code."""

from __future__ import annotations

__version__ = "0.1.0"
