"""Detection engine — independent rules over SQL and structural fragments.

Two families:

1. **SQL detectors** (``sql_rules``) inspect fragments that parsed as SQL.
2. **Structural detectors** (``structural_rules``) inspect ORM mapping
   markers that carry no SQL of their own.

``DetectionEngine`` holds the registry and runs every applicable rule.
"""

from __future__ import annotations

from db_guardian.detection.base import Detector, is_test_path
from db_guardian.detection.engine import DetectionEngine

__all__ = ["DetectionEngine", "Detector", "is_test_path"]
