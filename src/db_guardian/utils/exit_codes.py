"""Centralized exit-code contract for all CLI commands.

Code  Meaning
----  -------
  0   Success — no critical issues detected
  1   Violation — at least one CRITICAL issue, or an invalid report
  2   Error — usage error, missing path, failed run
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    VIOLATION = 1
    ERROR = 2
