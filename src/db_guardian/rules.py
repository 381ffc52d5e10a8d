"""Canonical technique registry.

Single source of truth for every technique identifier that can appear in a
report.  Identifiers are stable strings; renaming one is a breaking change
for anything that consumes stored reports.

Structure:
  SQL_TECHNIQUES        - detectors that inspect validated SQL fragments
  STRUCTURAL_TECHNIQUES - detectors that inspect ORM-mapping fragments
  ALL_TECHNIQUES        - union of both buckets
"""

from __future__ import annotations

# ── Safety ──────────────────────────────────────────────────────────
SQL_INJECTION_RISK = "SQL_INJECTION_RISK"
MISSING_WHERE_CLAUSE = "MISSING_WHERE_CLAUSE"
UNPARAMETERIZED_NATIVE_QUERY = "UNPARAMETERIZED_NATIVE_QUERY"

# ── Performance ─────────────────────────────────────────────────────
SELECT_STAR_USAGE = "SELECT_STAR_USAGE"
INEFFICIENT_LIKE_PATTERN = "INEFFICIENT_LIKE_PATTERN"
COUNT_WITHOUT_LIMIT = "COUNT_WITHOUT_LIMIT"
ORDER_BY_WITHOUT_LIMIT = "ORDER_BY_WITHOUT_LIMIT"
MULTIPLE_OR_CONDITIONS = "MULTIPLE_OR_CONDITIONS"
POTENTIAL_MISSING_INDEX = "POTENTIAL_MISSING_INDEX"

# ── Join correctness ────────────────────────────────────────────────
POTENTIAL_CARTESIAN_JOIN = "POTENTIAL_CARTESIAN_JOIN"
JOIN_WITHOUT_CONDITION = "JOIN_WITHOUT_CONDITION"

# ── ORM mapping (structural) ────────────────────────────────────────
N_PLUS_ONE_RISK = "N_PLUS_ONE_RISK"
EAGER_COLLECTION_BULK_READ = "EAGER_COLLECTION_BULK_READ"
JOIN_WITHOUT_FETCH = "JOIN_WITHOUT_FETCH"
MODIFYING_WITHOUT_TRANSACTIONAL = "MODIFYING_WITHOUT_TRANSACTIONAL"

# ── Buckets ─────────────────────────────────────────────────────────

SQL_TECHNIQUES: list[str] = sorted([
    # Safety
    SQL_INJECTION_RISK,
    MISSING_WHERE_CLAUSE,
    UNPARAMETERIZED_NATIVE_QUERY,
    # Performance
    SELECT_STAR_USAGE,
    INEFFICIENT_LIKE_PATTERN,
    COUNT_WITHOUT_LIMIT,
    ORDER_BY_WITHOUT_LIMIT,
    MULTIPLE_OR_CONDITIONS,
    POTENTIAL_MISSING_INDEX,
    # Joins
    POTENTIAL_CARTESIAN_JOIN,
    JOIN_WITHOUT_CONDITION,
])

STRUCTURAL_TECHNIQUES: list[str] = sorted([
    N_PLUS_ONE_RISK,
    EAGER_COLLECTION_BULK_READ,
    JOIN_WITHOUT_FETCH,
    MODIFYING_WITHOUT_TRANSACTIONAL,
])

ALL_TECHNIQUES: list[str] = sorted(set(SQL_TECHNIQUES + STRUCTURAL_TECHNIQUES))


def _assert_technique_registry_invariants() -> None:
    """Fail fast on invariant violations.

    Called at import time so CI and local runs catch issues immediately.
    """
    import re

    technique_re = re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)+$")

    def _check_bucket(name: str, ids: list[str]) -> None:
        if ids != sorted(ids):
            raise AssertionError(f"{name} must be sorted")
        if len(ids) != len(set(ids)):
            raise AssertionError(f"{name} must contain unique IDs")
        bad = [x for x in ids if not technique_re.match(x)]
        if bad:
            raise AssertionError(f"{name} contains invalid technique IDs: {bad}")

    _check_bucket("SQL_TECHNIQUES", SQL_TECHNIQUES)
    _check_bucket("STRUCTURAL_TECHNIQUES", STRUCTURAL_TECHNIQUES)
    _check_bucket("ALL_TECHNIQUES", ALL_TECHNIQUES)

    overlap = set(SQL_TECHNIQUES) & set(STRUCTURAL_TECHNIQUES)
    if overlap:
        raise AssertionError(
            f"Technique buckets must be disjoint; overlaps: {sorted(overlap)}"
        )
    if set(ALL_TECHNIQUES) != set(SQL_TECHNIQUES) | set(STRUCTURAL_TECHNIQUES):
        raise AssertionError(
            "ALL_TECHNIQUES must equal union(SQL_TECHNIQUES, STRUCTURAL_TECHNIQUES)"
        )


_assert_technique_registry_invariants()
