"""Fragments — the units the detection engine inspects.

A fragment is either real SQL that survived validation (``SqlFragment``) or
a synthetic marker for an ORM mapping risk (``StructuralFragment``).
Detectors dispatch on the type, never on the text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class StructuralTag(str, Enum):
    """Which ORM-mapping risk a structural fragment stands for."""

    RELATIONSHIP_WITHOUT_FETCH = "RELATIONSHIP_WITHOUT_FETCH"
    EAGER_COLLECTION_BULK_READ = "EAGER_COLLECTION_BULK_READ"
    JOIN_WITHOUT_FETCH = "JOIN_WITHOUT_FETCH"
    MODIFYING_WITHOUT_TRANSACTIONAL = "MODIFYING_WITHOUT_TRANSACTIONAL"


# Whole-file facts recorded on structural fragments.
MARKER_TRANSACTIONAL = "transactional"
MARKER_BULK_READ = "bulk_read"


@dataclass(frozen=True, slots=True)
class Candidate:
    """Raw text cut from a file, before validation."""

    text: str
    line_start: int
    line_end: int
    origin: str = ""


@dataclass(frozen=True, slots=True)
class ParsedQuery:
    """A candidate that parsed as SQL."""

    text: str
    statement: Any             # sqlglot.exp.Expression
    is_select: bool


@dataclass(frozen=True, slots=True)
class SqlFragment:
    path: str
    text: str
    line_start: int
    line_end: int
    parsed: ParsedQuery
    origin: str = ""


@dataclass(frozen=True, slots=True)
class StructuralFragment:
    path: str
    tag: StructuralTag
    variant: str
    context: str
    line_start: int
    line_end: int
    file_markers: frozenset[str] = frozenset()

    @property
    def text(self) -> str:
        return f"{self.tag.value}: {self.context}"


Fragment = Union[SqlFragment, StructuralFragment]
