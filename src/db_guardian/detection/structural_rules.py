"""Detectors for ORM mapping risks (structural fragments)."""

from __future__ import annotations

from db_guardian import rules
from db_guardian.detection.base import Detector
from db_guardian.model import Severity
from db_guardian.model.fragment import (
    MARKER_BULK_READ,
    MARKER_TRANSACTIONAL,
    StructuralFragment,
    StructuralTag,
)
from db_guardian.model.issue import ReportIssue


class StructuralDetector(Detector):
    """Base for rules bound to exactly one structural tag."""

    fragment_type = StructuralFragment
    tag: StructuralTag

    def applies_to(self, fragment) -> bool:
        return isinstance(fragment, StructuralFragment) and fragment.tag is self.tag


class NPlusOneDetector(StructuralDetector):
    technique = rules.N_PLUS_ONE_RISK
    tag = StructuralTag.RELATIONSHIP_WITHOUT_FETCH
    severity = Severity.WARNING
    confidence = 0.7
    description = "Relationship mapped without an explicit fetch strategy (N+1 query risk)"
    suggestion = (
        "Declare fetch = FetchType.LAZY and load the association explicitly "
        "with JOIN FETCH or an entity graph where it is needed"
    )

    def detect(self, fragment: StructuralFragment) -> list[ReportIssue]:
        if fragment.variant == "to_one":
            # JPA loads to-one associations eagerly unless told otherwise.
            return [self._make_issue(
                fragment,
                severity=Severity.CRITICAL,
                confidence=0.8,
                description=(
                    "To-one relationship without explicit fetch type defaults to "
                    "EAGER loading (N+1 query risk)"
                ),
            )]
        if fragment.variant == "sqlalchemy":
            return [self._make_issue(
                fragment,
                description="relationship() without a lazy= loading strategy (N+1 query risk)",
                suggestion=(
                    "Set lazy= explicitly and use selectinload()/joinedload() in "
                    "queries that walk the relationship"
                ),
            )]
        return [self._make_issue(fragment)]


class EagerCollectionBulkReadDetector(StructuralDetector):
    technique = rules.EAGER_COLLECTION_BULK_READ
    tag = StructuralTag.EAGER_COLLECTION_BULK_READ
    severity = Severity.WARNING
    confidence = 0.7
    description = "Eagerly fetched collection in a file that also performs bulk reads"
    suggestion = (
        "Make the collection LAZY and fetch it per use case; eager collections "
        "multiply every findAll()-style read"
    )

    def detect(self, fragment: StructuralFragment) -> list[ReportIssue]:
        if MARKER_BULK_READ not in fragment.file_markers:
            return []
        return [self._make_issue(fragment)]


class JoinWithoutFetchDetector(StructuralDetector):
    technique = rules.JOIN_WITHOUT_FETCH
    tag = StructuralTag.JOIN_WITHOUT_FETCH
    severity = Severity.INFO
    confidence = 0.6
    description = "Annotated query joins an association without JOIN FETCH"
    suggestion = "Use JOIN FETCH when the joined association is read afterwards"

    def detect(self, fragment: StructuralFragment) -> list[ReportIssue]:
        return [self._make_issue(fragment)]


class ModifyingWithoutTransactionalDetector(StructuralDetector):
    technique = rules.MODIFYING_WITHOUT_TRANSACTIONAL
    tag = StructuralTag.MODIFYING_WITHOUT_TRANSACTIONAL
    severity = Severity.WARNING
    confidence = 0.9
    description = "@Modifying annotation without @Transactional"
    suggestion = "Annotate the modifying method or its repository with @Transactional"

    def detect(self, fragment: StructuralFragment) -> list[ReportIssue]:
        if MARKER_TRANSACTIONAL in fragment.file_markers:
            return []
        if fragment.variant == "delete":
            return [self._make_issue(
                fragment,
                severity=Severity.CRITICAL,
                description="@Modifying DELETE query without @Transactional",
            )]
        return [self._make_issue(fragment)]


STRUCTURAL_DETECTORS: tuple[type[Detector], ...] = (
    NPlusOneDetector,
    EagerCollectionBulkReadDetector,
    JoinWithoutFetchDetector,
    ModifyingWithoutTransactionalDetector,
)
