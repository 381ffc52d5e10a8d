"""Tests for the ORM mapping detectors."""

from __future__ import annotations

import pytest

from db_guardian import rules
from db_guardian.model import Severity
from db_guardian.model.fragment import (
    MARKER_BULK_READ,
    MARKER_TRANSACTIONAL,
    StructuralFragment,
    StructuralTag,
)


def _structural(
    tag: StructuralTag,
    variant: str,
    *,
    markers: frozenset[str] = frozenset(),
    path: str = "src/main/kotlin/Order.kt",
) -> StructuralFragment:
    return StructuralFragment(
        path=path,
        tag=tag,
        variant=variant,
        context="@ManyToOne\nval customer: Customer",
        line_start=12,
        line_end=12,
        file_markers=markers,
    )


class TestNPlusOne:
    def test_to_one_defaults_to_eager(self, engine):
        issues = engine.detect(_structural(StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "to_one"))
        assert len(issues) == 1
        issue = issues[0]
        assert issue.technique == rules.N_PLUS_ONE_RISK
        assert issue.severity is Severity.CRITICAL
        assert issue.confidence == 0.8
        assert "EAGER" in issue.description

    def test_to_many(self, engine):
        issues = engine.detect(_structural(StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "to_many"))
        assert [(i.severity, i.confidence) for i in issues] == [(Severity.WARNING, 0.7)]

    def test_sqlalchemy(self, engine):
        issues = engine.detect(_structural(StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "sqlalchemy"))
        assert len(issues) == 1
        assert "lazy=" in issues[0].description
        assert issues[0].severity is Severity.WARNING

    def test_location_and_query_text(self, engine):
        fragment = _structural(StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "to_one")
        issue = engine.detect(fragment)[0]
        assert issue.location.file_path == "src/main/kotlin/Order.kt"
        assert issue.location.start_line == 12
        assert issue.query_text == fragment.context
        assert issue.fingerprint.startswith("sha256:")


class TestEagerCollection:
    def test_requires_bulk_read_marker(self, engine):
        fragment = _structural(StructuralTag.EAGER_COLLECTION_BULK_READ, "annotation")
        assert engine.detect(fragment) == []

    def test_reported_with_bulk_read(self, engine):
        fragment = _structural(
            StructuralTag.EAGER_COLLECTION_BULK_READ,
            "annotation",
            markers=frozenset({MARKER_BULK_READ}),
        )
        issues = engine.detect(fragment)
        assert [(i.technique, i.severity) for i in issues] == [
            (rules.EAGER_COLLECTION_BULK_READ, Severity.WARNING)
        ]


class TestJoinWithoutFetch:
    def test_info(self, engine):
        issues = engine.detect(_structural(StructuralTag.JOIN_WITHOUT_FETCH, "query"))
        assert [(i.technique, i.severity, i.confidence) for i in issues] == [
            (rules.JOIN_WITHOUT_FETCH, Severity.INFO, 0.6)
        ]


class TestModifying:
    @pytest.mark.parametrize(
        "variant, severity",
        [("delete", Severity.CRITICAL), ("update", Severity.WARNING)],
    )
    def test_without_transactional(self, engine, variant, severity):
        issues = engine.detect(_structural(StructuralTag.MODIFYING_WITHOUT_TRANSACTIONAL, variant))
        assert len(issues) == 1
        assert issues[0].severity is severity
        assert issues[0].confidence == 0.9

    def test_transactional_marker_clears(self, engine):
        fragment = _structural(
            StructuralTag.MODIFYING_WITHOUT_TRANSACTIONAL,
            "delete",
            markers=frozenset({MARKER_TRANSACTIONAL}),
        )
        assert engine.detect(fragment) == []


class TestDispatchByTag:
    def test_each_tag_reaches_one_detector(self, engine):
        fragment = _structural(StructuralTag.JOIN_WITHOUT_FETCH, "query")
        techniques = {i.technique for i in engine.detect(fragment)}
        assert techniques == {rules.JOIN_WITHOUT_FETCH}
