"""Tests for snippet extraction from SQL, code and config files."""

from __future__ import annotations

from db_guardian.core.extract import (
    CONTEXT_AFTER,
    CONTEXT_BEFORE,
    contains_sql_keyword,
    extract,
    extract_code_file,
    extract_config_file,
    extract_sql_file,
    extract_structural,
)
from db_guardian.model import FileCategory
from db_guardian.model.fragment import (
    MARKER_BULK_READ,
    MARKER_TRANSACTIONAL,
    StructuralTag,
)


class TestKeywordFilter:
    def test_case_insensitive(self):
        assert contains_sql_keyword("select 1")
        assert contains_sql_keyword("Truncate table t")

    def test_no_keyword(self):
        assert not contains_sql_keyword("hello world")


# ============================================================================
# SQL files
# ============================================================================

class TestSqlFiles:
    def test_splits_on_semicolons_and_tracks_lines(self):
        content = (
            "-- header comment\n"
            "SELECT *\n"
            "FROM users\n"
            "WHERE id = 1;\n"
            "\n"
            "UPDATE users SET active = false;\n"
        )
        candidates = extract_sql_file(content)
        assert [(c.line_start, c.line_end) for c in candidates] == [(2, 4), (6, 6)]
        assert candidates[0].text.startswith("SELECT *")
        assert candidates[1].text == "UPDATE users SET active = false;"

    def test_comment_lines_skipped(self):
        content = "/* block */\n-- SELECT 1;\nDELETE FROM t WHERE id = 2;\n"
        candidates = extract_sql_file(content)
        assert len(candidates) == 1
        assert candidates[0].text.startswith("DELETE")

    def test_trailing_statement_without_semicolon(self):
        candidates = extract_sql_file("SELECT 1;\nSELECT name\nFROM t\n")
        assert len(candidates) == 2
        assert (candidates[1].line_start, candidates[1].line_end) == (2, 3)

    def test_non_sql_buffers_dropped(self):
        assert extract_sql_file("BEGIN;\nCOMMIT;\n") == []


# ============================================================================
# Code files
# ============================================================================

class TestCodeFiles:
    def test_double_quoted_literal(self):
        candidates = extract_code_file('val q = "SELECT id FROM users WHERE id = ?"\n')
        assert [c.text for c in candidates] == ["SELECT id FROM users WHERE id = ?"]
        assert candidates[0].origin == 'val q = "SELECT id FROM users WHERE id = ?"'

    def test_query_annotation(self):
        line = '    @Query(value = "SELECT p FROM Product p WHERE p.name = :name")'
        candidates = extract_code_file(line)
        assert [c.text for c in candidates] == ["SELECT p FROM Product p WHERE p.name = :name"]

    def test_identical_captures_deduplicated(self):
        line = 'run("DELETE FROM t WHERE id = 1"); log("DELETE FROM t WHERE id = 1")'
        assert len(extract_code_file(line)) == 1

    def test_non_sql_literals_ignored(self):
        assert extract_code_file('println("hello world")\n') == []

    def test_concatenation_joined_with_placeholder(self):
        line = 'jdbc.query("SELECT * FROM users WHERE name = \'" + name + "\'")'
        candidates = extract_code_file(line)
        assert len(candidates) == 1
        assert candidates[0].text == "SELECT * FROM users WHERE name = '?'"
        assert "+ name +" in candidates[0].origin

    def test_kotlin_template_normalized(self):
        candidates = extract_code_file('val q = "SELECT * FROM users WHERE id = ${user.id}"')
        assert candidates[0].text == "SELECT * FROM users WHERE id = ?"

    def test_python_fstring_normalized(self):
        candidates = extract_code_file('cur.execute(f"SELECT id FROM users WHERE name = \'{name}\'")')
        assert candidates[0].text == "SELECT id FROM users WHERE name = '?'"

    def test_multiline_triple_quoted_block(self):
        content = (
            'query = """\n'
            "    SELECT id, email\n"
            "    FROM users\n"
            "    WHERE active = true\n"
            '"""\n'
        )
        candidates = extract_code_file(content)
        assert len(candidates) == 1
        assert (candidates[0].line_start, candidates[0].line_end) == (1, 5)
        assert candidates[0].text.startswith("SELECT id, email")

    def test_native_query_origin_covers_annotation(self):
        content = (
            "@Query(\n"
            '    value = "SELECT id FROM users WHERE active = true",\n'
            "    nativeQuery = true\n"
            ")\n"
            'val other = "SELECT id FROM orders"\n'
        )
        first, second = extract_code_file(content)
        assert first.line_start == 2
        assert "nativeQuery = true" in first.origin
        assert first.origin.startswith("@Query(")
        assert second.origin == 'val other = "SELECT id FROM orders"'


# ============================================================================
# Config files
# ============================================================================

class TestConfigFiles:
    def test_yaml_key_and_quotes_stripped(self):
        candidates = extract_config_file('app:\n  cleanup-query: "DELETE FROM sessions"\n')
        assert [c.text for c in candidates] == ["DELETE FROM sessions"]
        assert candidates[0].line_start == 2

    def test_list_marker_stripped(self):
        candidates = extract_config_file("queries:\n  - SELECT id FROM users\n")
        assert [c.text for c in candidates] == ["SELECT id FROM users"]

    def test_xml_tags_stripped(self):
        candidates = extract_config_file("<query>SELECT id FROM users</query>\n")
        assert [c.text for c in candidates] == ["SELECT id FROM users"]

    def test_properties_line(self):
        candidates = extract_config_file("report.sql=SELECT COUNT(*) FROM orders\n")
        assert [c.text for c in candidates] == ["SELECT COUNT(*) FROM orders"]

    def test_key_containing_keyword_kept_when_value_is_not_sql(self):
        candidates = extract_config_file("deleteQuery: true\n")
        assert [c.text for c in candidates] == ["deleteQuery: true"]


# ============================================================================
# Structural markers
# ============================================================================

ENTITY = """\
@Entity
class Product(
    @Id val id: Long,

    @ManyToOne
    val category: Category,

    @OneToMany(mappedBy = "product")
    val reviews: List<Review>,

    @ManyToMany(fetch = FetchType.EAGER)
    val tags: Set<Tag>,

    @OneToOne(fetch = FetchType.LAZY)
    val detail: Detail,
)
"""


class TestStructural:
    def test_relationships(self):
        found = extract_structural(ENTITY, "Product.kt")
        by_tag = [(f.tag, f.variant, f.line_start) for f in found]
        assert (StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "to_one", 5) in by_tag
        assert (StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "to_many", 8) in by_tag
        assert (StructuralTag.EAGER_COLLECTION_BULK_READ, "annotation", 11) in by_tag
        # explicit LAZY to-one is fine
        assert all(line != 14 for _, _, line in by_tag)

    def test_context_window(self):
        found = extract_structural(ENTITY, "Product.kt")
        to_one = next(f for f in found if f.variant == "to_one")
        lines = ENTITY.splitlines()
        index = to_one.line_start - 1
        assert to_one.context == "\n".join(
            lines[index - CONTEXT_BEFORE:index + CONTEXT_AFTER + 1]
        )

    def test_sqlalchemy_relationship(self):
        content = (
            "class User(Base):\n"
            "    orders = relationship('Order', back_populates='user')\n"
            "    roles = relationship('Role', lazy='selectin')\n"
            "    groups = relationship('Group', lazy='select')\n"
        )
        found = extract_structural(content, "models.py")
        assert [(f.tag, f.variant, f.line_start) for f in found] == [
            (StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "sqlalchemy", 2),
            (StructuralTag.EAGER_COLLECTION_BULK_READ, "sqlalchemy", 3),
        ]

    def test_join_without_fetch(self):
        content = (
            '@Query("SELECT o FROM Order o JOIN o.items i WHERE i.sku = :sku")\n'
            '@Query("SELECT o FROM Order o JOIN FETCH o.items")\n'
        )
        found = extract_structural(content, "OrderRepository.kt")
        assert [(f.tag, f.line_start) for f in found] == [(StructuralTag.JOIN_WITHOUT_FETCH, 1)]

    def test_modifying_variants_and_markers(self):
        content = (
            "@Transactional\n"
            "interface Repo {\n"
            "    @Modifying\n"
            '    @Query("DELETE FROM Order o WHERE o.id = :id")\n'
            "    fun remove(id: Long)\n"
            "    fun all() = findAll()\n"
            "}\n"
        )
        found = extract_structural(content, "Repo.kt")
        modifying = [f for f in found if f.tag is StructuralTag.MODIFYING_WITHOUT_TRANSACTIONAL]
        assert [m.variant for m in modifying] == ["delete"]
        assert MARKER_TRANSACTIONAL in modifying[0].file_markers
        assert MARKER_BULK_READ in modifying[0].file_markers

    def test_commented_annotations_ignored(self):
        content = "// @ManyToOne\n# relationship('X')\n * @OneToMany\n"
        assert extract_structural(content, "A.kt") == []


class TestDispatch:
    def test_sql_has_no_structural(self):
        result = extract(FileCategory.SQL, "SELECT 1;", "a.sql")
        assert result.structural == []
        assert len(result.candidates) == 1

    def test_code_runs_both(self):
        content = '@ManyToOne\nval q = "SELECT id FROM t WHERE id = ?"\n'
        result = extract(FileCategory.CODE, content, "A.kt")
        assert len(result.candidates) == 1
        assert len(result.structural) == 1
