"""Detectors that inspect validated SQL fragments.

Rules read the sqlglot tree where the tree answers the question exactly
(missing WHERE, SELECT *, LIKE patterns) and fall back to token scans over
the text where the parser normalises away what matters (comma joins versus
explicit joins, host-language concatenation).
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from sqlglot import exp

from db_guardian import rules
from db_guardian.detection.base import Detector
from db_guardian.model import Severity
from db_guardian.model.fragment import SqlFragment
from db_guardian.model.issue import ReportIssue

_CODE_SUFFIXES = frozenset({".kt", ".kts", ".java", ".scala", ".groovy", ".py"})

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)


def _strip_literals(sql: str) -> str:
    """Blank out comments and quoted literals so keywords inside them are ignored."""
    sql = _BLOCK_COMMENT.sub(" ", sql)
    sql = _LINE_COMMENT.sub(" ", sql)
    return _STRING_LITERAL.sub("''", sql)


def _has_limit(statement: exp.Expression) -> bool:
    limit_types = tuple(
        t for t in (getattr(exp, n, None) for n in ("Limit", "Fetch", "Top")) if isinstance(t, type)
    )
    return statement.find(*limit_types) is not None


# ── safety ──────────────────────────────────────────────────────────


class SqlInjectionDetector(Detector):
    """String building around a query: concatenation, templates, formatting."""

    technique = rules.SQL_INJECTION_RISK
    severity = Severity.CRITICAL
    confidence = 0.95
    description = "SQL injection risk: query text is built by string concatenation"
    suggestion = (
        "Use bind parameters (named :param or positional ?) instead of "
        "concatenating values into the query string"
    )

    _CONCAT = re.compile(r"[\"']\s*\+\s*[^\s\"'+]|[^\s\"'+]\s*\+\s*[\"']")
    _CODE_ONLY = (
        re.compile(r"\$\{[^}]+\}"),
        re.compile(r"\$[A-Za-z_]\w*"),
        re.compile(r"(?<![\w])[rR]?[fF][rR]?([\"'])(?:(?!\1).)*\{[^}]+\}"),
        re.compile(r"[\"']\s+%\s*[\w(]"),
        re.compile(r"[\"']\s*\.format\s*\("),
    )

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        if self.in_test_code(fragment):
            return []
        source = fragment.origin or fragment.text
        if self._CONCAT.search(source):
            return [self._make_issue(fragment)]
        if PurePosixPath(fragment.path).suffix.lower() in _CODE_SUFFIXES:
            if any(p.search(source) for p in self._CODE_ONLY):
                return [self._make_issue(
                    fragment,
                    description="SQL injection risk: values are interpolated into the query string",
                )]
        return []


class MissingWhereDetector(Detector):
    """UPDATE or DELETE that touches every row."""

    technique = rules.MISSING_WHERE_CLAUSE
    severity = Severity.CRITICAL
    confidence = 1.0
    description = "UPDATE without WHERE clause can modify all rows"
    suggestion = "Add a WHERE clause to the UPDATE statement"

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        stmt = fragment.parsed.statement
        if isinstance(stmt, exp.Update) and not stmt.args.get("where"):
            return [self._make_issue(fragment)]
        if isinstance(stmt, exp.Delete) and not stmt.args.get("where"):
            # Fixture teardown in tests wipes tables on purpose.
            if self.in_test_code(fragment):
                return []
            return [self._make_issue(
                fragment,
                description="DELETE without WHERE clause can remove all rows",
                suggestion="Add a WHERE clause to the DELETE statement, or use TRUNCATE deliberately",
            )]
        return []


class UnparameterizedNativeQueryDetector(Detector):
    """Raw/native query APIs fed a query with no bind placeholders."""

    technique = rules.UNPARAMETERIZED_NATIVE_QUERY
    severity = Severity.CRITICAL
    confidence = 0.9
    description = "Native query without parameters (injection risk)"
    suggestion = "Pass user input through named (:name) or positional (?1) parameters"

    _MARKERS = re.compile(
        r"nativeQuery\s*=\s*true|createNativeQuery\s*\(|createSQLQuery\s*\(|"
        r"\.raw\s*\(|\btext\s*\(|\bexecute_sql\s*\(|\bRawSQL\s*\("
    )
    _PLACEHOLDERS = re.compile(
        r"(?<![:\w]):[A-Za-z_]\w*|\?(?![.:])\d*|%s|%\(\w+\)s|\$\d+"
    )
    _LITERALS = re.compile(r"\"((?:[^\"\\]|\\.)*)\"|'((?:[^'\\]|\\.)*)'")

    def _query_literals(self, fragment: SqlFragment) -> str:
        parts = [a or b for a, b in self._LITERALS.findall(fragment.origin)]
        return " ".join(parts) if parts else fragment.text

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        if not fragment.origin or not self._MARKERS.search(fragment.origin):
            return []
        if self._PLACEHOLDERS.search(self._query_literals(fragment)):
            return []
        return [self._make_issue(fragment)]


# ── performance ─────────────────────────────────────────────────────


class SelectStarDetector(Detector):
    technique = rules.SELECT_STAR_USAGE
    severity = Severity.WARNING
    confidence = 0.9
    description = "SELECT * usage (performance/maintainability risk)"
    suggestion = "Replace SELECT * with the explicit list of columns the caller needs"

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        if self.in_test_code(fragment):
            return []
        best: float | None = None
        for select in fragment.parsed.statement.find_all(exp.Select):
            projections = select.expressions
            bare = [p for p in projections if isinstance(p, exp.Star)]
            qualified = [
                p for p in projections
                if isinstance(p, exp.Column) and isinstance(p.this, exp.Star)
            ]
            if not bare and not qualified:
                continue
            score = 0.9 if len(projections) == 1 and bare else 0.8
            best = score if best is None else max(best, score)
        if best is None:
            return []
        return [self._make_issue(fragment, confidence=best)]


class InefficientLikeDetector(Detector):
    technique = rules.INEFFICIENT_LIKE_PATTERN
    severity = Severity.WARNING
    confidence = 0.9
    description = "LIKE pattern with leading % cannot use indexes"
    suggestion = (
        "Anchor the pattern at the start (value%), or use a full-text or "
        "trigram index for substring search"
    )

    def _leading_literal(self, node: exp.Expression | None) -> str | None:
        if isinstance(node, exp.Literal) and node.is_string:
            return node.this
        if isinstance(node, exp.DPipe):
            return self._leading_literal(node.this)
        if isinstance(node, exp.Concat) and node.expressions:
            return self._leading_literal(node.expressions[0])
        return None

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        like_types = tuple(
            t for t in (getattr(exp, n, None) for n in ("Like", "ILike")) if isinstance(t, type)
        )
        for node in fragment.parsed.statement.find_all(*like_types):
            pattern = self._leading_literal(node.expression)
            if pattern is not None and pattern.startswith("%"):
                return [self._make_issue(fragment)]
        return []


class CountWithoutLimitDetector(Detector):
    technique = rules.COUNT_WITHOUT_LIMIT
    severity = Severity.WARNING
    confidence = 0.7
    description = "COUNT(*) over an unbounded result set"
    suggestion = (
        "Bound the count with a selective WHERE clause or LIMIT, or use an "
        "EXISTS check when only presence matters"
    )

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        stmt = fragment.parsed.statement
        has_count_star = any(
            isinstance(node.this, exp.Star) for node in stmt.find_all(exp.Count)
        )
        if has_count_star and not _has_limit(stmt):
            return [self._make_issue(fragment)]
        return []


class OrderByWithoutLimitDetector(Detector):
    technique = rules.ORDER_BY_WITHOUT_LIMIT
    severity = Severity.WARNING
    confidence = 0.6
    description = "ORDER BY sorts the whole table: no WHERE and no LIMIT"
    suggestion = "Add a LIMIT (or pagination) and a filtering WHERE clause"

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        stmt = fragment.parsed.statement
        ordered = any(
            not isinstance(order.parent, exp.Window) for order in stmt.find_all(exp.Order)
        )
        if ordered and not _has_limit(stmt) and stmt.find(exp.Where) is None:
            return [self._make_issue(fragment)]
        return []


class MultipleOrDetector(Detector):
    """Long OR chains of equality tests on the same column."""

    technique = rules.MULTIPLE_OR_CONDITIONS
    severity = Severity.INFO
    confidence = 0.6
    description = "Multiple OR conditions on the same column"
    suggestion = "Rewrite the OR chain as column IN (...)"

    min_ors = 3

    def _eq_column(self, node: exp.Expression) -> str | None:
        while isinstance(node, exp.Paren):
            node = node.this
        if not isinstance(node, exp.EQ):
            return None
        for side in (node.this, node.expression):
            if isinstance(side, exp.Column):
                return side.name.lower()
        return None

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        for node in fragment.parsed.statement.find_all(exp.Or):
            if isinstance(node.parent, exp.Or):
                continue
            operands = list(node.flatten())
            if len(operands) - 1 < self.min_ors:
                continue
            columns = [self._eq_column(op) for op in operands]
            chained = sum(
                1 for a, b in zip(columns, columns[1:]) if a is not None and a == b
            )
            if chained >= 2:
                return [self._make_issue(fragment)]
        return []


class MissingIndexDetector(Detector):
    """WHERE filters on columns whose names do not look indexed."""

    technique = rules.POTENTIAL_MISSING_INDEX
    severity = Severity.INFO
    confidence = 0.5
    description = "WHERE clause filters on a column that may not be indexed"
    suggestion = "Check the execution plan and add an index on the filtered column if it is selective"

    LIKELY_INDEXED = frozenset({
        "id",
        "uuid",
        "guid",
        "pk",
        "key",
        "status",
        "created_at",
        "updated_at",
        "deleted_at",
        "created_on",
        "updated_on",
        "created_date",
        "updated_date",
        "timestamp",
        "ts",
    })
    _COMPARISONS = (exp.EQ, exp.GT, exp.GTE, exp.LT, exp.LTE)

    def _likely_indexed(self, name: str) -> bool:
        lower = name.lower()
        return (
            lower in self.LIKELY_INDEXED
            or lower.endswith(("_id", "_uuid", "_key", "_fk"))
            or name.endswith(("Id", "ID"))
        )

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        for where in fragment.parsed.statement.find_all(exp.Where):
            for cmp in where.find_all(*self._COMPARISONS):
                left, right = cmp.this, cmp.expression
                if isinstance(left, exp.Column) and isinstance(right, exp.Column):
                    continue
                column = left if isinstance(left, exp.Column) else right
                if not isinstance(column, exp.Column) or not column.name:
                    continue
                if not self._likely_indexed(column.name):
                    return [self._make_issue(
                        fragment,
                        description=f"WHERE clause filters on '{column.name}', which may not be indexed",
                    )]
        return []


# ── joins ───────────────────────────────────────────────────────────

_CLAUSE_END = re.compile(
    r"(?:WHERE|GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT|OFFSET|FETCH\s+(?:FIRST|NEXT)|UNION|"
    r"INTERSECT|EXCEPT|WINDOW|QUALIFY|RETURNING|FOR\s+UPDATE|ON\s+CONFLICT)\b"
)
_JOIN_TOKEN = re.compile(r"\bJOIN\b")


def _top_level_end(sql: str, start: int = 0) -> int:
    """Index where the clause starting at *start* ends.

    The clause ends at the first keyword of a following clause, an
    unmatched ``)`` or a ``;``, ignoring anything nested in parentheses.
    """
    depth = 0
    for pos in range(start, len(sql)):
        ch = sql[pos]
        if ch == "(":
            depth += 1
        elif ch == ")":
            if depth == 0:
                return pos
            depth -= 1
        elif depth == 0:
            if ch == ";":
                return pos
            boundary = pos == 0 or not (sql[pos - 1].isalnum() or sql[pos - 1] == "_")
            if boundary and _CLAUSE_END.match(sql, pos):
                return pos
    return len(sql)


def _from_clauses(sql: str) -> list[str]:
    """Top-level text of every FROM clause."""
    return [
        sql[m.end():_top_level_end(sql, m.end())]
        for m in re.finditer(r"\bFROM\b", sql)
    ]


def _top_level_commas(text: str) -> int:
    depth = 0
    count = 0
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "," and depth == 0:
            count += 1
    return count


class CartesianJoinDetector(Detector):
    technique = rules.POTENTIAL_CARTESIAN_JOIN
    severity = Severity.CRITICAL
    confidence = 0.8
    description = "Comma-separated tables in FROM without an explicit JOIN (possible Cartesian product)"
    suggestion = "Use explicit JOIN ... ON syntax so every table has a join condition"

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        sql = _strip_literals(fragment.text).upper()
        if _JOIN_TOKEN.search(sql):
            return []
        if any(_top_level_commas(clause) >= 1 for clause in _from_clauses(sql)):
            return [self._make_issue(fragment)]
        return []


class JoinWithoutConditionDetector(Detector):
    technique = rules.JOIN_WITHOUT_CONDITION
    severity = Severity.WARNING
    confidence = 0.7
    description = "JOIN without ON or USING condition"
    suggestion = "Add an ON or USING clause, or write CROSS JOIN if the product is intended"

    _JOIN = re.compile(r"\b((?:CROSS|NATURAL)\s+)?(?:(?:INNER|LEFT|RIGHT|FULL|OUTER)\s+)*JOIN\b")
    _PATH_TARGET = re.compile(r"^\s*(?:FETCH\s+)?[A-Z_][\w$]*\.[A-Z_][\w$]*")
    _CONDITION = re.compile(r"\b(?:ON|USING)\b")

    def detect(self, fragment: SqlFragment) -> list[ReportIssue]:
        sql = _strip_literals(fragment.text).upper()
        joins = list(self._JOIN.finditer(sql))
        for i, m in enumerate(joins):
            if m.group(1):
                continue
            nxt = joins[i + 1].start() if i + 1 < len(joins) else len(sql)
            segment = sql[m.end():nxt]
            # Entity path joins (JPQL/HQL) carry their condition in the mapping.
            if self._PATH_TARGET.match(segment):
                continue
            segment = segment[:_top_level_end(segment)]
            if not self._CONDITION.search(segment):
                return [self._make_issue(fragment)]
        return []


SQL_DETECTORS: tuple[type[Detector], ...] = (
    SqlInjectionDetector,
    MissingWhereDetector,
    SelectStarDetector,
    InefficientLikeDetector,
    CountWithoutLimitDetector,
    OrderByWithoutLimitDetector,
    MultipleOrDetector,
    CartesianJoinDetector,
    JoinWithoutConditionDetector,
    MissingIndexDetector,
    UnparameterizedNativeQueryDetector,
)
