"""Snippet extraction. Cuts candidate SQL and ORM-mapping markers out of files.

Every extractor is line-oriented and regex based; nothing here parses SQL.
Candidates that are not really SQL are expected and get dropped later by
the validator.
"""

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass, field, replace

from db_guardian.model import FileCategory
from db_guardian.model.fragment import (
    MARKER_BULK_READ,
    MARKER_TRANSACTIONAL,
    Candidate,
    StructuralFragment,
    StructuralTag,
)

SQL_KEYWORDS = (
    "SELECT",
    "INSERT",
    "UPDATE",
    "DELETE",
    "CREATE",
    "ALTER",
    "DROP",
    "TRUNCATE",
)

# Lines of source kept before/after a structural match.
CONTEXT_BEFORE = 2
CONTEXT_AFTER = 3

# How far an annotation's argument list may run on.
_ANNOTATION_SPAN = 6


def contains_sql_keyword(text: str) -> bool:
    upper = text.upper()
    return any(keyword in upper for keyword in SQL_KEYWORDS)


@dataclass
class Extraction:
    """Everything pulled out of one file."""

    candidates: list[Candidate] = field(default_factory=list)
    structural: list[StructuralFragment] = field(default_factory=list)


# ════════════════════════════════════════════════════════════════════
# SQL files
# ════════════════════════════════════════════════════════════════════


def extract_sql_file(content: str) -> list[Candidate]:
    """Split a SQL script into statements.

    Comment and blank lines are skipped, a line ending in ``;`` closes the
    current statement and an unterminated trailing buffer is emitted too.
    """
    candidates: list[Candidate] = []
    buffer: list[str] = []
    start = 0

    def flush(end: int) -> None:
        text = "\n".join(buffer).strip()
        if text and contains_sql_keyword(text):
            candidates.append(Candidate(text=text, line_start=start, line_end=end, origin=text))

    last = 0
    for lineno, line in enumerate(content.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("--") or stripped.startswith("/*"):
            continue
        if not buffer:
            start = lineno
        buffer.append(line)
        last = lineno
        if stripped.endswith(";"):
            flush(lineno)
            buffer = []

    if buffer:
        flush(last)
    return candidates


# ════════════════════════════════════════════════════════════════════
# Source-code files
# ════════════════════════════════════════════════════════════════════

# Ordered: the first pattern to capture a span wins it.
_CODE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r'"""([^"]*)"""'),
    re.compile(r'"((?:[^"\\]|\\.)*)"'),
    re.compile(r"'((?:[^'\\]|\\.)*)'"),
    re.compile(r'@Query\s*\(\s*(?:value\s*=\s*)?"([^"]*)"', re.IGNORECASE),
    re.compile(r'@NamedQuery\s*\(.*?query\s*=\s*"([^"]*)"', re.IGNORECASE),
    re.compile(r'prepareStatement\s*\(\s*"([^"]*)"', re.IGNORECASE),
)

# A literal followed by one or more "+ operand" links.
_CONCAT_CHAIN = re.compile(
    r'"(?:[^"\\]|\\.)*"(?:\s*\+\s*(?:"(?:[^"\\]|\\.)*"|[\w.$]+(?:\([^()"]*\))?))+'
)
_CONCAT_PART = re.compile(r'"((?:[^"\\]|\\.)*)"|([\w.$]+(?:\([^()"]*\))?)')

_MULTILINE_BLOCK = re.compile(r'("""|\'\'\')(.*?)\1', re.DOTALL)

# Calls whose argument list carries the query plus its native-query flags.
_NATIVE_CALL = re.compile(r"@Query\s*\(|createNativeQuery\s*\(|createSQLQuery\s*\(")

_KOTLIN_TEMPLATE = re.compile(r"\$\{[^}]*\}|\$[A-Za-z_]\w*")
_FSTRING_FIELD = re.compile(r"\{[^{}]*\}")


def _normalize_literal(text: str, *, fstring: bool) -> str:
    """Replace host-language interpolation with a bind placeholder."""
    text = _KOTLIN_TEMPLATE.sub("?", text)
    if fstring:
        text = _FSTRING_FIELD.sub("?", text)
    return text.strip()


def _join_concatenation(chain: str) -> str:
    pieces: list[str] = []
    for m in _CONCAT_PART.finditer(chain):
        literal, operand = m.group(1), m.group(2)
        if literal is not None:
            pieces.append(literal)
        elif operand:
            pieces.append("?")
    return "".join(pieces)


_STRING_PREFIX = re.compile(r"(?<![\w])([A-Za-z]{1,2})$")


def _is_fstring(line: str, quote_pos: int) -> bool:
    """True when the literal opening at *quote_pos* carries an ``f`` prefix."""
    while quote_pos > 0 and line[quote_pos - 1] in "\"'":
        quote_pos -= 1
    prefix = _STRING_PREFIX.search(line[:quote_pos])
    return prefix is not None and "f" in prefix.group(1).lower()


def _extract_code_line(line: str, lineno: int) -> list[Candidate]:
    found: list[Candidate] = []
    seen: set[str] = set()
    claimed: list[tuple[int, int]] = []

    def add(text: str) -> None:
        if text and text not in seen and contains_sql_keyword(text):
            seen.add(text)
            found.append(Candidate(text=text, line_start=lineno, line_end=lineno, origin=line))

    for chain in _CONCAT_CHAIN.finditer(line):
        if not contains_sql_keyword(chain.group(0)):
            continue
        claimed.append(chain.span())
        add(_normalize_literal(_join_concatenation(chain.group(0)), fstring=False))

    for pattern in _CODE_PATTERNS:
        for m in pattern.finditer(line):
            if any(lo <= m.start() < hi for lo, hi in claimed):
                continue
            claimed.append(m.span())
            add(_normalize_literal(m.group(1), fstring=_is_fstring(line, m.start(1) - 1)))
    return found


def _widen_to_call_span(candidates: list[Candidate], lines: list[str]) -> list[Candidate]:
    """Give literals inside a native-query call the whole call as origin.

    An annotation such as ``@Query(value = "...", nativeQuery = true)`` is
    often spread over several lines, with the flag away from the literal.
    """
    spans: list[tuple[int, int, str]] = []
    for index, line in enumerate(lines):
        m = _NATIVE_CALL.search(line)
        if not m:
            continue
        args = _call_args(lines, index, m.end() - 1)
        end = index + args.count("\n")
        if end > index:
            spans.append((index + 1, end + 1, "\n".join(lines[index:end + 1])))
    if not spans:
        return candidates

    widened: list[Candidate] = []
    for c in candidates:
        for first, last, origin in spans:
            if first <= c.line_start and c.line_end <= last:
                c = replace(c, origin=origin)
                break
        widened.append(c)
    return widened


def extract_code_file(content: str) -> list[Candidate]:
    """Pull SQL-looking string literals out of source code.

    Single-line literals are matched per line; triple-quoted blocks that
    span several lines become one candidate covering the whole range.
    """
    candidates: list[Candidate] = []
    lines = content.splitlines()
    for lineno, line in enumerate(lines, 1):
        candidates.extend(_extract_code_line(line, lineno))

    for m in _MULTILINE_BLOCK.finditer(content):
        body = m.group(2)
        if "\n" not in body or not contains_sql_keyword(body):
            continue
        start = content.count("\n", 0, m.start()) + 1
        end = start + m.group(0).count("\n")
        fstring = _is_fstring(content, m.start())
        text = _normalize_literal(textwrap.dedent(body), fstring=fstring)
        origin = "\n".join(lines[start - 1:end])
        candidates.append(Candidate(text=text, line_start=start, line_end=end, origin=origin))

    candidates = _widen_to_call_span(candidates, lines)
    candidates.sort(key=lambda c: (c.line_start, c.line_end))
    return candidates


# ════════════════════════════════════════════════════════════════════
# Config files
# ════════════════════════════════════════════════════════════════════

_CONFIG_KEY = re.compile(r"^[\w.\-\[\]]+\s*[:=]\s*")
_XML_TAG = re.compile(r"<[^>]+>")


def _clean_config_line(line: str) -> str:
    text = line.strip()
    if text.startswith("-"):
        text = text[1:].strip()
    text = _XML_TAG.sub(" ", text).strip()
    key = _CONFIG_KEY.match(text)
    if key and contains_sql_keyword(text[key.end():]):
        text = text[key.end():]
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1]
    return text.strip()


def extract_config_file(content: str) -> list[Candidate]:
    """One candidate per keyword-bearing line, stripped of config syntax."""
    candidates: list[Candidate] = []
    for lineno, line in enumerate(content.splitlines(), 1):
        if not contains_sql_keyword(line):
            continue
        cleaned = _clean_config_line(line)
        if cleaned and contains_sql_keyword(cleaned):
            candidates.append(
                Candidate(text=cleaned, line_start=lineno, line_end=lineno, origin=line)
            )
    return candidates


# ════════════════════════════════════════════════════════════════════
# Structural (ORM mapping) markers
# ════════════════════════════════════════════════════════════════════

_TO_ONE = re.compile(r"@(ManyToOne|OneToOne)\b")
_TO_MANY = re.compile(r"@(OneToMany|ManyToMany)\b")
_SQLALCHEMY_RELATIONSHIP = re.compile(r"\brelationship\s*\(")
_QUERY_ANNOTATION = re.compile(r"@Query\s*\(")
_MODIFYING = re.compile(r"@Modifying\b")

_EAGER = re.compile(r"FetchType\.EAGER|lazy\s*=\s*(?:False|[\"'](?:joined|selectin|subquery)[\"'])")
_HAS_FETCH = re.compile(r"\bfetch\s*=")
_HAS_LAZY = re.compile(r"\blazy\s*=")
_JOIN = re.compile(r"\bJOIN\b", re.IGNORECASE)
_JOIN_FETCH = re.compile(r"\bJOIN\s+FETCH\b", re.IGNORECASE)

_TRANSACTIONAL = re.compile(r"@Transactional\b")
_BULK_READ = re.compile(
    r"\bfindAll\w*\s*\(|\.findAll\b|\bgetAll\w*\s*\(|\blistAll\w*\s*\(|\.all\(\)"
)


def _call_args(lines: list[str], index: int, start: int) -> str:
    """Text of the parenthesised argument list opening at or after *start*.

    Returns an empty string when no ``(`` follows on the same line.
    """
    tail = lines[index][start:]
    stripped = tail.lstrip()
    if not stripped.startswith("("):
        return ""
    text = "\n".join([tail] + lines[index + 1:index + _ANNOTATION_SPAN])
    depth = 0
    for pos, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[:pos + 1]
    return text


def _window(lines: list[str], index: int) -> str:
    lo = max(0, index - CONTEXT_BEFORE)
    return "\n".join(lines[lo:index + CONTEXT_AFTER + 1])


def extract_structural(content: str, path: str) -> list[StructuralFragment]:
    """Scan source code for ORM mapping constructs that carry query risk."""
    lines = content.splitlines()
    markers: set[str] = set()
    if _TRANSACTIONAL.search(content):
        markers.add(MARKER_TRANSACTIONAL)
    if _BULK_READ.search(content):
        markers.add(MARKER_BULK_READ)
    file_markers = frozenset(markers)

    out: list[StructuralFragment] = []

    def emit(tag: StructuralTag, variant: str, index: int) -> None:
        context = _window(lines, index)
        out.append(
            StructuralFragment(
                path=path,
                tag=tag,
                variant=variant,
                context=context,
                line_start=index + 1,
                line_end=index + 1,
                file_markers=file_markers,
            )
        )

    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("//") or stripped.startswith("#") or stripped.startswith("*"):
            continue

        m = _TO_ONE.search(line)
        if m and not _HAS_FETCH.search(_call_args(lines, index, m.end())):
            emit(StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "to_one", index)

        m = _TO_MANY.search(line)
        if m:
            args = _call_args(lines, index, m.end())
            if not _HAS_FETCH.search(args):
                emit(StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "to_many", index)
            elif _EAGER.search(args):
                emit(StructuralTag.EAGER_COLLECTION_BULK_READ, "annotation", index)

        m = _SQLALCHEMY_RELATIONSHIP.search(line)
        if m:
            args = _call_args(lines, index, m.end() - 1)
            if not _HAS_LAZY.search(args):
                emit(StructuralTag.RELATIONSHIP_WITHOUT_FETCH, "sqlalchemy", index)
            elif _EAGER.search(args):
                emit(StructuralTag.EAGER_COLLECTION_BULK_READ, "sqlalchemy", index)

        m = _QUERY_ANNOTATION.search(line)
        if m:
            args = _call_args(lines, index, m.end() - 1)
            if _JOIN.search(args) and not _JOIN_FETCH.search(args):
                emit(StructuralTag.JOIN_WITHOUT_FETCH, "query", index)

        if _MODIFYING.search(line):
            following = "\n".join(lines[index:index + _ANNOTATION_SPAN]).upper()
            if "DELETE" in following:
                variant = "delete"
            elif "UPDATE" in following:
                variant = "update"
            else:
                variant = "other"
            emit(StructuralTag.MODIFYING_WITHOUT_TRANSACTIONAL, variant, index)

    return out


# ════════════════════════════════════════════════════════════════════
# Dispatch
# ════════════════════════════════════════════════════════════════════


def extract(category: FileCategory, content: str, path: str) -> Extraction:
    """Run the extractor for *category* and, for code, the structural scan."""
    if category is FileCategory.SQL:
        return Extraction(candidates=extract_sql_file(content))
    if category is FileCategory.CONFIG:
        return Extraction(candidates=extract_config_file(content))
    return Extraction(
        candidates=extract_code_file(content),
        structural=extract_structural(content, path),
    )
