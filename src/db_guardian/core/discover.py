"""File discovery — find and classify SQL, source-code and config files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from db_guardian.core.config import EngineSettings
from db_guardian.model import FileCategory
from db_guardian.model.run import AnalysisConfig

SQL_EXTENSIONS = frozenset({"sql", "ddl", "dml", "pgsql", "mysql", "psql", "plsql"})
CODE_EXTENSIONS = frozenset({"kt", "kts", "java", "scala", "groovy", "py"})
CONFIG_EXTENSIONS = frozenset({"yml", "yaml", "xml", "properties"})

# File-name vocabulary that marks a code/config file as persistence-related.
ORM_NAME_VOCABULARY = (
    "migration",
    "schema",
    "database",
    "entity",
    "repository",
    "dao",
    "hibernate",
    "jpa",
)

ALL_CATEGORIES = frozenset(FileCategory)
_MIGRATION_CATEGORIES = frozenset({FileCategory.SQL, FileCategory.CODE})

_IGNORE_FILES = frozenset({".DS_Store"})


@dataclass(frozen=True, slots=True)
class Classification:
    """A candidate file and why it was selected."""

    path: Path
    category: FileCategory
    reasons: tuple[str, ...]


def classify(
    path: Path,
    categories: frozenset[FileCategory] = ALL_CATEGORIES,
) -> Classification | None:
    """Classify *path* by extension; return ``None`` when it is no candidate."""
    ext = path.suffix.lower().lstrip(".")
    if ext in SQL_EXTENSIONS:
        category = FileCategory.SQL
    elif ext in CODE_EXTENSIONS:
        category = FileCategory.CODE
    elif ext in CONFIG_EXTENSIONS:
        category = FileCategory.CONFIG
    else:
        return None
    if category not in categories:
        return None

    reasons = [f"extension:{ext}"]
    if category is not FileCategory.SQL:
        stem = path.stem.lower()
        reasons.extend(f"orm-name:{word}" for word in ORM_NAME_VOCABULARY if word in stem)
    return Classification(path=path, category=category, reasons=tuple(reasons))


def iter_tree(root: Path, settings: EngineSettings) -> Iterator[Path]:
    """Yield regular files under *root*, honouring ignore rules.

    Symlinked directories are skipped unless ``follow_symlinks`` is set; when
    following, each real directory is entered at most once so link cycles
    terminate.  ``max_depth`` counts directory levels below *root*.
    """
    visited: set[str] = set()
    root_depth = len(root.parts)
    for dirpath, dirnames, filenames in os.walk(root, followlinks=settings.follow_symlinks):
        current = Path(dirpath)
        real = os.path.realpath(dirpath)
        if real in visited:
            dirnames[:] = []
            continue
        visited.add(real)

        depth = len(current.parts) - root_depth
        kept: list[str] = []
        for name in sorted(dirnames):
            if name in settings.ignore_dirs:
                continue
            if settings.max_depth is not None and depth >= settings.max_depth:
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            if name in _IGNORE_FILES:
                continue
            p = current / name
            try:
                if p.is_symlink() and not settings.follow_symlinks:
                    continue
                if not p.is_file():
                    continue
                if p.stat().st_size > settings.max_file_bytes:
                    continue
            except OSError:
                continue
            yield p


def _collect(
    path: Path,
    categories: frozenset[FileCategory],
    settings: EngineSettings,
) -> Iterable[Classification]:
    if path.is_file():
        found = classify(path, categories)
        return [found] if found is not None else []
    if path.is_dir():
        return (
            c for c in (classify(p, categories) for p in iter_tree(path, settings))
            if c is not None
        )
    return []


def discover_files(
    config: AnalysisConfig,
    settings: EngineSettings | None = None,
) -> list[Classification]:
    """Collect candidate files for *config*.

    The source root and code path contribute every category; migration
    paths contribute SQL and code files only; the schema path may be a
    single file or a directory.  Results are deduplicated by resolved
    absolute path and returned sorted.

    Returns
    -------
    Sorted list of ``Classification`` objects with absolute paths.
    """
    settings = settings or EngineSettings()

    sources: list[tuple[Path, frozenset[FileCategory]]] = [
        (Path(config.source), ALL_CATEGORIES),
    ]
    sources.extend((Path(p), _MIGRATION_CATEGORIES) for p in config.migration_paths)
    if config.schema_path:
        sources.append((Path(config.schema_path), ALL_CATEGORIES))
    if config.code_path:
        sources.append((Path(config.code_path), ALL_CATEGORIES))

    seen: dict[Path, Classification] = {}
    for root, categories in sources:
        for found in _collect(root, categories, settings):
            key = found.path.resolve()
            if key not in seen:
                seen[key] = Classification(key, found.category, found.reasons)
    return [seen[k] for k in sorted(seen, key=lambda p: p.as_posix())]
