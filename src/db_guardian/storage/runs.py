"""Run-record stores.

Both stores implement optimistic single-writer updates: ``save`` succeeds
only when the record's ``version`` matches the stored one, then bumps it.
Records are copied on the way in and out so callers never share state
with the store.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol

from db_guardian.errors import RunNotFoundError, StaleRunError, StorageError
from db_guardian.model import AnalysisMode
from db_guardian.model.run import AnalysisConfig, AnalysisRun
from db_guardian.utils.json_norm import stable_json_dumps

_logger = logging.getLogger(__name__)


class RunStore(Protocol):
    def create(self, config: AnalysisConfig, mode: AnalysisMode = AnalysisMode.STATIC) -> str:
        ...

    def load(self, run_id: str) -> AnalysisRun | None:
        ...

    def save(self, run: AnalysisRun) -> None:
        ...


class InMemoryRunStore:
    """Thread-safe dict-backed store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._runs: dict[str, dict] = {}

    def create(self, config: AnalysisConfig, mode: AnalysisMode = AnalysisMode.STATIC) -> str:
        run = AnalysisRun(config=config, mode=mode)
        with self._lock:
            self._runs[run.run_id] = run.to_dict()
        return run.run_id

    def load(self, run_id: str) -> AnalysisRun | None:
        with self._lock:
            data = self._runs.get(run_id)
        return AnalysisRun.from_dict(data) if data is not None else None

    def save(self, run: AnalysisRun) -> None:
        with self._lock:
            current = self._runs.get(run.run_id)
            if current is None:
                raise RunNotFoundError(run.run_id)
            if current["version"] != run.version:
                raise StaleRunError(run.run_id, run.version, current["version"])
            run.version += 1
            self._runs[run.run_id] = run.to_dict()

    def list_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._runs)


class JsonRunStore:
    """One JSON file per run under *directory*."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, run_id: str) -> Path:
        if not run_id or "/" in run_id or "\\" in run_id or run_id.startswith("."):
            raise RunNotFoundError(run_id)
        return self.directory / f"{run_id}.json"

    def _read(self, run_id: str) -> dict | None:
        path = self._path(run_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(
                "Failed to read run record", {"run_id": run_id, "error": str(exc)}
            ) from exc

    def _write(self, run: AnalysisRun) -> None:
        path = self._path(run.run_id)
        try:
            fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{run.run_id}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(stable_json_dumps(run.to_dict()))
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(
                "Failed to write run record", {"run_id": run.run_id, "error": str(exc)}
            ) from exc

    def create(self, config: AnalysisConfig, mode: AnalysisMode = AnalysisMode.STATIC) -> str:
        run = AnalysisRun(config=config, mode=mode)
        with self._lock:
            self._write(run)
        _logger.debug("created run record %s", run.run_id)
        return run.run_id

    def load(self, run_id: str) -> AnalysisRun | None:
        with self._lock:
            data = self._read(run_id)
        return AnalysisRun.from_dict(data) if data is not None else None

    def save(self, run: AnalysisRun) -> None:
        with self._lock:
            current = self._read(run.run_id)
            if current is None:
                raise RunNotFoundError(run.run_id)
            stored_version = int(current.get("version", 0))
            if stored_version != run.version:
                raise StaleRunError(run.run_id, run.version, stored_version)
            run.version += 1
            try:
                self._write(run)
            except StorageError:
                run.version -= 1
                raise

    def list_ids(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))
