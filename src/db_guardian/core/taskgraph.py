"""Dependency-ordered task execution on an executor.

Tasks are named callables with explicit ``after`` edges.  Each task receives
a dict of its dependencies' results.  Ready tasks are submitted as soon as
everything they depend on has finished, so independent leaves run in
parallel.  The first failure stops scheduling; already-running tasks are
awaited and the failure is re-raised.
"""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Executor, Future, wait
from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter
from typing import Any, Callable

from db_guardian.errors import PipelineError


@dataclass(frozen=True)
class _Task:
    name: str
    fn: Callable[[dict[str, Any]], Any]
    after: tuple[str, ...]


class TaskGraph:
    def __init__(self) -> None:
        self._tasks: dict[str, _Task] = {}

    def add(
        self,
        name: str,
        fn: Callable[[dict[str, Any]], Any],
        after: tuple[str, ...] | list[str] = (),
    ) -> "TaskGraph":
        if name in self._tasks:
            raise ValueError(f"Task {name!r} already defined")
        self._tasks[name] = _Task(name, fn, tuple(after))
        return self

    @property
    def names(self) -> list[str]:
        return list(self._tasks)

    def _sorter(self) -> TopologicalSorter:
        ts: TopologicalSorter[str] = TopologicalSorter()
        for task in self._tasks.values():
            missing = [dep for dep in task.after if dep not in self._tasks]
            if missing:
                raise PipelineError(
                    "Task depends on an unknown task",
                    {"task": task.name, "missing": ",".join(missing)},
                )
            ts.add(task.name, *task.after)
        try:
            ts.prepare()
        except CycleError as exc:
            raise PipelineError(
                "Task dependency cycle detected", {"cycle": "->".join(exc.args[1])}
            ) from exc
        return ts

    def run(self, executor: Executor) -> dict[str, Any]:
        """Execute every task and return results keyed by task name."""
        ts = self._sorter()
        results: dict[str, Any] = {}
        running: dict[Future, str] = {}
        failure: BaseException | None = None

        def submit_ready() -> None:
            for name in ts.get_ready():
                task = self._tasks[name]
                inputs = {dep: results[dep] for dep in task.after}
                running[executor.submit(task.fn, inputs)] = name

        submit_ready()
        while running:
            done, _ = wait(running, return_when=FIRST_COMPLETED)
            for future in done:
                name = running.pop(future)
                exc = future.exception()
                if exc is not None:
                    failure = failure or exc
                    continue
                results[name] = future.result()
                ts.done(name)
            if failure is None:
                submit_ready()

        if failure is not None:
            raise failure
        return results
