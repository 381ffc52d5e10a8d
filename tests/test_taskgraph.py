"""Tests for dependency-ordered task execution."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from db_guardian.core.taskgraph import TaskGraph
from db_guardian.errors import PipelineError


@pytest.fixture
def executor():
    with ThreadPoolExecutor(max_workers=4) as pool:
        yield pool


class TestTaskGraph:
    def test_results_and_inputs(self, executor):
        graph = (
            TaskGraph()
            .add("a", lambda _: 2)
            .add("b", lambda _: 3)
            .add("product", lambda deps: deps["a"] * deps["b"], after=("a", "b"))
        )
        assert graph.run(executor) == {"a": 2, "b": 3, "product": 6}

    def test_roots_receive_empty_inputs(self, executor):
        seen = []
        TaskGraph().add("only", seen.append).run(executor)
        assert seen == [{}]

    def test_dependencies_finish_first(self, executor):
        order: list[str] = []
        lock = threading.Lock()

        def record(name):
            def _fn(_):
                with lock:
                    order.append(name)
            return _fn

        graph = TaskGraph()
        graph.add("finalize", record("finalize"), after=["write_json", "write_md"])
        graph.add("write_json", record("write_json"))
        graph.add("write_md", record("write_md"))
        graph.run(executor)
        assert order[-1] == "finalize"
        assert set(order[:2]) == {"write_json", "write_md"}

    def test_independent_tasks_run_concurrently(self, executor):
        barrier = threading.Barrier(2, timeout=5)
        graph = TaskGraph().add("x", lambda _: barrier.wait()).add("y", lambda _: barrier.wait())
        # Deadlocks (and the barrier times out) if x and y ran one after the other.
        graph.run(executor)

    def test_duplicate_name(self):
        graph = TaskGraph().add("a", lambda _: None)
        with pytest.raises(ValueError):
            graph.add("a", lambda _: None)

    def test_names_keep_insertion_order(self):
        graph = TaskGraph().add("b", lambda _: None).add("a", lambda _: None)
        assert graph.names == ["b", "a"]


class TestTaskGraphErrors:
    def test_unknown_dependency(self, executor):
        graph = TaskGraph().add("a", lambda _: None, after=["ghost"])
        with pytest.raises(PipelineError) as info:
            graph.run(executor)
        assert info.value.details["missing"] == "ghost"

    def test_cycle(self, executor):
        graph = (
            TaskGraph()
            .add("a", lambda _: None, after=["b"])
            .add("b", lambda _: None, after=["a"])
        )
        with pytest.raises(PipelineError, match="cycle") as info:
            graph.run(executor)
        assert "a" in info.value.details["cycle"]

    def test_failure_stops_dependents(self, executor):
        ran: list[str] = []

        def boom(_):
            raise RuntimeError("disk full")

        graph = (
            TaskGraph()
            .add("store", boom)
            .add("finalize", lambda _: ran.append("finalize"), after=["store"])
        )
        with pytest.raises(RuntimeError, match="disk full"):
            graph.run(executor)
        assert ran == []

    def test_running_siblings_are_awaited(self, executor):
        finished = threading.Event()

        def slow(_):
            finished.wait(0.05)
            finished.set()

        def boom(_):
            raise RuntimeError("nope")

        graph = TaskGraph().add("slow", slow).add("boom", boom)
        with pytest.raises(RuntimeError):
            graph.run(executor)
        assert finished.is_set()
