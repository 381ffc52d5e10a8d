"""Run-record and report-artifact stores."""

from db_guardian.storage.artifacts import ArtifactStore, LocalArtifactStore
from db_guardian.storage.runs import InMemoryRunStore, JsonRunStore, RunStore

__all__ = [
    "ArtifactStore",
    "InMemoryRunStore",
    "JsonRunStore",
    "LocalArtifactStore",
    "RunStore",
]
