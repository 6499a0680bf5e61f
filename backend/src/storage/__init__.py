"""Published snapshot artifacts."""

from storage.artifact_store import (
    ArtifactStore,
    DatasetVersion,
    FileArtifactStore,
    MemoryArtifactStore,
    StatsCache,
)

__all__ = [
    "ArtifactStore",
    "DatasetVersion",
    "FileArtifactStore",
    "MemoryArtifactStore",
    "StatsCache",
]
