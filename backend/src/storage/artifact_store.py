"""
Snapshot storage for published artifacts.

Every artifact is a whole JSON document that is either fully replaced or left
untouched. Publishing the canonical dataset is gated by the integrity guards:
a dataset that fails them never reaches storage and the previous snapshot keeps
serving.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Collection, Dict, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from config import Config
from models.movers import DIRECTIONS, MoversResult
from models.player import MergedDataset, PlayerStats
from refresh.integrity import run_guards

logger = logging.getLogger(__name__)

DATASET_ARTIFACT = "minutes-value.json"
STATS_CACHE_ARTIFACT = "player-stats-cache.json"
LAST_UPDATED_ARTIFACT = "last-updated.json"
MOVERS_ARTIFACTS = {
    "losers": "biggest-losers.json",
    "winners": "biggest-winners.json",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatasetVersion(BaseModel):
    version: int = Field(..., ge=1)
    updated_at: str = Field(..., alias="updatedAt")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class StatsCache(BaseModel):
    """Per-player stats gathered so far in a run, with the run's start time."""

    started_at: str = Field(..., alias="startedAt")
    entries: Dict[str, PlayerStats] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def fresh(cls) -> "StatsCache":
        return cls(started_at=_now_iso())

    def age_hours(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        started = datetime.fromisoformat(self.started_at)
        return (now - started).total_seconds() / 3600


class ArtifactStore(ABC):
    """Named JSON artifacts plus the guarded dataset publish."""

    def __init__(self, zero_stats_max_ratio: float = 0.8, regression_min_ratio: float = 0.5):
        self.zero_stats_max_ratio = zero_stats_max_ratio
        self.regression_min_ratio = regression_min_ratio

    @classmethod
    def guard_settings(cls, config: Config) -> Dict[str, float]:
        return {
            "zero_stats_max_ratio": config.zero_stats_max_ratio,
            "regression_min_ratio": config.regression_min_ratio,
        }

    @abstractmethod
    def read(self, name: str) -> Optional[Any]:
        """Return the decoded artifact, or None if it was never written."""

    @abstractmethod
    def write(self, name: str, payload: Any) -> None:
        """Replace the artifact as a whole."""

    def current_version(self) -> Optional[DatasetVersion]:
        data = self.read(LAST_UPDATED_ARTIFACT)
        return DatasetVersion.model_validate(data) if data else None

    def current_dataset(self) -> Optional[MergedDataset]:
        rows = self.read(DATASET_ARTIFACT)
        return MergedDataset.from_list(rows) if rows is not None else None

    def publish_dataset(
        self,
        dataset: MergedDataset,
        fetched_ids: Collection[str]
    ) -> DatasetVersion:
        """
        Replace the canonical dataset after both integrity guards pass.

        Raises:
            DataIntegrityError: If a guard rejects the dataset; nothing is written
        """
        run_guards(
            dataset,
            fetched_ids,
            self.current_dataset(),
            zero_stats_max_ratio=self.zero_stats_max_ratio,
            regression_min_ratio=self.regression_min_ratio,
        )

        current = self.current_version()
        version = DatasetVersion(
            version=(current.version + 1) if current else 1,
            updated_at=_now_iso(),
        )
        self.write(DATASET_ARTIFACT, dataset.to_list())
        self.write(LAST_UPDATED_ARTIFACT, version.model_dump(by_alias=True))

        logger.info("Published dataset", extra={
            "version": version.version,
            "players": len(dataset)
        })
        return version

    def load_stats_cache(self) -> Optional[StatsCache]:
        data = self.read(STATS_CACHE_ARTIFACT)
        return StatsCache.model_validate(data) if data else None

    def save_stats_cache(self, cache: StatsCache) -> None:
        self.write(STATS_CACHE_ARTIFACT, cache.model_dump(mode="json", by_alias=True))

    def clear_stats_cache(self) -> None:
        """Start the next run from an empty cache."""
        self.save_stats_cache(StatsCache.fresh())

    def load_movers(self, direction: str) -> Optional[MoversResult]:
        data = self.read(self._movers_artifact(direction))
        return MoversResult.model_validate(data) if data is not None else None

    def publish_movers(self, direction: str, result: MoversResult) -> None:
        self.write(self._movers_artifact(direction), result.model_dump(mode="json", by_alias=True))
        logger.info("Published movers", extra={
            "direction": direction,
            "repeat_groups": len(result.repeat_movers),
            "periods": len(result.periods)
        })

    @staticmethod
    def _movers_artifact(direction: str) -> str:
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction {direction!r}, expected one of {DIRECTIONS}")
        return MOVERS_ARTIFACTS[direction]


class MemoryArtifactStore(ArtifactStore):
    """In-process store; artifacts are kept as JSON text to mirror the file store."""

    def __init__(self, **guard_settings: float):
        super().__init__(**guard_settings)
        self._artifacts: Dict[str, str] = {}

    def read(self, name: str) -> Optional[Any]:
        raw = self._artifacts.get(name)
        return json.loads(raw) if raw is not None else None

    def write(self, name: str, payload: Any) -> None:
        self._artifacts[name] = json.dumps(payload)


class FileArtifactStore(ArtifactStore):
    """Artifacts as files under a data directory, replaced atomically."""

    def __init__(self, data_dir, **guard_settings: float):
        super().__init__(**guard_settings)
        self.data_dir = Path(data_dir)

    @classmethod
    def from_config(cls, config: Config) -> "FileArtifactStore":
        return cls(config.data_dir, **cls.guard_settings(config))

    def read(self, name: str) -> Optional[Any]:
        path = self.data_dir / name
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def write(self, name: str, payload: Any) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_path, self.data_dir / name)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
