import json
from datetime import datetime, timedelta, timezone

import pytest

from models.movers import MoversResult, PeriodResult
from models.player import MergedDataset, PlayerStats
from storage.artifact_store import (
    DATASET_ARTIFACT,
    LAST_UPDATED_ARTIFACT,
    FileArtifactStore,
    MemoryArtifactStore,
    StatsCache,
)

from conftest import make_config, make_mover, make_player


def test_file_store_publishes_dataset_and_bumps_version(tmp_path):
    store = FileArtifactStore(tmp_path)
    dataset = MergedDataset({"1": make_player("1", goals=2)})

    assert store.current_version() is None
    assert store.current_dataset() is None

    first = store.publish_dataset(dataset, ["1"])
    second = store.publish_dataset(dataset, ["1"])

    assert (first.version, second.version) == (1, 2)
    assert store.current_dataset() == dataset
    written = json.loads((tmp_path / DATASET_ARTIFACT).read_text(encoding="utf-8"))
    assert written[0]["player_id"] == "1"
    marker = json.loads((tmp_path / LAST_UPDATED_ARTIFACT).read_text())
    assert marker["version"] == 2
    assert marker["updatedAt"] == second.updated_at
    # No temp files left behind by the atomic replace
    assert sorted(p.name for p in tmp_path.iterdir()) == [LAST_UPDATED_ARTIFACT, DATASET_ARTIFACT]


def test_file_store_from_config_uses_guard_settings(tmp_path):
    config = make_config(data_dir=str(tmp_path), zero_stats_max_ratio=0.5, regression_min_ratio=0.9)

    store = FileArtifactStore.from_config(config)

    assert store.data_dir == tmp_path
    assert store.zero_stats_max_ratio == 0.5
    assert store.regression_min_ratio == 0.9


def test_movers_round_trip():
    store = MemoryArtifactStore()
    mover = make_mover("9", absolute=5_000_000, relative=25.0)
    result = MoversResult(
        repeat_movers=[[mover, make_mover("9", 1_000_000, 50.0, period="2025-07-01")]],
        periods=[PeriodResult(period="2026-01-01", movers=[mover])],
    )

    store.publish_movers("losers", result)

    assert store.load_movers("losers") == result
    assert store.load_movers("winners") is None
    assert "repeatMovers" in store.read("biggest-losers.json")


def test_unknown_movers_direction_is_rejected():
    with pytest.raises(ValueError):
        MemoryArtifactStore().publish_movers("sideways", MoversResult())


def test_stats_cache_round_trip_and_age():
    started = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    cache = StatsCache(started_at=started.isoformat(), entries={"4": PlayerStats(minutes=90, goals=1)})
    store = MemoryArtifactStore()

    store.save_stats_cache(cache)
    loaded = store.load_stats_cache()

    assert loaded == cache
    assert loaded.age_hours(now=started + timedelta(hours=3)) == pytest.approx(3.0)


def test_clear_stats_cache_leaves_an_empty_cache():
    store = MemoryArtifactStore()
    store.save_stats_cache(StatsCache(started_at="2026-03-01T12:00:00+00:00", entries={"4": PlayerStats()}))

    store.clear_stats_cache()

    assert store.load_stats_cache().entries == {}
    assert json.loads(store._artifacts["player-stats-cache.json"])["startedAt"]
