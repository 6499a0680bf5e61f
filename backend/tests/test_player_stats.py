import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from models.player import PlayerStats
from refresh.backoff import AcquisitionPhase
from refresh.errors import AcquisitionExhaustedError, DataIntegrityError
from refresh.player_stats import PlayerStatsRefresher
from storage.artifact_store import StatsCache

from conftest import FakeParser, FakeTransfermarktClient, make_config

PLAYER_IDS = [str(i) for i in range(1, 11)]


def _parser(stats=None):
    return FakeParser(
        value_rows={
            "value-1": [
                {"player_id": pid, "name": f"P{pid}", "market_value": int(pid) * 1_000_000}
                for pid in PLAYER_IDS[:6]
            ],
            "value-2": [
                {"player_id": pid, "name": f"P{pid}", "market_value": int(pid) * 1_000_000}
                for pid in PLAYER_IDS[6:]
            ],
        },
        minutes_rows={
            "minutes-1": [{"player_id": "11", "name": "Minutes Only", "minutes": 3000}],
        },
        stats=stats or {
            f"stats:{pid}": PlayerStats(minutes=900 + int(pid), goals=int(pid) % 4, assists=1)
            for pid in PLAYER_IDS + ["11"]
        },
    )


def _client(stats_failures=None, value_pages=None):
    return FakeTransfermarktClient(
        value_pages=value_pages if value_pages is not None else {1: "value-1", 2: "value-2"},
        minutes_pages={1: "minutes-1"},
        stats_failures=stats_failures,
    )


def test_refresh_merges_listings_fetches_stats_and_publishes(store, sleep):
    client = _client()
    refresher = PlayerStatsRefresher(client, _parser(), store, make_config(), sleep=sleep)

    dataset, version = asyncio.run(refresher.refresh())

    assert len(dataset) == 11
    # Minutes-only identity keeps the default value; fetched stats replace listing minutes
    assert dataset.get("11").market_value == 0
    assert dataset.get("11").minutes == 911
    assert dataset.get("10").market_value == 10_000_000
    assert dataset.get("10").minutes == 910
    assert sorted(client.stats_requests) == sorted(PLAYER_IDS + ["11"])
    assert version.version == 1
    assert store.current_dataset() == dataset


def test_empty_listing_page_is_tolerated(store, sleep):
    client = _client(value_pages={1: "value-1"})
    refresher = PlayerStatsRefresher(client, _parser(), store, make_config(), sleep=sleep)

    dataset = asyncio.run(refresher.fetch_listings())

    assert sorted(dataset.players) == sorted(PLAYER_IDS[:6] + ["11"])


def test_batches_follow_concurrency_and_cache_is_saved_each_batch(store, sleep):
    saves = []
    original_save = store.save_stats_cache
    store.save_stats_cache = lambda cache: (saves.append(len(cache.entries)), original_save(cache))
    refresher = PlayerStatsRefresher(_client(), _parser(), store, make_config(initial_concurrency=4), sleep=sleep)

    asyncio.run(refresher.fetch_all_stats(PLAYER_IDS, resume=False))

    assert saves == [4, 8, 10]
    assert len(sleep.calls) == 2


def test_failed_players_are_recovered_in_retry_rounds(store, sleep):
    client = _client(stats_failures={"3": 1, "7": 2})
    config = make_config(initial_delay=1.0, min_delay=0.5, max_delay=60.0)
    refresher = PlayerStatsRefresher(client, _parser(), store, config, sleep=sleep)

    stats = asyncio.run(refresher.fetch_all_stats(PLAYER_IDS, resume=False))

    assert set(stats) == set(PLAYER_IDS)
    assert client.stats_requests.count("3") == 2
    assert client.stats_requests.count("7") == 3
    assert refresher.state.round == 2
    # Pause before each round is initial_delay * 2^round
    assert 2.0 in sleep.calls and 4.0 in sleep.calls


def test_high_failure_batch_halves_concurrency(store, sleep):
    client = _client(stats_failures={"1": 1, "2": 1})
    refresher = PlayerStatsRefresher(client, _parser(), store, make_config(initial_concurrency=4), sleep=sleep)

    asyncio.run(refresher._run_pass(PLAYER_IDS[:4]))

    assert refresher.state.concurrency == 2
    assert refresher.state.phase is AcquisitionPhase.BACKOFF


def test_exhausted_retries_abort_without_publishing(store, sleep):
    client = _client(stats_failures={"5": -1})
    config = make_config(max_retry_rounds=2)
    refresher = PlayerStatsRefresher(client, _parser(), store, config, sleep=sleep)

    with pytest.raises(AcquisitionExhaustedError) as excinfo:
        asyncio.run(refresher.refresh())

    assert excinfo.value.failed_ids == ["5"]
    assert client.stats_requests.count("5") == 3
    assert refresher.state.phase is AcquisitionPhase.EXHAUSTED
    assert store.current_dataset() is None
    # Partial progress survives for the next run
    assert len(store.load_stats_cache().entries) == 10


def test_recent_cache_is_resumed(store, sleep):
    cached = {pid: PlayerStats(minutes=1, goals=1) for pid in PLAYER_IDS[:5]}
    store.save_stats_cache(StatsCache(started_at=datetime.now(timezone.utc).isoformat(), entries=cached))
    client = _client()
    refresher = PlayerStatsRefresher(client, _parser(), store, make_config(), sleep=sleep)

    stats = asyncio.run(refresher.fetch_all_stats(PLAYER_IDS))

    assert sorted(client.stats_requests) == sorted(PLAYER_IDS[5:])
    assert stats["1"] == PlayerStats(minutes=1, goals=1)


def test_stale_cache_is_ignored(store, sleep):
    started = datetime.now(timezone.utc) - timedelta(hours=48)
    store.save_stats_cache(StatsCache(started_at=started.isoformat(), entries={"1": PlayerStats(minutes=1)}))
    client = _client()
    refresher = PlayerStatsRefresher(client, _parser(), store, make_config(), sleep=sleep)

    asyncio.run(refresher.fetch_all_stats(PLAYER_IDS))

    assert "1" in client.stats_requests


def test_zero_stats_run_is_not_published(store, sleep):
    zeros = {f"stats:{pid}": PlayerStats() for pid in PLAYER_IDS + ["11"]}
    refresher = PlayerStatsRefresher(_client(), _parser(stats=zeros), store, make_config(), sleep=sleep)

    with pytest.raises(DataIntegrityError):
        asyncio.run(refresher.refresh(resume=False))

    assert store.current_dataset() is None
    assert store.current_version() is None
    # The rejected stats are not resumed by the next run
    assert store.load_stats_cache().entries == {}


def test_successful_refresh_clears_cache_so_next_run_fetches_again(store, sleep):
    first_client = _client()
    asyncio.run(PlayerStatsRefresher(first_client, _parser(), store, make_config(), sleep=sleep).refresh())

    assert store.load_stats_cache().entries == {}

    updated = {f"stats:{pid}": PlayerStats(minutes=1800, goals=2) for pid in PLAYER_IDS + ["11"]}
    second_client = _client()
    refresher = PlayerStatsRefresher(second_client, _parser(stats=updated), store, make_config(), sleep=sleep)
    dataset, version = asyncio.run(refresher.refresh())

    assert sorted(second_client.stats_requests) == sorted(PLAYER_IDS + ["11"])
    assert dataset.get("1").minutes == 1800
    assert store.current_dataset().get("1").minutes == 1800
    assert version.version == 2


def test_same_refresher_fetches_fresh_stats_on_every_refresh(store, sleep):
    client = _client()
    refresher = PlayerStatsRefresher(client, _parser(), store, make_config(), sleep=sleep)

    asyncio.run(refresher.refresh())
    asyncio.run(refresher.refresh(resume=False))

    assert client.stats_requests.count("1") == 2


def test_run_after_rejected_zero_stats_publishes_once_parser_is_fixed(store, sleep):
    zeros = {f"stats:{pid}": PlayerStats() for pid in PLAYER_IDS + ["11"]}
    with pytest.raises(DataIntegrityError):
        asyncio.run(PlayerStatsRefresher(_client(), _parser(stats=zeros), store, make_config(), sleep=sleep).refresh())

    client = _client()
    dataset, version = asyncio.run(
        PlayerStatsRefresher(client, _parser(), store, make_config(), sleep=sleep).refresh()
    )

    assert sorted(client.stats_requests) == sorted(PLAYER_IDS + ["11"])
    assert dataset.get("10").minutes == 910
    assert version.version == 1


class BrokenPageParser(FakeParser):
    def parse_value_listing(self, html):
        if html == "value-2":
            raise ValueError("unexpected table layout")
        return super().parse_value_listing(html)


def test_unparseable_listing_page_is_skipped(store, sleep):
    base = _parser()
    parser = BrokenPageParser(base.value_rows, base.minutes_rows, base.stats)
    refresher = PlayerStatsRefresher(_client(), parser, store, make_config(), sleep=sleep)

    dataset = asyncio.run(refresher.fetch_listings())

    assert sorted(dataset.players) == sorted(PLAYER_IDS[:6] + ["11"])
