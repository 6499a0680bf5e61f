from typing import Dict, List, Optional

import pytest

from config import Config
from models.movers import ValueMoverRecord
from models.player import PlayerRecord, PlayerStats
from storage.artifact_store import MemoryArtifactStore


def make_config(**overrides) -> Config:
    settings = dict(
        max_requests_per_minute=100_000,
        min_request_interval=0.0,
        fetch_retry_delay=0.0,
        value_listing_pages=2,
        minutes_listing_pages=1,
        initial_concurrency=4,
        min_concurrency=1,
        initial_delay=0.0,
        min_delay=0.0,
        max_delay=0.0,
        mover_period_count=6,
        mover_batch_size=2,
        data_dir="unused",
    )
    settings.update(overrides)
    return Config(**settings)


def make_player(player_id: str, **fields) -> PlayerRecord:
    defaults = dict(
        name=f"Player {player_id}",
        position="Centre-Forward",
        market_value=10_000_000,
        minutes=900,
        goals=0,
        assists=0,
    )
    defaults.update(fields)
    return PlayerRecord(player_id=player_id, **defaults)


def make_mover(player_id: str, absolute: float, relative: float, period: str = "2026-01-01") -> ValueMoverRecord:
    return ValueMoverRecord(
        player_id=player_id,
        period=period,
        name=f"Player {player_id}",
        absolute_change=absolute,
        relative_change=relative,
    )


class FakeParser:
    """Parser over plain-text fixtures: pages are keys into prepared tables."""

    def __init__(
        self,
        value_rows: Optional[Dict[str, List[dict]]] = None,
        minutes_rows: Optional[Dict[str, List[dict]]] = None,
        stats: Optional[Dict[str, PlayerStats]] = None,
        movers: Optional[Dict[str, List[ValueMoverRecord]]] = None,
    ):
        self.value_rows = value_rows or {}
        self.minutes_rows = minutes_rows or {}
        self.stats = stats or {}
        self.movers = movers or {}

    def parse_value_listing(self, html: str) -> List[dict]:
        return self.value_rows.get(html, [])

    def parse_minutes_listing(self, html: str) -> List[dict]:
        return self.minutes_rows.get(html, [])

    def parse_player_stats(self, html: str) -> PlayerStats:
        return self.stats[html]

    def parse_period_movers(self, html: str, period: str) -> List[ValueMoverRecord]:
        return self.movers.get(html, [])


class FakeTransfermarktClient:
    """Stands in for TransfermarktClient; each getter returns a page key or ""."""

    def __init__(self, value_pages=None, minutes_pages=None, stats_failures=None, mover_pages=None):
        self.value_pages = value_pages or {}
        self.minutes_pages = minutes_pages or {}
        # player_id -> number of leading attempts that come back empty
        self.stats_failures = dict(stats_failures or {})
        self.mover_pages = mover_pages or {}
        self.stats_requests: List[str] = []
        self.mover_requests: List[tuple] = []

    async def get_value_listing_page(self, page: int) -> str:
        return self.value_pages.get(page, "")

    async def get_minutes_listing_page(self, page: int) -> str:
        return self.minutes_pages.get(page, "")

    async def get_player_stats_page(self, player_id: str) -> str:
        self.stats_requests.append(player_id)
        remaining = self.stats_failures.get(player_id, 0)
        if remaining == -1:
            return ""
        if remaining > 0:
            self.stats_failures[player_id] = remaining - 1
            return ""
        return f"stats:{player_id}"

    async def get_period_movers_page(self, period: str, direction: str) -> str:
        self.mover_requests.append((period, direction))
        return self.mover_pages.get((period, direction), "")


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def store() -> MemoryArtifactStore:
    return MemoryArtifactStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
