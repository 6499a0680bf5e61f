"""
Player stats refresh module.

Builds the canonical dataset: merges the value-ranked and minutes-ranked
listings, fetches one stats page per player in closed batches with adaptive
pacing and retry rounds, then publishes through the integrity guards.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Sequence, Tuple

from config import Config
from models.player import MergedDataset, PartialRecord, PlayerStats, merge_listings
from refresh.backoff import (
    AcquisitionState,
    BatchResult,
    ConcurrencyPolicy,
    after_batch,
    exhaust,
    initial_state,
    start_retry_round,
)
from refresh.errors import AcquisitionExhaustedError, DataIntegrityError
from storage.artifact_store import ArtifactStore, DatasetVersion, StatsCache
from tm_api.client import TransfermarktClient
from tm_api.parsers import PageParser

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class PlayerStatsRefresher:
    """Handles the canonical player dataset refresh."""

    def __init__(
        self,
        tm_client: TransfermarktClient,
        parser: PageParser,
        store: ArtifactStore,
        config: Config,
        sleep: Sleep = asyncio.sleep
    ):
        self.tm_client = tm_client
        self.parser = parser
        self.store = store
        self.config = config
        self.policy = ConcurrencyPolicy.from_config(config)
        self._sleep = sleep
        self.state: AcquisitionState = initial_state(self.policy)
        self.cache = StatsCache.fresh()

    async def _fetch_listing(
        self,
        pages: int,
        fetch: Callable[[int], Awaitable[str]],
        parse: Callable[[str], List[PartialRecord]],
        label: str
    ) -> List[PartialRecord]:
        """Fetch every page of one listing concurrently; empty pages are skipped."""
        results = await asyncio.gather(
            *[fetch(page) for page in range(1, pages + 1)],
            return_exceptions=True
        )

        rows: List[PartialRecord] = []
        empty_pages = []
        for page, result in enumerate(results, start=1):
            if isinstance(result, BaseException):
                logger.warning("Listing page failed", extra={
                    "listing": label,
                    "page": page,
                    "error": str(result)
                })
                empty_pages.append(page)
                continue
            if not result:
                empty_pages.append(page)
                continue
            try:
                rows.extend(parse(result))
            except Exception as e:
                logger.warning("Listing page could not be parsed", extra={
                    "listing": label,
                    "page": page,
                    "error": str(e),
                    "error_type": type(e).__name__
                })
                empty_pages.append(page)

        logger.info("Fetched listing", extra={
            "listing": label,
            "pages": pages,
            "empty_pages": empty_pages,
            "rows": len(rows)
        })
        return rows

    async def fetch_listings(self) -> MergedDataset:
        """Merge the value-ranked listing with the minutes-ranked overlay."""
        value_rows, minutes_rows = await asyncio.gather(
            self._fetch_listing(
                self.config.value_listing_pages,
                self.tm_client.get_value_listing_page,
                self.parser.parse_value_listing,
                "value"
            ),
            self._fetch_listing(
                self.config.minutes_listing_pages,
                self.tm_client.get_minutes_listing_page,
                self.parser.parse_minutes_listing,
                "minutes"
            ),
        )
        dataset = merge_listings(value_rows, minutes_rows)
        logger.info("Merged listings", extra={"players": len(dataset)})
        return dataset

    async def _fetch_one(self, player_id: str) -> PlayerStats:
        """
        Fetch and parse one player's stats page.

        Raises:
            ValueError: If the page came back empty after retries
        """
        html = await self.tm_client.get_player_stats_page(player_id)
        if not html:
            raise ValueError(f"No stats page for player {player_id}")
        return self.parser.parse_player_stats(html)

    async def _run_batch(self, batch: Sequence[str]) -> List[str]:
        """Fetch one closed batch. Successes go to the cache; failed ids are returned."""
        results = await asyncio.gather(
            *[self._fetch_one(pid) for pid in batch],
            return_exceptions=True
        )

        failed = []
        for player_id, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.debug("Player stats fetch failed", extra={
                    "player_id": player_id,
                    "error": str(result)
                })
                failed.append(player_id)
            else:
                self.cache.entries[player_id] = result
        return failed

    async def _run_pass(self, player_ids: Sequence[str]) -> List[str]:
        """One pass over player_ids in adaptive batches. Returns ids that failed."""
        failed: List[str] = []
        position = 0
        batch_number = 0

        while position < len(player_ids):
            batch = player_ids[position:position + self.state.concurrency]
            position += len(batch)
            batch_number += 1

            batch_failed = await self._run_batch(batch)
            failed.extend(batch_failed)
            self.store.save_stats_cache(self.cache)

            previous = self.state
            self.state = after_batch(
                self.state,
                BatchResult(attempted=len(batch), failed=len(batch_failed)),
                self.policy
            )
            logger.info("Batch complete", extra={
                "round": self.state.round,
                "batch": batch_number,
                "attempted": len(batch),
                "failed": len(batch_failed),
                "remaining": len(player_ids) - position,
                "phase": self.state.phase.value,
                "concurrency": self.state.concurrency,
                "delay": self.state.delay
            })
            if self.state.concurrency != previous.concurrency:
                logger.info("Concurrency adjusted", extra={
                    "from": previous.concurrency,
                    "to": self.state.concurrency,
                    "delay": self.state.delay
                })

            if position < len(player_ids):
                await self._sleep(self.state.delay)

        return failed

    def _resume_cache(self) -> None:
        """Reuse a partial cache from an interrupted run if it is recent enough."""
        cached = self.store.load_stats_cache()
        if cached is None or not cached.entries:
            self.cache = StatsCache.fresh()
            return
        age = cached.age_hours()
        if age > self.config.stats_cache_ttl_hours:
            logger.info("Discarding stale stats cache", extra={
                "age_hours": round(age, 2),
                "entries": len(cached.entries)
            })
            self.cache = StatsCache.fresh()
            return
        self.cache = cached
        logger.info("Resuming from stats cache", extra={
            "age_hours": round(age, 2),
            "entries": len(cached.entries)
        })

    async def fetch_all_stats(
        self,
        player_ids: Sequence[str],
        resume: bool = True
    ) -> Dict[str, PlayerStats]:
        """
        Fetch stats for every player, retrying failures in backoff rounds.

        Returns:
            Stats keyed by player id, covering every requested id

        Raises:
            AcquisitionExhaustedError: If ids still fail after the last round
        """
        if resume:
            self._resume_cache()
        else:
            self.cache = StatsCache.fresh()

        pending = [pid for pid in player_ids if pid not in self.cache.entries]
        logger.info("Fetching player stats", extra={
            "players": len(player_ids),
            "cached": len(player_ids) - len(pending),
            "concurrency": self.state.concurrency
        })

        failed = await self._run_pass(pending)

        for round_number in range(1, self.policy.max_retry_rounds + 1):
            if not failed:
                break
            self.state = start_retry_round(self.state, round_number, self.policy)
            logger.warning("Starting retry round", extra={
                "round": round_number,
                "failed": len(failed),
                "concurrency": self.state.concurrency,
                "delay": self.state.delay
            })
            await self._sleep(self.state.delay)
            failed = await self._run_pass(failed)

        if failed:
            self.state = exhaust(self.state)
            logger.error("Retry rounds exhausted", extra={
                "failed": len(failed),
                "rounds": self.policy.max_retry_rounds
            })
            raise AcquisitionExhaustedError(failed, self.policy.max_retry_rounds)

        return {pid: self.cache.entries[pid] for pid in player_ids}

    async def refresh(self, resume: bool = True) -> Tuple[MergedDataset, DatasetVersion]:
        """
        Full refresh: listings, per-player stats, guarded publish.

        Raises:
            AcquisitionExhaustedError: If stats acquisition did not complete
            DataIntegrityError: If a pre-publish guard rejected the dataset
        """
        listings = await self.fetch_listings()
        stats = await self.fetch_all_stats(listings.player_ids(), resume=resume)
        dataset = listings.with_stats(stats)
        try:
            version = self.store.publish_dataset(dataset, fetched_ids=list(stats))
        except DataIntegrityError:
            # Rejected stats must not be resumed by the next run
            self._reset_cache()
            raise

        self._reset_cache()
        return dataset, version

    def _reset_cache(self) -> None:
        self.cache = StatsCache.fresh()
        self.store.clear_stats_cache()
        logger.info("Cleared stats cache")
