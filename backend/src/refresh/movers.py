"""
Market value movers refresh module.

For each valuation period Transfermarkt lists every player whose value moved.
A ratchet rule picks the notable ones: the biggest absolute mover always, then
walking down tiers of equal absolute change, only players whose relative change
beats everything selected so far. Players picked in two or more periods are
repeat movers.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

from config import Config
from models.movers import DIRECTIONS, MoversResult, PeriodResult, ValueMoverRecord
from storage.artifact_store import ArtifactStore
from tm_api.client import TransfermarktClient
from tm_api.parsers import PageParser
from utils.formatting import format_market_value, format_percent

logger = logging.getLogger(__name__)

NOUNS = {"losers": "loss", "winners": "gain"}


@dataclass
class MoverSelection:
    movers: List[ValueMoverRecord] = field(default_factory=list)
    # Threshold in force after the seed and after each accepted tier
    thresholds: List[float] = field(default_factory=list)


def select_period_movers(
    candidates: Sequence[ValueMoverRecord],
    direction: str
) -> MoverSelection:
    """
    Pick the notable movers of one period.

    Args:
        candidates: Every mover of the period
        direction: "losers" or "winners", used in the reason text

    Returns:
        Selected movers (annotated copies) and the threshold sequence
    """
    if not candidates:
        return MoverSelection()
    noun = NOUNS[direction]

    ranked = sorted(candidates, key=lambda m: m.absolute_change, reverse=True)
    seed = ranked[0]
    threshold = seed.relative_change
    selection = MoverSelection(
        movers=[seed.model_copy(update={"reason": (
            f"Biggest absolute {noun} ({format_market_value(seed.absolute_change)}). "
            f"Relative: {format_percent(seed.relative_change)} → sets initial threshold."
        )})],
        thresholds=[threshold],
    )

    i = 1
    while i < len(ranked):
        tier_value = ranked[i].absolute_change
        tier = []
        while i < len(ranked) and ranked[i].absolute_change == tier_value:
            tier.append(ranked[i])
            i += 1

        qualifying = [m for m in tier if m.relative_change > threshold]
        if not qualifying:
            break

        selection.movers.extend(
            m.model_copy(update={"reason": (
                f"Tier {format_market_value(tier_value)} {noun}: "
                f"{format_percent(m.relative_change)} relative > {format_percent(threshold)} threshold."
            )})
            for m in qualifying
        )
        threshold = max(threshold, max(m.relative_change for m in qualifying))
        selection.thresholds.append(threshold)

    return selection


class RepeatMoverAccumulator:
    """Collects every period each player was selected in."""

    def __init__(self):
        self._by_player: Dict[str, List[ValueMoverRecord]] = {}

    def add(self, movers: Sequence[ValueMoverRecord]) -> None:
        for mover in movers:
            self._by_player.setdefault(mover.player_id, []).append(mover)

    def periods_for(self, player_id: str) -> List[str]:
        return [m.period for m in self._by_player.get(player_id, [])]

    def repeat_groups(self) -> List[List[ValueMoverRecord]]:
        """Groups of two or more selections, each ordered by period."""
        return [
            sorted(selections, key=lambda m: m.period)
            for selections in self._by_player.values()
            if len(selections) >= 2
        ]


def period_dates(anchor: date, count: int, step_months: int) -> List[str]:
    """ISO dates from anchor going back step_months at a time, newest first."""
    dates = []
    year, month = anchor.year, anchor.month
    for _ in range(count):
        dates.append(date(year, month, 1).isoformat())
        month -= step_months
        while month <= 0:
            month += 12
            year -= 1
    return dates


def default_anchor(today: Optional[date] = None) -> date:
    """Most recent 1 January or 1 July, the dates Transfermarkt movers are published for."""
    today = today or date.today()
    return date(today.year, 1 if today.month < 7 else 7, 1)


class MoversRefresher:
    """Scans valuation periods for repeat market value movers."""

    def __init__(
        self,
        tm_client: TransfermarktClient,
        parser: PageParser,
        store: ArtifactStore,
        config: Config,
        anchor: Optional[date] = None
    ):
        self.tm_client = tm_client
        self.parser = parser
        self.store = store
        self.config = config
        self.anchor = anchor or default_anchor()

    async def _fetch_period(self, period: str, direction: str) -> List[ValueMoverRecord]:
        html = await self.tm_client.get_period_movers_page(period, direction)
        if not html:
            return []
        return self.parser.parse_period_movers(html, period)

    async def _fetch_batch(
        self,
        periods: Sequence[str],
        direction: str
    ) -> Dict[str, List[ValueMoverRecord]]:
        """Fetch a batch of periods concurrently; failed or empty periods are left out."""
        results = await asyncio.gather(
            *[self._fetch_period(period, direction) for period in periods],
            return_exceptions=True
        )
        by_period: Dict[str, List[ValueMoverRecord]] = {}
        for period, result in zip(periods, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to fetch movers period", extra={
                    "direction": direction,
                    "period": period,
                    "error": str(result)
                })
            elif result:
                by_period[period] = result
        return by_period

    async def scan(self, direction: str) -> MoversResult:
        """
        Walk periods newest first in batches until a repeat mover shows up.

        Stopping early only bounds request volume; a full scan yields the same
        groups plus any later ones.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown direction {direction!r}, expected one of {DIRECTIONS}")

        all_periods = period_dates(
            self.anchor,
            self.config.mover_period_count,
            self.config.mover_period_step_months
        )
        batch_size = self.config.mover_batch_size
        accumulator = RepeatMoverAccumulator()
        processed: List[PeriodResult] = []

        for start in range(0, len(all_periods), batch_size):
            batch = all_periods[start:start + batch_size]
            logger.info("Fetching movers batch", extra={"direction": direction, "periods": batch})
            batch_results = await self._fetch_batch(batch, direction)

            for period in batch:
                candidates = batch_results.get(period)
                if not candidates:
                    continue
                selection = select_period_movers(candidates, direction)
                processed.append(PeriodResult(period=period, movers=selection.movers))
                accumulator.add(selection.movers)
                logger.info("Selected period movers", extra={
                    "direction": direction,
                    "period": period,
                    "candidates": len(candidates),
                    "selected": len(selection.movers)
                })

            repeats = accumulator.repeat_groups()
            if repeats:
                logger.info("Found repeat movers", extra={
                    "direction": direction,
                    "repeat_groups": len(repeats),
                    "periods": len(processed)
                })
                return MoversResult(repeat_movers=repeats, periods=processed)

        logger.info("No repeat movers across all periods", extra={"direction": direction})
        return MoversResult(repeat_movers=[], periods=processed)

    async def refresh(self, direction: str) -> MoversResult:
        """Scan one direction and replace its published snapshot."""
        result = await self.scan(direction)
        self.store.publish_movers(direction, result)
        return result

    async def refresh_all(self) -> Dict[str, MoversResult]:
        results = {}
        for direction in DIRECTIONS:
            results[direction] = await self.refresh(direction)
        return results
