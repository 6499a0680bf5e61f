"""
Value discrepancy detection.

A bargain is a player who strictly outperforms at least two comparable players
who cost at least as much. An overpriced player is strictly outperformed by at
least two comparable players who cost at most as much. Candidates that are
themselves beaten by another candidate are dropped, so each chain of
dominance is reported once, at its frontier.
"""

from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from analysis.positions import (
    AMBIGUOUS_POSITIONS,
    can_be_outperformer_against,
    can_be_underperformer_against,
    is_defensive_position,
    strictly_outperforms,
)
from models.player import PlayerRecord

MIN_COMPARATORS = 2


class DiscrepancyCandidate(BaseModel):
    player: PlayerRecord
    # Comparable players this one beats (bargains) or is beaten by (overpriced)
    count: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


def _is_comparator(
    player: PlayerRecord,
    other: PlayerRecord,
    candidate_outperforms: bool,
    exclude_penalties: bool
) -> bool:
    if other.player_id == player.player_id:
        return False
    if candidate_outperforms:
        return (
            other.market_value >= player.market_value
            and strictly_outperforms(player, other, exclude_penalties)
            and can_be_underperformer_against(other.position, player.position)
        )
    return (
        other.market_value <= player.market_value
        and strictly_outperforms(other, player, exclude_penalties)
        and can_be_outperformer_against(other.position, player.position)
    )


def _beats_candidate(
    player: PlayerRecord,
    other: PlayerRecord,
    candidate_outperforms: bool,
    exclude_penalties: bool
) -> bool:
    """Whether candidate `other` makes candidate `player` redundant."""
    if other.player_id == player.player_id:
        return False
    if candidate_outperforms:
        return (
            can_be_underperformer_against(player.position, other.position)
            and other.market_value <= player.market_value
            and strictly_outperforms(other, player, exclude_penalties)
        )
    return (
        can_be_underperformer_against(other.position, player.position)
        and other.market_value >= player.market_value
        and strictly_outperforms(player, other, exclude_penalties)
    )


def undominated(
    candidates: Sequence[DiscrepancyCandidate],
    candidate_outperforms: bool,
    exclude_penalties: bool = False
) -> List[DiscrepancyCandidate]:
    """Drop candidates that another candidate beats from a better position."""
    return [
        candidate for candidate in candidates
        if not any(
            _beats_candidate(candidate.player, other.player, candidate_outperforms, exclude_penalties)
            for other in candidates
        )
    ]


def is_eligible_candidate(player: PlayerRecord) -> bool:
    return not is_defensive_position(player.position) and player.position not in AMBIGUOUS_POSITIONS


def find_value_candidates(
    players: Iterable[PlayerRecord],
    candidate_outperforms: bool,
    min_minutes: Optional[int] = None,
    sort_ascending: bool = True,
    exclude_penalties: bool = False
) -> List[DiscrepancyCandidate]:
    """
    Find bargains (candidate_outperforms=True) or overpriced players (False).

    Players without a minutes figure are ignored entirely, and min_minutes
    applies to candidates and comparators alike.

    Returns:
        Undominated candidates sorted by market value
    """
    pool = [
        p for p in players
        if p.minutes is not None and (min_minutes is None or p.minutes >= min_minutes)
    ]

    candidates = []
    for player in pool:
        if not is_eligible_candidate(player):
            continue
        count = sum(
            1 for other in pool
            if _is_comparator(player, other, candidate_outperforms, exclude_penalties)
        )
        if count >= MIN_COMPARATORS:
            candidates.append(DiscrepancyCandidate(player=player, count=count))

    survivors = undominated(candidates, candidate_outperforms, exclude_penalties)
    return sorted(
        survivors,
        key=lambda c: c.player.market_value,
        reverse=not sort_ascending
    )
