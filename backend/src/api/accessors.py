"""
Read-only pulls for the presentation layer.

Everything here reads published snapshots from an ArtifactStore; nothing
triggers a fetch. Discrepancies are computed fresh on every call.
"""

import logging
from typing import Dict, Iterable, List, Optional, TypeVar

from analysis.positions import filter_by_position, resolve_position_type
from analysis.value_discrepancy import DiscrepancyCandidate, find_value_candidates
from models.movers import DIRECTIONS, MoversResult
from models.player import MergedDataset, PlayerRecord
from storage.artifact_store import ArtifactStore, DatasetVersion

logger = logging.getLogger(__name__)

TOP_5_LEAGUES = ("Premier League", "LaLiga", "Bundesliga", "Serie A", "Ligue 1")

P = TypeVar("P", bound=PlayerRecord)


def filter_players_by_league_and_club(
    players: Iterable[P],
    league: str = "all",
    club: str = "all"
) -> List[P]:
    """`"all"` (or an empty club) disables that filter."""
    return [
        p for p in players
        if (league == "all" or p.league == league)
        and (club == "all" or not club or p.club == club)
    ]


def filter_top5(players: Iterable[P]) -> List[P]:
    return [p for p in players if p.league in TOP_5_LEAGUES]


def get_dataset(store: ArtifactStore) -> MergedDataset:
    """The canonical dataset, or an empty one before the first publish."""
    dataset = store.current_dataset()
    if dataset is None:
        logger.warning("No dataset published yet")
        return MergedDataset()
    return dataset


def get_last_updated(store: ArtifactStore) -> Optional[DatasetVersion]:
    return store.current_version()


def get_players(
    store: ArtifactStore,
    position_type: str = "all",
    league: str = "all",
    club: str = "all"
) -> List[PlayerRecord]:
    """
    Raises:
        ValueError: For an unknown position type
    """
    resolved = resolve_position_type(position_type)
    if resolved is None:
        raise ValueError(f"Invalid position type {position_type!r}")
    players = filter_by_position(get_dataset(store).records(), resolved)
    return filter_players_by_league_and_club(players, league, club)


def get_discrepancies(
    store: ArtifactStore,
    candidate_outperforms: bool,
    min_minutes: Optional[int] = None,
    sort_ascending: bool = True
) -> List[DiscrepancyCandidate]:
    """Bargains (candidate_outperforms=True) or overpriced players from the dataset."""
    return find_value_candidates(
        get_dataset(store).records(),
        candidate_outperforms=candidate_outperforms,
        min_minutes=min_minutes,
        sort_ascending=sort_ascending,
    )


def get_movers(store: ArtifactStore) -> Dict[str, MoversResult]:
    """Both mover snapshots; a direction never published reads as empty."""
    return {
        direction: store.load_movers(direction) or MoversResult()
        for direction in DIRECTIONS
    }
