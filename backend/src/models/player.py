"""
Player records and the listing merge.

The canonical dataset is the union of two independently paginated Transfermarkt
listings (value-ranked and minutes-ranked). Listing rows arrive as partial
records: a dict holding whatever fields that listing carries. Missing fields
fall back to FIELD_DEFAULTS, the one place defaults are defined.
"""

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

PartialRecord = Dict[str, Any]

COUNTER_FIELDS = (
    "minutes",
    "appearances",
    "goals",
    "assists",
    "penalty_goals",
    "penalty_misses",
    "intl_minutes",
    "intl_appearances",
    "intl_goals",
    "intl_assists",
)

FIELD_DEFAULTS: Dict[str, Any] = {
    "name": "",
    "position": "",
    "club": "",
    "league": "",
    "nationality": "",
    "age": 0,
    "market_value": 0,
    "market_value_display": "",
    "minutes": 0,
    "appearances": 0,
    "goals": 0,
    "assists": 0,
    "penalty_goals": 0,
    "penalty_misses": 0,
    "intl_minutes": 0,
    "intl_appearances": 0,
    "intl_goals": 0,
    "intl_assists": 0,
    "is_new_signing": False,
    "is_on_loan": False,
    "profile_url": "",
    "image_url": "",
}


class PlayerRecord(BaseModel):
    """One player in a dataset snapshot."""

    player_id: str = Field(..., min_length=1)
    name: str = ""
    position: str = ""
    club: str = ""
    league: str = ""
    nationality: str = ""
    age: int = Field(0, ge=0)
    market_value: int = Field(0, ge=0)
    market_value_display: str = ""
    # None means the source gave no minutes figure at all
    minutes: Optional[int] = Field(0, ge=0)
    appearances: int = Field(0, ge=0)
    goals: int = Field(0, ge=0)
    assists: int = Field(0, ge=0)
    penalty_goals: int = Field(0, ge=0)
    penalty_misses: int = Field(0, ge=0)
    intl_minutes: int = Field(0, ge=0)
    intl_appearances: int = Field(0, ge=0)
    intl_goals: int = Field(0, ge=0)
    intl_assists: int = Field(0, ge=0)
    is_new_signing: bool = False
    is_on_loan: bool = False
    profile_url: str = ""
    image_url: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def points(self) -> int:
        return self.goals + self.assists


class PlayerStats(BaseModel):
    """Performance figures read from one player's stats page."""

    minutes: int = Field(0, ge=0)
    appearances: int = Field(0, ge=0)
    goals: int = Field(0, ge=0)
    assists: int = Field(0, ge=0)
    penalty_goals: int = Field(0, ge=0)
    penalty_misses: int = Field(0, ge=0)
    intl_minutes: int = Field(0, ge=0)
    intl_appearances: int = Field(0, ge=0)
    intl_goals: int = Field(0, ge=0)
    intl_assists: int = Field(0, ge=0)
    club: str = ""
    league: str = ""
    is_new_signing: bool = False
    is_on_loan: bool = False

    model_config = ConfigDict(frozen=True)


def apply_stats(record: PlayerRecord, stats: PlayerStats) -> PlayerRecord:
    """Overlay fetched stats on a listing record. Empty club/league keep the listing's."""
    updates: Dict[str, Any] = {name: getattr(stats, name) for name in COUNTER_FIELDS}
    updates["is_new_signing"] = stats.is_new_signing
    updates["is_on_loan"] = stats.is_on_loan
    if stats.club:
        updates["club"] = stats.club
    if stats.league:
        updates["league"] = stats.league
    return record.model_copy(update=updates)


def _overlay(base: PartialRecord, partial: Mapping[str, Any]) -> PartialRecord:
    merged = dict(base)
    for key, value in partial.items():
        if value is not None:
            merged[key] = value
    return merged


def _index(rows: Iterable[Mapping[str, Any]]) -> Dict[str, PartialRecord]:
    indexed: Dict[str, PartialRecord] = {}
    for row in rows:
        player_id = str(row.get("player_id") or "")
        if not player_id:
            continue
        # Duplicate rows across pages collapse onto one identity, later rows win
        indexed[player_id] = _overlay(indexed.get(player_id, {}), row)
    return indexed


def merge_listings(
    primary: Iterable[Mapping[str, Any]],
    overlay: Iterable[Mapping[str, Any]] = (),
) -> "MergedDataset":
    """
    Union two listings by player_id.

    For each identity the value of a field is the overlay's when present (not
    None), else the primary's, else FIELD_DEFAULTS. Every identity found in
    either listing appears exactly once.
    """
    primary_rows = _index(primary)
    overlay_rows = _index(overlay)

    players: Dict[str, PlayerRecord] = {}
    for player_id in list(primary_rows) + [pid for pid in overlay_rows if pid not in primary_rows]:
        partial = _overlay(FIELD_DEFAULTS, primary_rows.get(player_id, {}))
        partial = _overlay(partial, overlay_rows.get(player_id, {}))
        partial["player_id"] = player_id
        players[player_id] = PlayerRecord.model_validate(partial)

    return MergedDataset(players)


class MergedDataset:
    """Player records keyed by identity."""

    def __init__(self, players: Optional[Mapping[str, PlayerRecord]] = None):
        self.players: Dict[str, PlayerRecord] = dict(players or {})

    def __len__(self) -> int:
        return len(self.players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self.players

    def __iter__(self) -> Iterator[PlayerRecord]:
        return iter(self.records())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MergedDataset):
            return NotImplemented
        return self.players == other.players

    def get(self, player_id: str) -> Optional[PlayerRecord]:
        return self.players.get(player_id)

    def records(self) -> List[PlayerRecord]:
        """Records ordered by market value, most valuable first."""
        return sorted(self.players.values(), key=lambda p: p.market_value, reverse=True)

    def player_ids(self) -> List[str]:
        return [p.player_id for p in self.records()]

    def with_stats(self, stats_by_id: Mapping[str, PlayerStats]) -> "MergedDataset":
        """New dataset with fetched stats applied to matching identities."""
        return MergedDataset({
            player_id: apply_stats(record, stats_by_id[player_id]) if player_id in stats_by_id else record
            for player_id, record in self.players.items()
        })

    def total(self, counter: str) -> int:
        return sum(getattr(p, counter) or 0 for p in self.players.values())

    def to_list(self) -> List[Dict[str, Any]]:
        return [p.model_dump(mode="json") for p in self.records()]

    @classmethod
    def from_list(cls, rows: Iterable[Mapping[str, Any]]) -> "MergedDataset":
        records = [PlayerRecord.model_validate(row) for row in rows]
        return cls({r.player_id: r for r in records})
