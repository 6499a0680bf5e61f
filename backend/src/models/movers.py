"""Market value mover records and the per-direction scan result."""

from typing import List

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

DIRECTIONS = ("losers", "winners")


class ValueMoverRecord(BaseModel):
    """A player's valuation change at one period (ISO date of the valuation)."""

    player_id: str = Field(..., min_length=1)
    period: str = Field(..., min_length=1)
    name: str = ""
    position: str = ""
    club: str = ""
    nationality: str = ""
    age: int = Field(0, ge=0)
    current_value: float = Field(0, ge=0)
    previous_value: float = Field(0, ge=0)
    absolute_change: float = Field(0, ge=0)
    # Percent, stored as a magnitude for both directions
    relative_change: float = Field(0, ge=0)
    reason: str = ""
    profile_url: str = ""
    image_url: str = ""
    club_logo_url: str = ""

    model_config = ConfigDict(frozen=True)


class PeriodResult(BaseModel):
    period: str
    movers: List[ValueMoverRecord] = Field(default_factory=list)


class MoversResult(BaseModel):
    """Repeat-mover groups plus every period processed in the scan."""

    repeat_movers: List[List[ValueMoverRecord]] = Field(default_factory=list, alias="repeatMovers")
    periods: List[PeriodResult] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)
