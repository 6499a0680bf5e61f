"""
Position compatibility rules.

Decides whether two players' attacking output can be compared at all. Positions
are ranked from most to least attacking; a player may only be held up against
peers on the correct side of that ranking. Positions outside the known
vocabulary fail closed: they are never a valid comparator.
"""

from typing import Iterable, List, Optional, Protocol, Sequence, TypeVar

FORWARD_POSITIONS = frozenset({
    "Centre-Forward",
    "Left Winger",
    "Right Winger",
    "Second Striker",
})

DEFENSIVE_POSITIONS = frozenset({
    "Goalkeeper",
    "Centre-Back",
    "Left-Back",
    "Right-Back",
    "Defensive Midfield",
    "Left Wing-Back",
    "Right Wing-Back",
})

# Box-to-box or holding depending on the team; left out of value comparisons
AMBIGUOUS_POSITIONS = frozenset({"Central Midfield"})

POSITION_CLASS_MAP = {
    "Centre-Forward": "cf",
    "Left Winger": "forward",
    "Right Winger": "forward",
    "Second Striker": "forward",
    "Attacking Midfield": "attacking-midfield",
    "Central Midfield": "central-midfield",
}

POSITION_CLASS_RANK = {
    "other": 1,
    "central-midfield": 2,
    "attacking-midfield": 3,
    "forward": 4,
    "cf": 5,
}

KNOWN_POSITIONS = (
    frozenset(POSITION_CLASS_MAP)
    | DEFENSIVE_POSITIONS
    | frozenset({"Left Midfield", "Right Midfield"})
)

POSITION_TYPES = ("all", "forward", "cf", "non-forward")


class Comparable(Protocol):
    position: str
    goals: int
    assists: int
    penalty_goals: int
    minutes: Optional[int]

    @property
    def points(self) -> int: ...


T = TypeVar("T", bound=Comparable)


def is_known_position(position: str) -> bool:
    return position in KNOWN_POSITIONS


def is_defensive_position(position: str) -> bool:
    return position in DEFENSIVE_POSITIONS


def is_forward_position(position: str) -> bool:
    return position in FORWARD_POSITIONS


def get_position_class(position: str) -> str:
    return POSITION_CLASS_MAP.get(position, "other")


def get_position_class_rank(position: str) -> int:
    return POSITION_CLASS_RANK[get_position_class(position)]


def can_be_underperformer_against(candidate_position: str, target_position: str) -> bool:
    """Whether a player at candidate_position may be shown up by one at target_position."""
    if not (is_known_position(candidate_position) and is_known_position(target_position)):
        return False
    if is_defensive_position(candidate_position) and not is_defensive_position(target_position):
        return False
    return get_position_class_rank(candidate_position) >= get_position_class_rank(target_position)


def can_be_outperformer_against(candidate_position: str, target_position: str) -> bool:
    """Whether a player at candidate_position may show up one at target_position."""
    if not (is_known_position(candidate_position) and is_known_position(target_position)):
        return False
    return get_position_class_rank(candidate_position) <= get_position_class_rank(target_position)


def adjusted_points(player: Comparable, exclude_penalties: bool = False) -> int:
    """Goals plus assists, optionally without penalty goals."""
    if exclude_penalties:
        return player.points - player.penalty_goals
    return player.points


def strictly_outperforms(a: Comparable, b: Comparable, exclude_penalties: bool = False) -> bool:
    """
    `a` produced equal or better output in equal or fewer minutes, strictly
    better on at least one of the two. Without minutes on either side, falls
    back to strictly more output.
    """
    a_points = adjusted_points(a, exclude_penalties)
    b_points = adjusted_points(b, exclude_penalties)
    if a.minutes is None or b.minutes is None:
        return a_points > b_points
    return (
        a_points >= b_points
        and a.minutes <= b.minutes
        and (a_points > b_points or a.minutes < b.minutes)
    )


def resolve_position_type(
    raw: Optional[str],
    default: str = "all",
    allowed: Sequence[str] = POSITION_TYPES
) -> Optional[str]:
    """Normalise a requested position type; None when it is not allowed."""
    value = (raw or default).strip().lower()
    return value if value in allowed else None


def filter_by_position(players: Iterable[T], position_type: str) -> List[T]:
    """
    Raises:
        ValueError: For an unknown position type
    """
    if position_type == "all":
        return list(players)
    if position_type == "forward":
        return [p for p in players if is_forward_position(p.position)]
    if position_type == "cf":
        return [p for p in players if p.position == "Centre-Forward"]
    if position_type == "non-forward":
        return [p for p in players if not is_forward_position(p.position)]
    raise ValueError(f"Unknown position type {position_type!r}, expected one of {POSITION_TYPES}")
