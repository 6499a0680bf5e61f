"""
Pre-publish integrity guards.

Both guards look for the signatures of a broken run rather than of real data:
a markup change upstream makes every stats page parse as zeros, and a partial
run shows up as a collapse of dataset-wide totals versus the last snapshot.
"""

import logging
from typing import Collection, Optional

from models.player import MergedDataset
from refresh.errors import DataIntegrityError

logger = logging.getLogger(__name__)

ZERO_STATS_GUARD = "zero_stats"
REGRESSION_GUARD = "regression"

REGRESSION_COUNTER = "minutes"


def _is_all_zero(record) -> bool:
    return record.goals == 0 and record.assists == 0 and not record.minutes


def check_zero_stats(
    dataset: MergedDataset,
    fetched_ids: Collection[str],
    max_ratio: float = 0.8
) -> float:
    """
    Reject when too many successfully fetched players have zero goals, assists
    and minutes.

    Returns:
        The observed zero ratio

    Raises:
        DataIntegrityError: If nothing was fetched or the ratio exceeds max_ratio
    """
    fetched = [dataset.get(pid) for pid in fetched_ids if pid in dataset]
    if not fetched:
        raise DataIntegrityError(ZERO_STATS_GUARD, "no successfully fetched players to publish")

    zero_count = sum(1 for record in fetched if _is_all_zero(record))
    ratio = zero_count / len(fetched)
    if ratio > max_ratio:
        raise DataIntegrityError(
            ZERO_STATS_GUARD,
            f"{zero_count}/{len(fetched)} fetched players have all-zero stats "
            f"({ratio:.0%} > {max_ratio:.0%}); upstream parsing likely broken"
        )
    return ratio


def check_regression(
    dataset: MergedDataset,
    previous: Optional[MergedDataset],
    min_ratio: float = 0.5,
    counter: str = REGRESSION_COUNTER
) -> None:
    """
    Reject when a dataset-wide total falls below min_ratio of the published one.

    Raises:
        DataIntegrityError: On regression
    """
    if previous is None or len(previous) == 0:
        return

    previous_total = previous.total(counter)
    if previous_total <= 0:
        return

    new_total = dataset.total(counter)
    if new_total < previous_total * min_ratio:
        raise DataIntegrityError(
            REGRESSION_GUARD,
            f"total {counter} dropped from {previous_total} to {new_total} "
            f"(below {min_ratio:.0%} of the published snapshot)"
        )


def run_guards(
    dataset: MergedDataset,
    fetched_ids: Collection[str],
    previous: Optional[MergedDataset],
    zero_stats_max_ratio: float = 0.8,
    regression_min_ratio: float = 0.5
) -> None:
    """Run both guards; the first failure raises."""
    zero_ratio = check_zero_stats(dataset, fetched_ids, zero_stats_max_ratio)
    check_regression(dataset, previous, regression_min_ratio)
    logger.info("Integrity guards passed", extra={
        "players": len(dataset),
        "fetched": len(fetched_ids),
        "zero_ratio": round(zero_ratio, 3)
    })
