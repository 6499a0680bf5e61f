"""
Adaptive concurrency state machine for bulk stats acquisition.

Every transition is a pure function of (state, batch result, policy) so the
pipeline's pacing can be tested without timers or network.
"""

from dataclasses import dataclass, replace
from enum import Enum

from config import Config


class AcquisitionPhase(Enum):
    """Acquisition phase enumeration."""
    FETCHING = "fetching"  # Normal pass, last batch under the failure threshold
    BACKOFF = "backoff"  # Last batch over the threshold, concurrency halved
    RETRY_ROUND = "retry_round"  # Re-fetching identities that failed an earlier pass
    EXHAUSTED = "exhausted"  # Retry rounds used up with failures left


@dataclass(frozen=True)
class ConcurrencyPolicy:
    """Bounds and triggers for concurrency/delay adjustment."""

    initial_concurrency: int = 20
    min_concurrency: int = 2
    initial_delay: float = 1.0
    min_delay: float = 0.25
    max_delay: float = 60.0
    failure_rate_threshold: float = 0.3
    clean_streak_threshold: int = 3
    max_retry_rounds: int = 5

    @classmethod
    def from_config(cls, config: Config) -> "ConcurrencyPolicy":
        return cls(
            initial_concurrency=config.initial_concurrency,
            min_concurrency=config.min_concurrency,
            initial_delay=config.initial_delay,
            min_delay=config.min_delay,
            max_delay=config.max_delay,
            failure_rate_threshold=config.failure_rate_threshold,
            clean_streak_threshold=config.clean_streak_threshold,
            max_retry_rounds=config.max_retry_rounds,
        )


@dataclass(frozen=True)
class BatchResult:
    attempted: int
    failed: int

    @property
    def failure_rate(self) -> float:
        if self.attempted == 0:
            return 0.0
        return self.failed / self.attempted


@dataclass(frozen=True)
class AcquisitionState:
    phase: AcquisitionPhase
    concurrency: int
    delay: float
    clean_streak: int = 0
    round: int = 0


def initial_state(policy: ConcurrencyPolicy) -> AcquisitionState:
    return AcquisitionState(
        phase=AcquisitionPhase.FETCHING,
        concurrency=policy.initial_concurrency,
        delay=policy.initial_delay,
    )


def after_batch(
    state: AcquisitionState,
    result: BatchResult,
    policy: ConcurrencyPolicy
) -> AcquisitionState:
    """
    Adjust pacing from one closed batch.

    Over the failure threshold (and above the floor): halve concurrency, double
    delay, reset the clean streak. Otherwise a zero-failure batch extends the
    streak; reaching the streak threshold doubles concurrency up to the initial
    value and halves delay down to the floor.
    """
    if state.phase is AcquisitionPhase.EXHAUSTED:
        return state

    if result.failure_rate > policy.failure_rate_threshold and state.concurrency > policy.min_concurrency:
        return replace(
            state,
            phase=AcquisitionPhase.BACKOFF,
            concurrency=max(policy.min_concurrency, state.concurrency // 2),
            delay=min(policy.max_delay, state.delay * 2),
            clean_streak=0,
        )

    phase = AcquisitionPhase.RETRY_ROUND if state.round > 0 else AcquisitionPhase.FETCHING
    if result.failed > 0:
        return replace(state, phase=phase, clean_streak=0)

    clean_streak = state.clean_streak + 1
    if clean_streak < policy.clean_streak_threshold:
        return replace(state, phase=phase, clean_streak=clean_streak)

    return replace(
        state,
        phase=phase,
        concurrency=min(policy.initial_concurrency, state.concurrency * 2),
        delay=max(policy.min_delay, state.delay / 2),
        clean_streak=0,
    )


def start_retry_round(
    state: AcquisitionState,
    round_number: int,
    policy: ConcurrencyPolicy
) -> AcquisitionState:
    """Fresh pass for failed identities: floor concurrency, delay initial × 2^round."""
    return AcquisitionState(
        phase=AcquisitionPhase.RETRY_ROUND,
        concurrency=policy.min_concurrency,
        delay=min(policy.max_delay, policy.initial_delay * (2 ** round_number)),
        clean_streak=0,
        round=round_number,
    )


def exhaust(state: AcquisitionState) -> AcquisitionState:
    return replace(state, phase=AcquisitionPhase.EXHAUSTED)
