"""
Lives (Hearts) System

A bounded failure budget. Each failure costs one life; once the last life is
gone a refill deadline is set and the full pool comes back when it passes.

There is no background timer: check_and_restore_lives() is called lazily
before any read or life-affecting operation, and the refill is a pure
function of wall-clock time.
"""

from datetime import datetime, timedelta
import logging

from progression import config
from progression.models.progression import LivesInfo, LivesStatus, UserProgressionState
from progression.utils.datetime_helpers import seconds_until, to_utc

logger = logging.getLogger(__name__)


def refill_delay() -> timedelta:
    return timedelta(minutes=config.LIVES_REFILL_MINUTES)


def _schedule_refill(state: UserProgressionState, now: datetime) -> None:
    """Set a refill deadline for an empty pool that has none"""
    if state.lives_remaining == 0 and state.lives_refill_at is None:
        state.lives_refill_at = to_utc(now) + refill_delay()
        logger.info(f"User {state.user_id} is out of lives; refill at {state.lives_refill_at.isoformat()}")


def deduct_life(state: UserProgressionState, now: datetime) -> LivesStatus:
    """
    Take one life for a mistake or failed exercise

    Never drops below 0, and deducting at 0 leaves a pending refill deadline
    untouched.
    """
    state.lives_remaining = max(0, state.lives_remaining - 1)
    state.last_life_loss = now
    _schedule_refill(state, now)

    return LivesStatus(
        lives_remaining=state.lives_remaining,
        can_continue=state.lives_remaining > 0,
    )


def check_and_restore_lives(state: UserProgressionState, now: datetime) -> int:
    """
    Restore the full pool if the refill deadline has passed

    An empty pool without a deadline (e.g. imported records) gets one
    scheduled from now.

    Returns:
        Lives remaining after the check
    """
    if state.lives_remaining >= config.MAX_LIVES:
        return state.lives_remaining

    _schedule_refill(state, now)

    if state.lives_refill_at is not None and to_utc(now) >= to_utc(state.lives_refill_at):
        state.lives_remaining = config.MAX_LIVES
        state.lives_refill_at = None
        logger.info(f"Restored {config.MAX_LIVES} lives for user {state.user_id}")

    return state.lives_remaining


def get_lives_info(state: UserProgressionState, now: datetime) -> LivesInfo:
    """Read-only lives view; call check_and_restore_lives() first"""
    seconds_left = None
    if state.lives_refill_at is not None:
        seconds_left = seconds_until(state.lives_refill_at, now)

    return LivesInfo(
        lives_remaining=state.lives_remaining,
        max_lives=config.MAX_LIVES,
        lives_refill_at=state.lives_refill_at,
        seconds_until_refill=seconds_left,
    )
