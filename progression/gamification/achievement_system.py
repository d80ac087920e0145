"""
Achievement System

Checks the user's counters against the achievement catalog and reports the
achievements that became satisfied.

Predicates:
- Counter thresholds (total workouts, current streak, XP, level, minutes)
  read straight from the post-update progression state
- category_workouts: completed workouts in one deck category (storage lookup)
- perfect_week: a workout on each of the last 7 calendar days (storage
  lookup on workout history, not the streak counter, since a freeze can keep
  a streak alive across a missed day)

Evaluation is idempotent: achievements already unlocked are skipped, and a
failing lookup only means "not satisfied this time".
"""

from datetime import datetime
from typing import Dict, Iterable, List, Set
import logging

from progression.db.store import ProgressionStore
from progression.exceptions import CatalogLookupError
from progression.models.achievement import COUNTER_FIELDS, AchievementDefinition, PredicateKind
from progression.models.progression import UserProgressionState

logger = logging.getLogger(__name__)


async def evaluate_achievements(
    state: UserProgressionState,
    catalog: Iterable[AchievementDefinition],
    unlocked_ids: Set[str],
    store: ProgressionStore,
    now: datetime,
) -> List[AchievementDefinition]:
    """
    Find achievements newly satisfied by the current state

    Args:
        state: Progression state after this run's XP/streak updates
        catalog: All achievement definitions
        unlocked_ids: Achievements the user already holds
        store: Storage collaborator for history-based predicates
        now: Evaluation time (used by perfect_week)

    Returns:
        Newly satisfied definitions, in catalog order. Nothing is persisted
        here; unlocks are written insert-if-absent by the caller.
    """
    newly_unlocked = []

    for achievement in catalog:
        # Skip if already unlocked
        if achievement.id in unlocked_ids:
            continue

        try:
            qualifies = await _check_predicate(state, achievement, store, now)
        except CatalogLookupError:
            # Already logged on creation; try again on the next evaluation
            qualifies = False

        if qualifies:
            newly_unlocked.append(achievement)
            logger.info(
                f"User {state.user_id} qualifies for achievement: {achievement.id} "
                f"({achievement.name})"
            )

    return newly_unlocked


async def _check_predicate(
    state: UserProgressionState,
    achievement: AchievementDefinition,
    store: ProgressionStore,
    now: datetime,
) -> bool:
    kind = achievement.predicate_kind

    if kind in COUNTER_FIELDS:
        return getattr(state, COUNTER_FIELDS[kind]) >= achievement.threshold

    if kind == PredicateKind.CATEGORY_WORKOUTS:
        try:
            count = await store.count_category_workouts(state.user_id, achievement.category)
        except Exception as e:
            raise CatalogLookupError(
                message=f"Category count for '{achievement.category}' failed: {e}",
                achievement_id=achievement.id,
                user_id=state.user_id,
                operation="count_category_workouts",
                cause=e,
            )
        return count >= achievement.threshold

    if kind == PredicateKind.PERFECT_WEEK:
        try:
            return await store.has_workout_on_each_of_last_7_days(state.user_id, now, state.timezone)
        except Exception as e:
            raise CatalogLookupError(
                message=f"Perfect week check failed: {e}",
                achievement_id=achievement.id,
                user_id=state.user_id,
                operation="has_workout_on_each_of_last_7_days",
                cause=e,
            )

    logger.warning(f"Unknown achievement predicate {kind} for {achievement.id}")
    return False


def calculate_achievement_progress(
    state: UserProgressionState,
    achievement: AchievementDefinition,
) -> Dict[str, int]:
    """
    Progress toward a counter-based achievement

    History-based predicates (category_workouts, perfect_week) report 0 of 1
    since they need a storage lookup.

    Returns:
        {
            'current': int,
            'required': int,
            'percentage': int
        }
    """
    field_name = COUNTER_FIELDS.get(achievement.predicate_kind)
    if field_name is None:
        current, required = 0, 1
    else:
        current, required = getattr(state, field_name), achievement.threshold

    percentage = min(100, int(current / required * 100)) if required > 0 else 100

    return {
        "current": current,
        "required": required,
        "percentage": percentage,
    }


async def check_and_award_achievements(
    store: ProgressionStore,
    state: UserProgressionState,
    now: datetime,
) -> List[AchievementDefinition]:
    """
    Evaluate the catalog for a user and record any new unlocks

    Safe to re-run at any time: unlocks are insert-if-absent, so a racing
    duplicate evaluation cannot grant the same achievement twice.

    Returns:
        Achievements this call actually unlocked
    """
    catalog = await store.load_achievement_catalog()
    unlocked_ids = await store.load_unlocked_achievement_ids(state.user_id)

    candidates = await evaluate_achievements(state, catalog, unlocked_ids, store, now)

    awarded = []
    for achievement in candidates:
        if await store.insert_unlock_if_absent(state.user_id, achievement.id, now):
            awarded.append(achievement)

    return awarded
