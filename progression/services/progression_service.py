"""
ProgressionService - Workout Completion Orchestration

Turns a completed workout into XP, level, streak, achievement, leaderboard
and lives updates. All of a completion's writes reach storage in a single
commit_completion() call, so a failure at any stage leaves the user's
progression exactly as it was and the event can simply be retried.
"""

import asyncio
from contextlib import asynccontextmanager
import logging
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple, TypeVar

from progression.db.store import CompletionCommit, ProgressionStore
from progression.exceptions import ProgressionError, RecordNotFoundError, ValidationError
from progression.gamification.achievement_system import (
    calculate_achievement_progress,
    check_and_award_achievements,
    evaluate_achievements,
)
from progression.gamification.leaderboard import get_user_rank, get_week_start, get_weekly_leaderboard
from progression.gamification.lives_system import check_and_restore_lives, deduct_life, get_lives_info
from progression.gamification.notifications import (
    AchievementsUnlocked,
    LeveledUp,
    LivesChanged,
    LoggingNotifier,
    Notifier,
    ProgressionFact,
    StreakChanged,
    publish_safely,
)
from progression.gamification.streak_system import get_streak_info, update_streak, use_streak_freeze
from progression.gamification.xp_system import apply_experience, calculate_workout_xp, default_rule_table
from progression.models.achievement import COUNTER_FIELDS, AchievementDefinition
from progression.models.leaderboard import LeaderboardEntry, LeaderboardStanding
from progression.models.progression import (
    AchievementProgress,
    CompletionResult,
    CompletionStage,
    LivesInfo,
    LivesStatus,
    ProgressionSummary,
    StreakInfo,
    UserProgressionState,
    WorkoutCompletionEvent,
)
from progression.models.xp_rules import XpRuleTable
from progression.monitoring import (
    capture_exception,
    record_life_lost,
    record_rewards,
    record_streak_freeze,
    set_user_context,
    track_completion,
)
from progression.resilience.retry import retry_with_backoff
from progression.utils.datetime_helpers import local_date, now_utc

logger = logging.getLogger(__name__)

T = TypeVar('T')

RECENT_ACHIEVEMENTS_LIMIT = 5
NEXT_ACHIEVEMENTS_LIMIT = 3


class UserLockRegistry:
    """
    One asyncio.Lock per user id, so a user's operations run one at a time

    A lock lives only while someone holds it or waits for it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, user_id: str) -> AsyncIterator[None]:
        user_lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._users[user_id] = self._users.get(user_id, 0) + 1
        try:
            async with user_lock:
                yield
        finally:
            self._users[user_id] -= 1
            if self._users[user_id] == 0:
                del self._users[user_id]
                del self._locks[user_id]

    def __len__(self) -> int:
        return len(self._locks)


class ProgressionService:
    """
    Service for workout progression.

    Responsibilities:
    - Workout completion (XP, level, streak, achievements, leaderboard, lives)
    - Streak freezes and life deduction
    - Read views: streak, lives, leaderboard, rank, summary

    Operations for one user are serialized in-process by UserLockRegistry;
    across processes the store's version check catches lost updates, which
    are retried from a fresh load.
    """

    def __init__(
        self,
        store: ProgressionStore,
        notifier: Optional[Notifier] = None,
        rule_table: Optional[XpRuleTable] = None,
    ):
        """
        Initialize ProgressionService.

        Args:
            store: Storage collaborator
            notifier: Receives facts after each commit (default: LoggingNotifier)
            rule_table: XP rules (default: stock rules)
        """
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.rule_table = rule_table or default_rule_table()
        self.locks = UserLockRegistry()
        logger.debug(f"ProgressionService initialized (XP rules v{self.rule_table.version})")

    # ==========================================
    # Workout completion
    # ==========================================

    async def complete_workout(self, event: WorkoutCompletionEvent) -> CompletionResult:
        """
        Apply a completed workout to the user's progression.

        Args:
            event: The finished workout

        Returns:
            CompletionResult with the XP awarded and the new standing

        Raises:
            ValidationError: cards_completed exceeds total_cards
            RecordNotFoundError: user or workout missing, or the workout
                belongs to someone else
            ConcurrentModificationError: still conflicting after all retries
        """
        if event.cards_completed > event.total_cards:
            raise ValidationError(
                message="cards_completed cannot exceed total_cards",
                field="cards_completed",
                value=event.cards_completed,
                user_id=event.user_id,
                operation="complete_workout",
            )

        set_user_context(event.user_id)

        try:
            with track_completion():
                async with self.locks.lock(event.user_id):
                    result, facts = await retry_with_backoff(self._run_completion, event)
        except ProgressionError:
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error completing workout {event.workout_id} for user {event.user_id}: {e}",
                exc_info=True
            )
            capture_exception(e, user_id=event.user_id, operation="complete_workout")
            raise

        record_rewards(result.xp_gained, result.leveled_up, [a.id for a in result.new_achievements])
        await publish_safely(self.notifier, event.user_id, facts)

        return result

    async def _run_completion(
        self,
        event: WorkoutCompletionEvent,
    ) -> Tuple[CompletionResult, List[ProgressionFact]]:
        """One attempt: load, compute every stage on a snapshot, commit once"""
        user_id = event.user_id
        now = event.completed_at
        stage = CompletionStage.LOADED

        state = await self._load_user(user_id, operation="complete_workout")
        workout = await self.store.load_workout(event.workout_id)
        if workout is None or workout.user_id != user_id:
            raise RecordNotFoundError(
                message=f"Workout {event.workout_id} not found for user {user_id}",
                record_type="workout",
                record_id=str(event.workout_id),
                user_id=user_id,
                operation="complete_workout",
            )
        expected_version = state.version
        self._log_stage(event, stage)

        try:
            stage = CompletionStage.XP_COMPUTED
            today = local_date(now, state.timezone)
            # Only workouts finished earlier today decide the first-of-day bonus
            earlier_today = await self.store.count_completed_workouts_on_day(
                user_id, today, state.timezone, before=now, exclude_workout_id=event.workout_id
            )
            xp_gained = calculate_workout_xp(
                event,
                current_streak=state.current_streak,
                is_first_workout_today=earlier_today == 0,
                rule_table=self.rule_table,
            )
            state.total_workouts += 1
            state.total_minutes += event.duration_minutes
            self._log_stage(event, stage, f"+{xp_gained} XP")

            stage = CompletionStage.LEVEL_UPDATED
            leveled_up = apply_experience(state, xp_gained)
            self._log_stage(event, stage, f"level {state.current_level}")

            stage = CompletionStage.STREAK_UPDATED
            streak = update_streak(state, now)
            self._log_stage(event, stage, f"streak {streak.previous_streak} -> {streak.new_streak}")

            stage = CompletionStage.ACHIEVEMENTS_EVALUATED
            catalog = await self.store.load_achievement_catalog()
            unlocked_ids = await self.store.load_unlocked_achievement_ids(user_id)
            candidates = await evaluate_achievements(state, catalog, unlocked_ids, self.store, now)
            self._log_stage(event, stage, f"{len(candidates)} candidate(s)")

            stage = CompletionStage.LEADERBOARD_UPDATED
            week_start = get_week_start(now)
            self._log_stage(event, stage, f"week {week_start.isoformat()}")

            stage = CompletionStage.LIVES_CHECKED
            lives_before = state.lives_remaining
            lives_remaining = check_and_restore_lives(state, now)
            self._log_stage(event, stage, f"{lives_remaining} lives")

            inserted = await self.store.commit_completion(CompletionCommit(
                state=state,
                expected_version=expected_version,
                unlocked_at=now,
                week_start=week_start,
                xp_delta=xp_gained,
                minutes_delta=event.duration_minutes,
                achievement_ids=[a.id for a in candidates],
            ))
        except Exception:
            logger.warning(
                f"Completion of workout {event.workout_id} for user {user_id} stopped at "
                f"stage {stage.value}; nothing was committed"
            )
            raise

        # A racing evaluation may have inserted some of these first
        new_achievements = [a for a in candidates if a.id in inserted]
        self._log_stage(event, CompletionStage.DONE)

        result = CompletionResult(
            xp_gained=xp_gained,
            new_level=state.current_level,
            leveled_up=leveled_up,
            new_streak=streak.new_streak,
            streak_increased=streak.streak_increased,
            streak_maintained=streak.streak_maintained,
            new_achievements=new_achievements,
            lives_remaining=lives_remaining,
            total_xp=state.experience_points,
            xp_to_next_level=state.xp_to_next_level,
        )

        facts: List[ProgressionFact] = []
        if leveled_up:
            facts.append(LeveledUp(new_level=state.current_level, xp_gained=xp_gained))
        if new_achievements:
            facts.append(AchievementsUnlocked(achievements=new_achievements))
        facts.append(StreakChanged(
            new_streak=streak.new_streak,
            increased=streak.streak_increased,
            maintained=streak.streak_maintained,
        ))
        if lives_remaining != lives_before:
            facts.append(LivesChanged(lives_remaining=lives_remaining, can_continue=lives_remaining > 0))

        logger.info(
            f"User {user_id} completed workout {event.workout_id}: +{xp_gained} XP, "
            f"level {state.current_level}, streak {streak.new_streak}, "
            f"{len(new_achievements)} new achievement(s)"
        )
        return result, facts

    @staticmethod
    def _log_stage(event: WorkoutCompletionEvent, stage: CompletionStage, detail: str = "") -> None:
        logger.debug(f"[COMPLETION] user={event.user_id} workout={event.workout_id} {stage.value} {detail}".rstrip())

    # ==========================================
    # Streak freezes and lives
    # ==========================================

    async def use_streak_freeze(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """
        Spend one of this month's streak freezes to protect today.

        Returns:
            False when the monthly allowance is used up
        """
        now = now or now_utc()
        used, _ = await self._update_user(user_id, lambda state: use_streak_freeze(state, now))
        if used:
            record_streak_freeze()
        return used

    async def deduct_life(self, user_id: str, now: Optional[datetime] = None) -> LivesStatus:
        """Take one life, after restoring the pool if its refill is due"""
        now = now or now_utc()

        def apply(state: UserProgressionState) -> Tuple[int, LivesStatus]:
            before = check_and_restore_lives(state, now)
            return before, deduct_life(state, now)

        (before, status), _ = await self._update_user(user_id, apply)

        if status.lives_remaining < before:
            record_life_lost()
            await publish_safely(self.notifier, user_id, [
                LivesChanged(lives_remaining=status.lives_remaining, can_continue=status.can_continue)
            ])
        return status

    async def check_lives(self, user_id: str, now: Optional[datetime] = None) -> int:
        """Restore lives if the refill is due; returns lives remaining"""
        now = now or now_utc()
        lives, _ = await self._update_user(user_id, lambda state: check_and_restore_lives(state, now))
        return lives

    async def get_lives_info(self, user_id: str, now: Optional[datetime] = None) -> LivesInfo:
        now = now or now_utc()
        _, state = await self._update_user(user_id, lambda state: check_and_restore_lives(state, now))
        return get_lives_info(state, now)

    async def get_streak_info(self, user_id: str, now: Optional[datetime] = None) -> StreakInfo:
        state = await self._load_user(user_id, operation="get_streak_info")
        return get_streak_info(state, now or now_utc())

    # ==========================================
    # Achievements and leaderboard
    # ==========================================

    async def recheck_achievements(self, user_id: str, now: Optional[datetime] = None) -> List[AchievementDefinition]:
        """
        Evaluate the catalog outside a workout completion.

        Useful after catalog changes; unlocks are insert-if-absent, so this
        never grants an achievement twice.
        """
        now = now or now_utc()
        async with self.locks.lock(user_id):
            state = await self._load_user(user_id, operation="recheck_achievements")
            awarded = await check_and_award_achievements(self.store, state, now)

        if awarded:
            record_rewards(0, False, [a.id for a in awarded])
            await publish_safely(self.notifier, user_id, [AchievementsUnlocked(achievements=awarded)])
        return awarded

    async def get_weekly_leaderboard(
        self,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[LeaderboardEntry]:
        return await get_weekly_leaderboard(self.store, limit, now)

    async def get_user_rank(self, user_id: str, now: Optional[datetime] = None) -> LeaderboardStanding:
        return await get_user_rank(self.store, user_id, now or now_utc())

    async def get_summary(self, user_id: str, now: Optional[datetime] = None) -> ProgressionSummary:
        """
        Everything a profile screen shows, in one call.

        Lives are restored first if their refill is due.
        next_achievements lists the locked counter achievements closest to
        unlocking.
        """
        now = now or now_utc()
        _, state = await self._update_user(user_id, lambda state: check_and_restore_lives(state, now))

        catalog = {a.id: a for a in await self.store.load_achievement_catalog()}
        recent = await self.store.load_recent_unlocks(user_id, RECENT_ACHIEVEMENTS_LIMIT)
        unlocked_ids = await self.store.load_unlocked_achievement_ids(user_id)
        standing = await get_user_rank(self.store, user_id, now)
        streak = get_streak_info(state, now)

        progress = [
            AchievementProgress(achievement=a, **calculate_achievement_progress(state, a))
            for a in catalog.values()
            if a.id not in unlocked_ids and a.predicate_kind in COUNTER_FIELDS
        ]
        progress.sort(key=lambda p: p.percentage, reverse=True)

        return ProgressionSummary(
            user_id=user_id,
            experience_points=state.experience_points,
            current_level=state.current_level,
            xp_to_next_level=state.xp_to_next_level,
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            total_workouts=state.total_workouts,
            total_minutes=state.total_minutes,
            lives_remaining=state.lives_remaining,
            streak_freeze_uses=streak.streak_freeze_uses,
            weekly_rank=standing.rank,
            recent_achievements=[catalog[u.achievement_id] for u in recent if u.achievement_id in catalog],
            next_achievements=progress[:NEXT_ACHIEVEMENTS_LIMIT],
        )

    # ==========================================
    # Helpers
    # ==========================================

    async def _load_user(self, user_id: str, operation: str) -> UserProgressionState:
        state = await self.store.load_user(user_id)
        if state is None:
            raise RecordNotFoundError(
                message=f"No progression record for user {user_id}",
                record_type="user",
                record_id=user_id,
                user_id=user_id,
                operation=operation,
            )
        return state

    async def _update_user(
        self,
        user_id: str,
        mutate: Callable[[UserProgressionState], T],
    ) -> Tuple[T, UserProgressionState]:
        """
        Load, mutate and version-checked save, serialized per user.

        The state is saved only if mutate changed it; a conflict re-runs
        mutate against a fresh load.
        """
        async def attempt() -> Tuple[T, UserProgressionState]:
            state = await self._load_user(user_id, operation="update_user")
            original = state.model_copy(deep=True)
            outcome = mutate(state)
            if state != original:
                state = await self.store.save_user(state, original.version)
            return outcome, state

        async with self.locks.lock(user_id):
            return await retry_with_backoff(attempt)
