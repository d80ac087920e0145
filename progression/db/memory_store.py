"""
In-memory progression store

Dict-backed ProgressionStore used by tests and local runs. Each operation
completes without awaiting anything, so under asyncio every call is atomic
with respect to other tasks, which is what the version check and the
insert-if-absent / increment semantics rely on.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple
import logging

from progression.db.store import CompletionCommit, ProgressionStore
from progression.exceptions import ConcurrentModificationError
from progression.gamification.leaderboard import rank_entries
from progression.models.achievement import AchievementDefinition, AchievementUnlock
from progression.models.leaderboard import LeaderboardEntry
from progression.models.progression import UserProgressionState, WorkoutRecord
from progression.utils.datetime_helpers import local_date, to_utc

logger = logging.getLogger(__name__)


class InMemoryProgressionStore(ProgressionStore):
    """In-memory store; state is lost when the process exits"""

    def __init__(self, catalog: Optional[List[AchievementDefinition]] = None):
        self._users: Dict[str, UserProgressionState] = {}
        self._workouts: Dict[int, WorkoutRecord] = {}
        self._catalog: List[AchievementDefinition] = list(catalog or [])
        self._unlocks: Dict[Tuple[str, str], AchievementUnlock] = {}
        # Insertion-ordered, so equal weekly XP keeps first-come order
        self._leaderboard: Dict[Tuple[str, date], LeaderboardEntry] = {}

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_user(self, state: UserProgressionState) -> None:
        self._users[state.user_id] = state.model_copy(deep=True)

    def add_workout(self, workout: WorkoutRecord) -> None:
        self._workouts[workout.id] = workout

    def set_catalog(self, catalog: List[AchievementDefinition]) -> None:
        self._catalog = list(catalog)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def load_user(self, user_id: str) -> Optional[UserProgressionState]:
        state = self._users.get(user_id)
        return state.model_copy(deep=True) if state else None

    async def save_user(self, state: UserProgressionState, expected_version: int) -> UserProgressionState:
        self._check_version(state.user_id, expected_version)
        return self._store_user(state, expected_version)

    def _check_version(self, user_id: str, expected_version: int) -> None:
        stored = self._users.get(user_id)
        stored_version = stored.version if stored else 0
        if stored_version != expected_version:
            raise ConcurrentModificationError(
                message=f"User {user_id} is at version {stored_version}, expected {expected_version}",
                expected_version=expected_version,
                user_id=user_id,
                operation="save_user",
            )

    def _store_user(self, state: UserProgressionState, expected_version: int) -> UserProgressionState:
        saved = state.model_copy(deep=True)
        saved.version = expected_version + 1
        self._users[state.user_id] = saved
        return saved.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------

    async def load_workout(self, workout_id: int) -> Optional[WorkoutRecord]:
        return self._workouts.get(workout_id)

    def _completed_days(self, user_id: str, tz_name: str) -> Set[date]:
        return {
            local_date(w.completed_at, tz_name)
            for w in self._workouts.values()
            if w.user_id == user_id and w.completed_at is not None
        }

    async def count_completed_workouts_on_day(
        self,
        user_id: str,
        day: date,
        tz_name: str,
        before: Optional[datetime] = None,
        exclude_workout_id: Optional[int] = None,
    ) -> int:
        return sum(
            1 for w in self._workouts.values()
            if w.user_id == user_id
            and w.id != exclude_workout_id
            and w.completed_at is not None
            and local_date(w.completed_at, tz_name) == day
            and (before is None or to_utc(w.completed_at) < to_utc(before))
        )

    async def count_category_workouts(self, user_id: str, category: str) -> int:
        return sum(
            1 for w in self._workouts.values()
            if w.user_id == user_id and w.completed_at is not None and w.category == category
        )

    async def has_workout_on_each_of_last_7_days(self, user_id: str, now: datetime, tz_name: str) -> bool:
        today = local_date(now, tz_name)
        days = self._completed_days(user_id, tz_name)
        return all(today - timedelta(days=offset) in days for offset in range(7))

    # ------------------------------------------------------------------
    # Achievements
    # ------------------------------------------------------------------

    async def load_achievement_catalog(self) -> List[AchievementDefinition]:
        return list(self._catalog)

    async def load_unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        return {achievement_id for (uid, achievement_id) in self._unlocks if uid == user_id}

    async def load_recent_unlocks(self, user_id: str, limit: int = 5) -> List[AchievementUnlock]:
        unlocks = [u for u in self._unlocks.values() if u.user_id == user_id]
        unlocks.sort(key=lambda u: u.unlocked_at, reverse=True)
        return unlocks[:limit]

    async def insert_unlock_if_absent(self, user_id: str, achievement_id: str, now: datetime) -> bool:
        key = (user_id, achievement_id)
        if key in self._unlocks:
            return False
        self._unlocks[key] = AchievementUnlock(user_id=user_id, achievement_id=achievement_id, unlocked_at=now)
        return True

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    async def upsert_leaderboard_row(
        self,
        user_id: str,
        week_start: date,
        xp_delta: int,
        minutes_delta: int,
    ) -> None:
        key = (user_id, week_start)
        entry = self._leaderboard.get(key)
        if entry is None:
            self._leaderboard[key] = LeaderboardEntry(
                user_id=user_id,
                week_start=week_start,
                weekly_xp=xp_delta,
                weekly_workouts=1,
                weekly_minutes=minutes_delta,
            )
        else:
            entry.weekly_xp += xp_delta
            entry.weekly_workouts += 1
            entry.weekly_minutes += minutes_delta

    async def load_leaderboard(self, week_start: date, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        entries = [e.model_copy() for (_, week), e in self._leaderboard.items() if week == week_start]
        ranked = rank_entries(entries)
        return ranked[:limit] if limit is not None else ranked

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def commit_completion(self, commit: CompletionCommit) -> Set[str]:
        user_id = commit.state.user_id

        # Check before writing anything so a conflict leaves no trace
        self._check_version(user_id, commit.expected_version)
        self._store_user(commit.state, commit.expected_version)

        inserted = set()
        for achievement_id in commit.achievement_ids:
            if await self.insert_unlock_if_absent(user_id, achievement_id, commit.unlocked_at):
                inserted.add(achievement_id)

        await self.upsert_leaderboard_row(user_id, commit.week_start, commit.xp_delta, commit.minutes_delta)

        logger.debug(f"Committed completion for user {user_id} (version {commit.expected_version + 1})")
        return inserted
