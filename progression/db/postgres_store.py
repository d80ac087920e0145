"""PostgreSQL-backed progression store"""
from datetime import date, datetime
from typing import List, Optional, Set
import logging

import psycopg

from progression.db import queries
from progression.db.connection import db
from progression.db.store import CompletionCommit, ProgressionStore
from progression.exceptions import ProgressionError, wrap_external_exception
from progression.models.achievement import AchievementDefinition, AchievementUnlock
from progression.models.leaderboard import LeaderboardEntry
from progression.models.progression import UserProgressionState, WorkoutRecord

logger = logging.getLogger(__name__)


class PostgresProgressionStore(ProgressionStore):
    """ProgressionStore over the shared psycopg connection pool"""

    async def load_user(self, user_id: str) -> Optional[UserProgressionState]:
        return await queries.get_user_progression(user_id)

    async def save_user(self, state: UserProgressionState, expected_version: int) -> UserProgressionState:
        new_version = await queries.update_user_progression(state, expected_version)
        return state.model_copy(update={"version": new_version})

    async def load_workout(self, workout_id: int) -> Optional[WorkoutRecord]:
        return await queries.get_workout(workout_id)

    async def count_completed_workouts_on_day(
        self,
        user_id: str,
        day: date,
        tz_name: str,
        before: Optional[datetime] = None,
        exclude_workout_id: Optional[int] = None,
    ) -> int:
        return await queries.count_completed_workouts_on_day(
            user_id, day, tz_name, before=before, exclude_workout_id=exclude_workout_id
        )

    async def count_category_workouts(self, user_id: str, category: str) -> int:
        return await queries.count_category_workouts(user_id, category)

    async def has_workout_on_each_of_last_7_days(self, user_id: str, now: datetime, tz_name: str) -> bool:
        return await queries.has_workout_on_each_of_last_7_days(user_id, now, tz_name)

    async def load_achievement_catalog(self) -> List[AchievementDefinition]:
        return await queries.get_all_achievements()

    async def load_unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        return await queries.get_unlocked_achievement_ids(user_id)

    async def load_recent_unlocks(self, user_id: str, limit: int = 5) -> List[AchievementUnlock]:
        return await queries.get_recent_unlocks(user_id, limit)

    async def insert_unlock_if_absent(self, user_id: str, achievement_id: str, now: datetime) -> bool:
        return await queries.insert_unlock_if_absent(user_id, achievement_id, now)

    async def upsert_leaderboard_row(
        self,
        user_id: str,
        week_start: date,
        xp_delta: int,
        minutes_delta: int,
    ) -> None:
        await queries.upsert_leaderboard_row(user_id, week_start, xp_delta, minutes_delta)

    async def load_leaderboard(self, week_start: date, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        return await queries.get_leaderboard(week_start, limit)

    async def commit_completion(self, commit: CompletionCommit) -> Set[str]:
        """
        Save user, unlocks and leaderboard delta in one transaction

        A version conflict raises out of the transaction block, which rolls
        everything back.
        """
        user_id = commit.state.user_id
        inserted: Set[str] = set()

        try:
            async with db.connection() as conn:
                async with conn.transaction():
                    await queries.update_user_progression(commit.state, commit.expected_version, conn=conn)

                    for achievement_id in commit.achievement_ids:
                        if await queries.insert_unlock_if_absent(
                            user_id, achievement_id, commit.unlocked_at, conn=conn
                        ):
                            inserted.add(achievement_id)

                    await queries.upsert_leaderboard_row(
                        user_id, commit.week_start, commit.xp_delta, commit.minutes_delta, conn=conn
                    )
        except ProgressionError:
            raise
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="commit_completion", user_id=user_id)

        return inserted
