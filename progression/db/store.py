"""
Storage collaborator interface

Everything the progression engine reads or writes goes through a
ProgressionStore. PostgresProgressionStore backs it with the database;
InMemoryProgressionStore (progression.db.memory_store) backs it with dicts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Set

from progression.models.achievement import AchievementDefinition, AchievementUnlock
from progression.models.leaderboard import LeaderboardEntry
from progression.models.progression import UserProgressionState, WorkoutRecord


@dataclass
class CompletionCommit:
    """
    Everything one workout completion writes, committed as a unit

    The user save is version-checked against expected_version; unlocks are
    insert-if-absent; the leaderboard delta is an atomic increment.
    """
    state: UserProgressionState
    expected_version: int
    unlocked_at: datetime
    week_start: date
    xp_delta: int
    minutes_delta: int
    achievement_ids: List[str] = field(default_factory=list)


class ProgressionStore(ABC):
    """Storage operations consumed by the progression engine"""

    # Users

    @abstractmethod
    async def load_user(self, user_id: str) -> Optional[UserProgressionState]:
        """Return the user's state, or None if the user does not exist"""

    @abstractmethod
    async def save_user(self, state: UserProgressionState, expected_version: int) -> UserProgressionState:
        """
        Persist state if the stored version still equals expected_version

        Returns the saved state with its new version.

        Raises:
            ConcurrentModificationError: stored version moved on since load
        """

    # Workouts

    @abstractmethod
    async def load_workout(self, workout_id: int) -> Optional[WorkoutRecord]:
        """Return the stored workout, or None"""

    @abstractmethod
    async def count_completed_workouts_on_day(
        self,
        user_id: str,
        day: date,
        tz_name: str,
        before: Optional[datetime] = None,
        exclude_workout_id: Optional[int] = None,
    ) -> int:
        """
        Completed workouts whose completion falls on the user's local day

        With before, only workouts completed strictly earlier count;
        exclude_workout_id leaves one workout out of the count.
        """

    @abstractmethod
    async def count_category_workouts(self, user_id: str, category: str) -> int:
        """Completed workouts whose deck category matches"""

    @abstractmethod
    async def has_workout_on_each_of_last_7_days(self, user_id: str, now: datetime, tz_name: str) -> bool:
        """True if each of the 7 local days ending today has a completed workout"""

    # Achievements

    @abstractmethod
    async def load_achievement_catalog(self) -> List[AchievementDefinition]:
        """All achievement definitions"""

    @abstractmethod
    async def load_unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        """Ids of achievements the user already holds"""

    @abstractmethod
    async def load_recent_unlocks(self, user_id: str, limit: int = 5) -> List[AchievementUnlock]:
        """Most recent unlocks first"""

    @abstractmethod
    async def insert_unlock_if_absent(self, user_id: str, achievement_id: str, now: datetime) -> bool:
        """Record an unlock; returns False if the user already had it"""

    # Leaderboard

    @abstractmethod
    async def upsert_leaderboard_row(
        self,
        user_id: str,
        week_start: date,
        xp_delta: int,
        minutes_delta: int,
    ) -> None:
        """Create the week row with weekly_workouts=1, or add the deltas and one workout"""

    @abstractmethod
    async def load_leaderboard(self, week_start: date, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """Week rows ordered by weekly_xp descending, ties in insertion order"""

    # Completion

    @abstractmethod
    async def commit_completion(self, commit: CompletionCommit) -> Set[str]:
        """
        Atomically apply a CompletionCommit

        Returns:
            Ids of achievements actually inserted by this commit

        Raises:
            ConcurrentModificationError: nothing was written
        """
