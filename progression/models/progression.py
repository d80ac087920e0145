"""Progression state and workout completion models"""
from datetime import datetime, date
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from progression.models.achievement import AchievementDefinition


# Account-creation defaults; kept here so models do not depend on the
# level calculator or on runtime configuration
DEFAULT_MAX_LIVES = 5
DEFAULT_XP_TO_NEXT_LEVEL = 100


class UserProgressionState(BaseModel):
    """
    Per-user progression record

    current_level and xp_to_next_level are derived from experience_points and
    are only ever written through apply_experience().
    """
    user_id: str
    experience_points: int = Field(default=0, ge=0)
    current_level: int = Field(default=1, ge=1)
    xp_to_next_level: int = Field(default=DEFAULT_XP_TO_NEXT_LEVEL, ge=0)

    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_workout_date: Optional[datetime] = None
    streak_freeze_uses_this_month: int = Field(default=0, ge=0)
    streak_freeze_month: Optional[str] = None  # "YYYY-MM" of the last counter reset
    streak_protected_date: Optional[date] = None

    lives_remaining: int = Field(default=DEFAULT_MAX_LIVES, ge=0)
    lives_refill_at: Optional[datetime] = None
    last_life_loss: Optional[datetime] = None

    total_workouts: int = Field(default=0, ge=0)
    total_minutes: int = Field(default=0, ge=0)

    timezone: str = "UTC"
    version: int = Field(default=0, ge=0)

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def check_longest_streak(self) -> "UserProgressionState":
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak must be >= current_streak")
        return self

    @classmethod
    def new(cls, user_id: str, timezone: str = "UTC", max_lives: int = DEFAULT_MAX_LIVES) -> "UserProgressionState":
        """Defaults for a freshly created account"""
        return cls(user_id=user_id, timezone=timezone, lives_remaining=max_lives)


class WorkoutCompletionEvent(BaseModel):
    """A finished workout, as reported by the workout flow"""
    user_id: str
    workout_id: int
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    cards_completed: int = Field(ge=0)
    total_cards: int = Field(ge=0)
    completed_at: datetime

    @field_validator("completed_at")
    @classmethod
    def require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("completed_at must be timezone-aware")
        return value

    @property
    def duration_minutes(self) -> int:
        """Whole minutes of the workout (0 when duration is unknown)"""
        if not self.duration_seconds:
            return 0
        return self.duration_seconds // 60

    @property
    def is_perfect(self) -> bool:
        return self.cards_completed == self.total_cards


class WorkoutRecord(BaseModel):
    """Stored workout as known to the storage collaborator"""
    id: int
    user_id: str
    category: Optional[str] = None
    completed_at: Optional[datetime] = None


class CompletionStage(str, Enum):
    """Stages of one workout completion run"""
    LOADED = "loaded"
    XP_COMPUTED = "xp_computed"
    LEVEL_UPDATED = "level_updated"
    STREAK_UPDATED = "streak_updated"
    ACHIEVEMENTS_EVALUATED = "achievements_evaluated"
    LEADERBOARD_UPDATED = "leaderboard_updated"
    LIVES_CHECKED = "lives_checked"
    DONE = "done"


class StreakUpdate(BaseModel):
    """Outcome of advancing the daily streak"""
    new_streak: int
    streak_increased: bool
    streak_maintained: bool
    streak_protected: bool = False
    previous_streak: int = 0


class StreakInfo(BaseModel):
    """Read-only streak view"""
    current_streak: int
    longest_streak: int
    last_workout_date: Optional[datetime]
    streak_freeze_uses: int
    freezes_remaining: int
    can_use_freeze: bool
    is_at_risk: bool


class LivesStatus(BaseModel):
    """Result of a life deduction"""
    lives_remaining: int
    can_continue: bool


class LivesInfo(BaseModel):
    """Read-only lives view"""
    lives_remaining: int
    max_lives: int
    lives_refill_at: Optional[datetime]
    seconds_until_refill: Optional[int]


class CompletionResult(BaseModel):
    """Consolidated result of one workout completion"""
    xp_gained: int
    new_level: int
    leveled_up: bool
    new_streak: int
    streak_increased: bool
    streak_maintained: bool
    new_achievements: list[AchievementDefinition] = Field(default_factory=list)
    lives_remaining: int
    total_xp: int
    xp_to_next_level: int


class AchievementProgress(BaseModel):
    """How far a user is toward a locked achievement"""
    achievement: AchievementDefinition
    current: int
    required: int
    percentage: int


class ProgressionSummary(BaseModel):
    """Everything a profile screen needs in one read"""
    user_id: str
    experience_points: int
    current_level: int
    xp_to_next_level: int
    current_streak: int
    longest_streak: int
    total_workouts: int
    total_minutes: int
    lives_remaining: int
    streak_freeze_uses: int
    weekly_rank: Optional[int] = None
    recent_achievements: list[AchievementDefinition] = Field(default_factory=list)
    next_achievements: list[AchievementProgress] = Field(default_factory=list)
