"""Achievement models for gamification"""
from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime


class PredicateKind(str, Enum):
    """What an achievement threshold is compared against"""
    TOTAL_WORKOUTS = "total_workouts"
    CURRENT_STREAK = "current_streak"
    EXPERIENCE_POINTS = "experience_points"
    CURRENT_LEVEL = "current_level"
    TOTAL_MINUTES = "total_minutes"
    CATEGORY_WORKOUTS = "category_workouts"
    PERFECT_WEEK = "perfect_week"


# Predicates answered straight from UserProgressionState fields
COUNTER_FIELDS = {
    PredicateKind.TOTAL_WORKOUTS: "total_workouts",
    PredicateKind.CURRENT_STREAK: "current_streak",
    PredicateKind.EXPERIENCE_POINTS: "experience_points",
    PredicateKind.CURRENT_LEVEL: "current_level",
    PredicateKind.TOTAL_MINUTES: "total_minutes",
}


class AchievementDefinition(BaseModel):
    """Achievement catalog entry (read-only)"""
    id: str
    name: str
    description: str = ""
    icon: str = ""
    predicate_kind: PredicateKind
    threshold: int = Field(ge=0)
    category: Optional[str] = None

    @model_validator(mode="after")
    def check_category(self) -> "AchievementDefinition":
        if self.predicate_kind == PredicateKind.CATEGORY_WORKOUTS and not self.category:
            raise ValueError("category_workouts achievements need a category")
        return self


class AchievementUnlock(BaseModel):
    """User's unlocked achievement"""
    user_id: str
    achievement_id: str
    unlocked_at: datetime
