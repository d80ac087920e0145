"""Weekly leaderboard models"""
from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class LeaderboardEntry(BaseModel):
    """One user's totals for one ISO week"""
    user_id: str
    week_start: date
    weekly_xp: int = Field(default=0, ge=0)
    weekly_workouts: int = Field(default=0, ge=0)
    weekly_minutes: int = Field(default=0, ge=0)


class LeaderboardStanding(BaseModel):
    """A user's position on the current week's board"""
    rank: Optional[int] = None
    weekly_xp: int = 0
    weekly_workouts: int = 0
    weekly_minutes: int = 0
    total_participants: int = 0
