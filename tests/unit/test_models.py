"""Unit tests for Pydantic models"""
import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from progression.models.achievement import AchievementDefinition, PredicateKind
from progression.models.progression import UserProgressionState, WorkoutCompletionEvent


# ============================================================================
# UserProgressionState Tests
# ============================================================================

def test_new_user_defaults():
    state = UserProgressionState.new("123456789", timezone="Europe/Berlin")

    assert state.experience_points == 0
    assert state.current_level == 1
    assert state.xp_to_next_level == 100
    assert state.lives_remaining == 5
    assert state.timezone == "Europe/Berlin"
    assert state.version == 0


def test_state_rejects_negative_counters():
    with pytest.raises(ValidationError):
        UserProgressionState(user_id="123456789", experience_points=-1)


def test_longest_streak_cannot_trail_current():
    """Test longest_streak >= current_streak is enforced"""
    with pytest.raises(ValidationError):
        UserProgressionState(user_id="123456789", current_streak=4, longest_streak=3)


def test_assignment_is_validated():
    state = UserProgressionState.new("123456789")

    with pytest.raises(ValidationError):
        state.lives_remaining = -1


# ============================================================================
# WorkoutCompletionEvent Tests
# ============================================================================

def _event(**overrides):
    data = dict(
        user_id="123456789",
        workout_id=1,
        duration_seconds=659,
        cards_completed=8,
        total_cards=10,
        completed_at=datetime(2024, 6, 12, 12, 0, tzinfo=timezone.utc),
    )
    data.update(overrides)
    return WorkoutCompletionEvent(**data)


def test_duration_minutes_floors():
    assert _event().duration_minutes == 10
    assert _event(duration_seconds=None).duration_minutes == 0


def test_is_perfect():
    assert _event().is_perfect is False
    assert _event(cards_completed=10).is_perfect is True


def test_event_requires_aware_timestamp():
    with pytest.raises(ValidationError):
        _event(completed_at=datetime(2024, 6, 12, 12, 0))


# ============================================================================
# AchievementDefinition Tests
# ============================================================================

def test_category_achievement_needs_category():
    with pytest.raises(ValidationError):
        AchievementDefinition(
            id="strength_10",
            name="Strong",
            predicate_kind=PredicateKind.CATEGORY_WORKOUTS,
            threshold=10,
        )


def test_counter_achievement_valid():
    achievement = AchievementDefinition(
        id="workouts_10",
        name="Getting Serious",
        predicate_kind="total_workouts",
        threshold=10,
    )

    assert achievement.predicate_kind == PredicateKind.TOTAL_WORKOUTS
    assert achievement.category is None
