"""Global test fixtures and utilities for progression engine tests"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, timezone

from progression.db.memory_store import InMemoryProgressionStore
from progression.gamification.xp_system import default_rule_table
from progression.models.achievement import AchievementDefinition, PredicateKind
from progression.models.progression import UserProgressionState, WorkoutCompletionEvent, WorkoutRecord


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor with standard query results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    return cursor


@pytest.fixture
def mock_db_connection(mock_db_cursor):
    """Mock psycopg connection whose cursor() yields mock_db_cursor"""
    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = mock_db_cursor
    conn.cursor.return_value.__aexit__.return_value = False
    conn.transaction.return_value.__aenter__.return_value = None
    conn.transaction.return_value.__aexit__.return_value = False
    conn.commit = AsyncMock()
    return conn


# ============================================================================
# User & Time Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "123456789"


@pytest.fixture
def now():
    """Fixed 'current time': Wednesday 2024-06-12 12:00 UTC"""
    return datetime(2024, 6, 12, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fresh_state(test_user_id):
    """Brand-new progression record"""
    return UserProgressionState.new(test_user_id)


# ============================================================================
# Catalog & Rules
# ============================================================================

@pytest.fixture
def rule_table():
    return default_rule_table()


@pytest.fixture
def default_catalog():
    """The stock achievement catalog"""
    return [
        AchievementDefinition(id="first_workout", name="First Steps", icon="🎯",
                              description="Complete your first workout",
                              predicate_kind=PredicateKind.TOTAL_WORKOUTS, threshold=1),
        AchievementDefinition(id="streak_3", name="Getting Started", icon="🔥",
                              description="Maintain a 3-day streak",
                              predicate_kind=PredicateKind.CURRENT_STREAK, threshold=3),
        AchievementDefinition(id="streak_7", name="Week Warrior", icon="⚡",
                              description="Maintain a 7-day streak",
                              predicate_kind=PredicateKind.CURRENT_STREAK, threshold=7),
        AchievementDefinition(id="streak_30", name="Monthly Master", icon="👑",
                              description="Maintain a 30-day streak",
                              predicate_kind=PredicateKind.CURRENT_STREAK, threshold=30),
        AchievementDefinition(id="workouts_100", name="Century Club", icon="💯",
                              description="Complete 100 workouts",
                              predicate_kind=PredicateKind.TOTAL_WORKOUTS, threshold=100),
        AchievementDefinition(id="cardio_king", name="Cardio King", icon="❤️",
                              description="Complete 25 cardio workouts",
                              predicate_kind=PredicateKind.CATEGORY_WORKOUTS, threshold=25, category="cardio"),
        AchievementDefinition(id="strength_master", name="Strength Master", icon="💪",
                              description="Complete 25 strength workouts",
                              predicate_kind=PredicateKind.CATEGORY_WORKOUTS, threshold=25, category="strength"),
        AchievementDefinition(id="flexibility_guru", name="Flexibility Guru", icon="🧘",
                              description="Complete 15 flexibility workouts",
                              predicate_kind=PredicateKind.CATEGORY_WORKOUTS, threshold=15,
                              category="flexibility"),
        AchievementDefinition(id="time_10h", name="Time Investment", icon="⏰",
                              description="Work out for 10 hours total",
                              predicate_kind=PredicateKind.TOTAL_MINUTES, threshold=600),
        AchievementDefinition(id="level_5", name="Rising Star", icon="⭐",
                              description="Reach level 5",
                              predicate_kind=PredicateKind.CURRENT_LEVEL, threshold=5),
        AchievementDefinition(id="xp_1000", name="XP Hunter", icon="💎",
                              description="Earn 1000 XP",
                              predicate_kind=PredicateKind.EXPERIENCE_POINTS, threshold=1000),
        AchievementDefinition(id="perfect_week", name="Perfect Week", icon="🌟",
                              description="Work out every day for a week",
                              predicate_kind=PredicateKind.PERFECT_WEEK, threshold=1),
    ]


# ============================================================================
# Store & Events
# ============================================================================

@pytest.fixture
def memory_store(default_catalog, test_user_id):
    """In-memory store seeded with the stock catalog and one fresh user"""
    store = InMemoryProgressionStore(catalog=default_catalog)
    store.add_user(UserProgressionState.new(test_user_id))
    return store


@pytest.fixture
def make_event(memory_store, test_user_id, now):
    """
    Factory that records a workout in the store and returns its completion event

    Usage: make_event(workout_id=1, duration_seconds=600)
    """
    def _make(
        workout_id: int = 1,
        duration_seconds=600,
        cards_completed: int = 10,
        total_cards: int = 10,
        completed_at: datetime = None,
        category: str = "strength",
        user_id: str = None,
    ) -> WorkoutCompletionEvent:
        completed_at = completed_at or now
        user_id = user_id or test_user_id
        memory_store.add_workout(WorkoutRecord(
            id=workout_id,
            user_id=user_id,
            category=category,
            completed_at=completed_at,
        ))
        return WorkoutCompletionEvent(
            user_id=user_id,
            workout_id=workout_id,
            duration_seconds=duration_seconds,
            cards_completed=cards_completed,
            total_cards=total_cards,
            completed_at=completed_at,
        )

    return _make
