"""Unit tests for the weekly leaderboard (progression/gamification/leaderboard.py)"""
import pytest
from datetime import date, datetime, timezone, timedelta
from unittest.mock import patch

from progression.db.memory_store import InMemoryProgressionStore
from progression.gamification.leaderboard import (
    get_week_start,
    record_activity,
    get_weekly_leaderboard,
    get_user_rank,
)


@pytest.fixture
def store():
    return InMemoryProgressionStore()


# ============================================================================
# Week Boundary Tests
# ============================================================================

def test_week_start_is_monday(now):
    # 2024-06-12 is a Wednesday
    assert get_week_start(now) == date(2024, 6, 10)


def test_week_start_sunday_night_belongs_to_previous_monday():
    sunday_late = datetime(2024, 6, 16, 23, 59, tzinfo=timezone.utc)

    assert get_week_start(sunday_late) == date(2024, 6, 10)


def test_week_start_monday_midnight_starts_new_week():
    assert get_week_start(datetime(2024, 6, 17, 0, 0, tzinfo=timezone.utc)) == date(2024, 6, 17)


def test_week_start_follows_leaderboard_timezone():
    """Test the week boundary is Monday 00:00 in the configured zone"""
    # Sunday 23:00 UTC is already Monday in Berlin
    sunday_utc = datetime(2024, 6, 16, 23, 0, tzinfo=timezone.utc)

    with patch("progression.config.LEADERBOARD_TIMEZONE", "Europe/Berlin"):
        assert get_week_start(sunday_utc) == date(2024, 6, 17)


# ============================================================================
# Aggregation Tests
# ============================================================================

@pytest.mark.asyncio
async def test_record_activity_accumulates(store, now):
    """Test repeated activity in one week adds up"""
    await record_activity(store, "alice", 110, 10, now)
    await record_activity(store, "alice", 70, 5, now + timedelta(hours=2))

    board = await get_weekly_leaderboard(store, now=now)

    assert len(board) == 1
    assert board[0].weekly_xp == 180
    assert board[0].weekly_workouts == 2
    assert board[0].weekly_minutes == 15


@pytest.mark.asyncio
async def test_new_week_starts_fresh(store, now):
    await record_activity(store, "alice", 110, 10, now)
    next_week = now + timedelta(days=7)
    await record_activity(store, "alice", 50, 0, next_week)

    board = await get_weekly_leaderboard(store, now=next_week)

    assert [(e.user_id, e.weekly_xp, e.weekly_workouts) for e in board] == [("alice", 50, 1)]


@pytest.mark.asyncio
async def test_leaderboard_ordering_and_ties(store, now):
    """Test highest XP first, ties in insertion order"""
    await record_activity(store, "carol", 100, 10, now)
    await record_activity(store, "alice", 300, 10, now)
    await record_activity(store, "bob", 100, 10, now)

    board = await get_weekly_leaderboard(store, now=now)

    assert [e.user_id for e in board] == ["alice", "carol", "bob"]


@pytest.mark.asyncio
async def test_leaderboard_limit(store, now):
    for i in range(5):
        await record_activity(store, f"user{i}", 10 * i, 0, now)

    assert [e.user_id for e in await get_weekly_leaderboard(store, limit=2, now=now)] == ["user4", "user3"]
    assert await get_weekly_leaderboard(store, limit=0, now=now) == []


# ============================================================================
# Rank Tests
# ============================================================================

@pytest.mark.asyncio
async def test_user_rank(store, now):
    await record_activity(store, "alice", 300, 30, now)
    await record_activity(store, "bob", 100, 10, now)

    standing = await get_user_rank(store, "bob", now)

    assert standing.rank == 2
    assert standing.weekly_xp == 100
    assert standing.total_participants == 2


@pytest.mark.asyncio
async def test_user_rank_without_activity(store, now):
    await record_activity(store, "alice", 300, 30, now)

    standing = await get_user_rank(store, "bob", now)

    assert standing.rank is None
    assert standing.total_participants == 1
