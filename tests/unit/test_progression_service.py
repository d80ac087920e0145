"""Unit tests for ProgressionService secondary operations"""
import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from progression.exceptions import RecordNotFoundError
from progression.gamification.notifications import AchievementsUnlocked, LivesChanged, Notifier
from progression.models.progression import UserProgressionState
from progression.services import get_service, init_service
from progression.services.progression_service import ProgressionService, UserLockRegistry


class RecordingNotifier(Notifier):
    def __init__(self):
        self.published = []

    async def publish(self, user_id, fact):
        self.published.append(fact)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(memory_store, notifier):
    return ProgressionService(memory_store, notifier=notifier)


# ============================================================================
# Lock Registry
# ============================================================================

@pytest.mark.asyncio
async def test_lock_registry_serializes_one_user():
    registry = UserLockRegistry()
    order = []

    async def work(name):
        async with registry.lock("a"):
            order.append(f"{name}-start")
            await asyncio.sleep(0)
            order.append(f"{name}-end")

    await asyncio.gather(work("first"), work("second"))

    assert order == ["first-start", "first-end", "second-start", "second-end"]
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_lock_registry_evicts_idle_locks(service, memory_store, now):
    """Test locks are dropped once nobody holds or waits for them"""
    for i in range(200):
        memory_store.add_user(UserProgressionState.new(f"user-{i}"))
        await service.check_lives(f"user-{i}", now)

    assert len(service.locks) == 0


def test_service_registry():
    service = ProgressionService(AsyncMock())

    assert init_service(service) is service
    assert get_service() is service


# ============================================================================
# Streak Freeze
# ============================================================================

@pytest.mark.asyncio
async def test_use_streak_freeze_persists(service, memory_store, test_user_id, now):
    assert await service.use_streak_freeze(test_user_id, now) is True

    stored = await memory_store.load_user(test_user_id)
    assert stored.streak_freeze_uses_this_month == 1
    assert stored.streak_protected_date == now.date()
    assert stored.version == 1


@pytest.mark.asyncio
async def test_use_streak_freeze_cap(service, memory_store, test_user_id, now):
    results = [await service.use_streak_freeze(test_user_id, now) for _ in range(4)]

    assert results == [True, True, True, False]
    # The refused attempt changes nothing, so it is not saved
    assert (await memory_store.load_user(test_user_id)).version == 3


@pytest.mark.asyncio
async def test_use_streak_freeze_unknown_user(service, now):
    with pytest.raises(RecordNotFoundError):
        await service.use_streak_freeze("ghost", now)


# ============================================================================
# Lives
# ============================================================================

@pytest.mark.asyncio
async def test_deduct_life_persists_and_notifies(service, memory_store, notifier, test_user_id, now):
    status = await service.deduct_life(test_user_id, now)

    assert status.lives_remaining == 4
    assert (await memory_store.load_user(test_user_id)).lives_remaining == 4
    assert notifier.published == [LivesChanged(lives_remaining=4, can_continue=True)]


@pytest.mark.asyncio
async def test_deduct_life_at_zero_is_silent(service, memory_store, notifier, test_user_id, now):
    for i in range(5):
        await service.deduct_life(test_user_id, now + timedelta(seconds=i))
    notifier.published.clear()

    status = await service.deduct_life(test_user_id, now + timedelta(minutes=1))

    assert status.lives_remaining == 0
    assert status.can_continue is False
    assert notifier.published == []


@pytest.mark.asyncio
async def test_deduct_life_restores_first_when_refill_due(service, memory_store, test_user_id, now):
    memory_store.add_user(UserProgressionState(
        user_id=test_user_id,
        lives_remaining=0,
        lives_refill_at=now - timedelta(seconds=1),
    ))

    status = await service.deduct_life(test_user_id, now)

    assert status.lives_remaining == 4


@pytest.mark.asyncio
async def test_check_lives_only_saves_on_change(service, memory_store, test_user_id, now):
    assert await service.check_lives(test_user_id, now) == 5
    assert (await memory_store.load_user(test_user_id)).version == 0


@pytest.mark.asyncio
async def test_check_lives_schedules_missing_refill(service, memory_store, test_user_id, now):
    memory_store.add_user(UserProgressionState(user_id=test_user_id, lives_remaining=0))

    assert await service.check_lives(test_user_id, now) == 0

    stored = await memory_store.load_user(test_user_id)
    assert stored.lives_refill_at == now + timedelta(minutes=30)
    assert await service.check_lives(test_user_id, now + timedelta(minutes=30)) == 5


@pytest.mark.asyncio
async def test_get_lives_info_restores(service, memory_store, test_user_id, now):
    memory_store.add_user(UserProgressionState(
        user_id=test_user_id,
        lives_remaining=0,
        lives_refill_at=now + timedelta(minutes=10),
    ))

    info = await service.get_lives_info(test_user_id, now)
    assert info.lives_remaining == 0
    assert info.seconds_until_refill == 600

    later = await service.get_lives_info(test_user_id, now + timedelta(minutes=10))
    assert later.lives_remaining == 5
    assert later.lives_refill_at is None


# ============================================================================
# Read Views
# ============================================================================

@pytest.mark.asyncio
async def test_get_streak_info(service, memory_store, test_user_id, now):
    memory_store.add_user(UserProgressionState(
        user_id=test_user_id,
        current_streak=4,
        longest_streak=9,
        last_workout_date=now - timedelta(days=2),
    ))

    info = await service.get_streak_info(test_user_id, now)

    assert info.current_streak == 4
    assert info.longest_streak == 9
    assert info.is_at_risk is True


@pytest.mark.asyncio
async def test_recheck_achievements(service, memory_store, notifier, test_user_id, now):
    """Test a catalog recheck awards once and notifies"""
    memory_store.add_user(UserProgressionState(user_id=test_user_id, total_workouts=1))

    awarded = await service.recheck_achievements(test_user_id, now)
    again = await service.recheck_achievements(test_user_id, now)

    assert [a.id for a in awarded] == ["first_workout"]
    assert again == []
    assert len(notifier.published) == 1
    assert isinstance(notifier.published[0], AchievementsUnlocked)


@pytest.mark.asyncio
async def test_summary(service, memory_store, make_event, test_user_id, now):
    await service.complete_workout(make_event())

    summary = await service.get_summary(test_user_id, now)

    assert summary.experience_points == 110
    assert summary.current_level == 2
    assert summary.current_streak == 1
    assert summary.total_workouts == 1
    assert summary.lives_remaining == 5
    assert summary.weekly_rank == 1
    assert [a.id for a in summary.recent_achievements] == ["first_workout"]

    percentages = [p.percentage for p in summary.next_achievements]
    assert len(percentages) == 3
    assert percentages == sorted(percentages, reverse=True)
    assert "first_workout" not in [p.achievement.id for p in summary.next_achievements]


@pytest.mark.asyncio
async def test_leaderboard_and_rank(service, memory_store, make_event, test_user_id, now):
    memory_store.add_user(UserProgressionState.new("rival"))
    await service.complete_workout(make_event(workout_id=1))
    await service.complete_workout(make_event(workout_id=2, user_id="rival", duration_seconds=1800))

    board = await service.get_weekly_leaderboard(now=now)
    standing = await service.get_user_rank(test_user_id, now)

    assert [e.user_id for e in board] == ["rival", test_user_id]
    assert standing.rank == 2
    assert standing.total_participants == 2


@pytest.mark.asyncio
async def test_completion_records_metrics(service, make_event):
    with patch("progression.services.progression_service.record_rewards") as mock_rewards:
        result = await service.complete_workout(make_event())

    mock_rewards.assert_called_once_with(110, True, ["first_workout"])
    assert result.leveled_up is True
