"""Unit tests for progression notifications"""
import logging
import pytest
from unittest.mock import AsyncMock

from progression.gamification.notifications import (
    AchievementsUnlocked,
    LeveledUp,
    LoggingNotifier,
    Notifier,
    StreakChanged,
    format_achievement_unlock_message,
    publish_safely,
)
from progression.models.achievement import AchievementDefinition, PredicateKind


def _achievement():
    return AchievementDefinition(
        id="streak_7",
        name="Week Warrior",
        description="Maintain a 7-day streak",
        icon="⚡",
        predicate_kind=PredicateKind.CURRENT_STREAK,
        threshold=7,
    )


def test_format_achievement_unlock_message():
    message = format_achievement_unlock_message(_achievement())

    assert "ACHIEVEMENT UNLOCKED" in message
    assert "⚡ Week Warrior" in message
    assert "Maintain a 7-day streak" in message


@pytest.mark.asyncio
async def test_base_notifier_is_abstract():
    with pytest.raises(NotImplementedError):
        await Notifier().publish("123456789", LeveledUp(new_level=2, xp_gained=110))


@pytest.mark.asyncio
async def test_logging_notifier_writes_facts(caplog):
    notifier = LoggingNotifier()

    with caplog.at_level(logging.INFO, logger="progression.gamification.notifications"):
        await notifier.publish("123456789", LeveledUp(new_level=2, xp_gained=110))
        await notifier.publish("123456789", AchievementsUnlocked(achievements=[_achievement()]))

    assert "LeveledUp" in caplog.text
    assert "Week Warrior" in caplog.text


@pytest.mark.asyncio
async def test_publish_safely_continues_after_failure():
    """Test one failing delivery does not stop the rest"""
    notifier = AsyncMock(spec=Notifier)
    notifier.publish.side_effect = [RuntimeError("gateway down"), None]
    facts = [
        LeveledUp(new_level=2, xp_gained=110),
        StreakChanged(new_streak=1, increased=True, maintained=True),
    ]

    await publish_safely(notifier, "123456789", facts)

    assert notifier.publish.await_count == 2
