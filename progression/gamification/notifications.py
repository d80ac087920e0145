"""
Progression notifications

Facts emitted after a workout completion is committed. Delivery (push,
toast, chat message) belongs to whoever implements Notifier; the engine
publishes fire-and-forget and never lets a delivery failure touch progress.
"""

from typing import List, Union
import logging

from pydantic import BaseModel

from progression.models.achievement import AchievementDefinition

logger = logging.getLogger(__name__)


class LeveledUp(BaseModel):
    new_level: int
    xp_gained: int


class AchievementsUnlocked(BaseModel):
    achievements: List[AchievementDefinition]


class StreakChanged(BaseModel):
    new_streak: int
    increased: bool
    maintained: bool


class LivesChanged(BaseModel):
    lives_remaining: int
    can_continue: bool


ProgressionFact = Union[LeveledUp, AchievementsUnlocked, StreakChanged, LivesChanged]


class Notifier:
    """Receives progression facts; subclass to deliver them somewhere"""

    async def publish(self, user_id: str, fact: ProgressionFact) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Default notifier: writes each fact to the log"""

    async def publish(self, user_id: str, fact: ProgressionFact) -> None:
        if isinstance(fact, AchievementsUnlocked):
            for achievement in fact.achievements:
                logger.info(f"[NOTIFY] user={user_id}\n{format_achievement_unlock_message(achievement)}")
            return
        logger.info(f"[NOTIFY] user={user_id} {type(fact).__name__}: {fact.model_dump_json()}")


async def publish_safely(notifier: Notifier, user_id: str, facts: List[ProgressionFact]) -> None:
    """Publish facts in order; a failing delivery is logged and skipped"""
    for fact in facts:
        try:
            await notifier.publish(user_id, fact)
        except Exception as e:
            logger.error(
                f"Failed to publish {type(fact).__name__} for user {user_id}: {e}",
                exc_info=True
            )


def format_achievement_unlock_message(achievement: AchievementDefinition) -> str:
    """
    Format achievement unlock message for celebration

    Args:
        achievement: Newly unlocked achievement

    Returns:
        Formatted celebration message
    """
    icon = achievement.icon or "🏆"
    return f"""🎉 ACHIEVEMENT UNLOCKED! 🎉

{icon} {achievement.name}

{achievement.description}

Keep up the amazing work! 💪"""
