"""Achievement catalog and unlock queries"""
import logging
from datetime import datetime
from typing import Optional
import psycopg
from progression.db.connection import db
from progression.models.achievement import AchievementDefinition, AchievementUnlock

logger = logging.getLogger(__name__)


async def get_all_achievements(conn: Optional[psycopg.AsyncConnection] = None) -> list[AchievementDefinition]:
    """Get the achievement catalog"""
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                SELECT id, name, description, icon, predicate_kind, threshold, category
                FROM achievements
                ORDER BY sort_order, id
                """
            )
            rows = await cur.fetchall()

    return [AchievementDefinition(**row) for row in rows]


async def get_unlocked_achievement_ids(
    user_id: str,
    conn: Optional[psycopg.AsyncConnection] = None
) -> set[str]:
    """Get ids of achievements a user has unlocked"""
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                "SELECT achievement_id FROM user_achievements WHERE user_id = %s",
                (user_id,)
            )
            rows = await cur.fetchall()

    return {row["achievement_id"] for row in rows}


async def get_recent_unlocks(
    user_id: str,
    limit: int = 5,
    conn: Optional[psycopg.AsyncConnection] = None
) -> list[AchievementUnlock]:
    """Get a user's most recent unlocks, newest first"""
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, achievement_id, unlocked_at
                FROM user_achievements
                WHERE user_id = %s
                ORDER BY unlocked_at DESC
                LIMIT %s
                """,
                (user_id, limit)
            )
            rows = await cur.fetchall()

    return [AchievementUnlock(**row) for row in rows]


async def insert_unlock_if_absent(
    user_id: str,
    achievement_id: str,
    unlocked_at: datetime,
    conn: Optional[psycopg.AsyncConnection] = None
) -> bool:
    """
    Record an unlock unless the user already has it

    Returns:
        True if a row was inserted
    """
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_achievements (user_id, achievement_id, unlocked_at)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, achievement_id) DO NOTHING
                RETURNING achievement_id
                """,
                (user_id, achievement_id, unlocked_at)
            )
            row = await cur.fetchone()

    if row:
        logger.info(f"Unlocked achievement {achievement_id} for user {user_id}")
    return row is not None
