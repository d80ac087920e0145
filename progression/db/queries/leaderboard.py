"""Weekly leaderboard queries"""
import logging
from datetime import date
from typing import Optional
import psycopg
from progression.db.connection import db
from progression.models.leaderboard import LeaderboardEntry

logger = logging.getLogger(__name__)


async def upsert_leaderboard_row(
    user_id: str,
    week_start: date,
    xp_delta: int,
    minutes_delta: int,
    conn: Optional[psycopg.AsyncConnection] = None
) -> None:
    """
    Atomically add one workout to a user's week row

    The increment happens in SQL so concurrent writers never lose updates.
    """
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO leaderboards (user_id, week_start, weekly_xp, weekly_workouts, weekly_minutes)
                VALUES (%s, %s, %s, 1, %s)
                ON CONFLICT (user_id, week_start) DO UPDATE
                SET weekly_xp = leaderboards.weekly_xp + EXCLUDED.weekly_xp,
                    weekly_workouts = leaderboards.weekly_workouts + 1,
                    weekly_minutes = leaderboards.weekly_minutes + EXCLUDED.weekly_minutes
                """,
                (user_id, week_start, xp_delta, minutes_delta)
            )


async def get_leaderboard(
    week_start: date,
    limit: Optional[int] = None,
    conn: Optional[psycopg.AsyncConnection] = None
) -> list[LeaderboardEntry]:
    """
    Get one week's rows, highest weekly XP first

    Ties are broken by row id, i.e. the order the rows were created in.
    """
    async with db.reuse(conn) as c:
        async with c.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, week_start, weekly_xp, weekly_workouts, weekly_minutes
                FROM leaderboards
                WHERE week_start = %s
                ORDER BY weekly_xp DESC, id ASC
                LIMIT %s
                """,
                (week_start, limit)
            )
            rows = await cur.fetchall()

    return [LeaderboardEntry(**row) for row in rows]
