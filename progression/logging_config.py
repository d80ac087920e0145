"""Logging setup for processes that host the progression engine"""
import logging

from progression.config import LOG_LEVEL


def setup_logging(level: str = None) -> None:
    """Configure root logging once per process"""
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    )
    # psycopg pool chatter is noisy at INFO
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
