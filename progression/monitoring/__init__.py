"""Monitoring infrastructure for the progression engine"""
from progression.monitoring.sentry_config import init_sentry, capture_exception, set_user_context
from progression.monitoring.prometheus_metrics import (
    metrics,
    track_completion,
    record_rewards,
    record_retry,
    record_life_lost,
    record_streak_freeze,
)

__all__ = [
    "init_sentry",
    "capture_exception",
    "set_user_context",
    "metrics",
    "track_completion",
    "record_rewards",
    "record_retry",
    "record_life_lost",
    "record_streak_freeze",
]
