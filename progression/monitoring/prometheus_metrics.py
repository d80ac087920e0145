"""Prometheus metrics definitions and helpers"""
import logging
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

from progression.config import ENABLE_PROMETHEUS

logger = logging.getLogger(__name__)


class PrometheusMetrics:
    """Container for all Prometheus metrics"""

    def __init__(self):
        if not ENABLE_PROMETHEUS:
            logger.info("Prometheus metrics disabled")
            self._enabled = False
            return

        try:
            # Workout completion metrics
            self.workouts_processed_total = Counter(
                'progression_workouts_processed_total',
                'Total workout completions processed',
                ['status']
            )

            self.completion_duration_seconds = Histogram(
                'progression_completion_duration_seconds',
                'Workout completion latency',
                buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0]
            )

            self.completion_conflicts_total = Counter(
                'progression_completion_conflicts_total',
                'Retries caused by transient errors',
                ['operation', 'error_type']
            )

            # Reward metrics
            self.xp_awarded_total = Counter(
                'progression_xp_awarded_total',
                'Total experience points awarded'
            )

            self.level_ups_total = Counter(
                'progression_level_ups_total',
                'Total level-ups'
            )

            self.achievements_unlocked_total = Counter(
                'progression_achievements_unlocked_total',
                'Total achievements unlocked',
                ['achievement_id']
            )

            self.lives_lost_total = Counter(
                'progression_lives_lost_total',
                'Total lives deducted'
            )

            self.streak_freezes_used_total = Counter(
                'progression_streak_freezes_used_total',
                'Total streak freezes consumed'
            )

            self._enabled = True
            logger.info("Prometheus metrics initialized")

        except Exception as e:
            logger.error(f"Failed to initialize Prometheus metrics: {e}", exc_info=True)
            self._enabled = False

    @property
    def enabled(self) -> bool:
        """Check if metrics are enabled"""
        return self._enabled


# Global metrics instance
metrics = PrometheusMetrics()


@contextmanager
def track_completion():
    """Track workout completion count and latency"""
    if not metrics.enabled:
        yield
        return

    start_time = time.time()
    status = "error"

    try:
        yield
        status = "success"
    finally:
        duration = time.time() - start_time
        metrics.completion_duration_seconds.observe(duration)
        metrics.workouts_processed_total.labels(status=status).inc()


def record_rewards(xp_gained: int, leveled_up: bool, achievement_ids) -> None:
    """Record XP, level-up and unlock counters for one completion"""
    if not metrics.enabled:
        return

    metrics.xp_awarded_total.inc(xp_gained)
    if leveled_up:
        metrics.level_ups_total.inc()
    for achievement_id in achievement_ids:
        metrics.achievements_unlocked_total.labels(achievement_id=achievement_id).inc()


def record_retry(operation: str, error_type: str) -> None:
    """Count one retry of an operation"""
    if not metrics.enabled:
        return

    metrics.completion_conflicts_total.labels(
        operation=operation,
        error_type=error_type
    ).inc()


def record_life_lost() -> None:
    if metrics.enabled:
        metrics.lives_lost_total.inc()


def record_streak_freeze() -> None:
    if metrics.enabled:
        metrics.streak_freezes_used_total.inc()
