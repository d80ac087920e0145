"""
Service Layer Package

Business logic that sits between callers (HTTP handlers, bots, workers)
and storage.

- ProgressionService: workout completion, streak freezes, lives, read views
"""

import logging
from typing import Optional

from progression.services.progression_service import ProgressionService, UserLockRegistry

logger = logging.getLogger(__name__)

# Global service instance (initialized in progression.main)
_service: Optional[ProgressionService] = None


def init_service(service: ProgressionService) -> ProgressionService:
    """Install the process-wide ProgressionService"""
    global _service
    _service = service
    logger.info("ProgressionService registered")
    return _service


def get_service() -> ProgressionService:
    """
    Get the process-wide ProgressionService.

    Raises:
        RuntimeError: If init_service() has not been called
    """
    if _service is None:
        raise RuntimeError("ProgressionService not initialized. Call init_service() first.")
    return _service


__all__ = [
    "ProgressionService",
    "UserLockRegistry",
    "init_service",
    "get_service",
]
