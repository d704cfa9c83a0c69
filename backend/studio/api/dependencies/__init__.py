# backend/studio/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .database import get_db
from .services import get_schedule_repository, get_schedule_service

__all__ = [
    # Database
    "get_db",
    # Services
    "get_schedule_repository",
    "get_schedule_service",
]
