# backend/studio/repositories/__init__.py
"""
Repository layer for the studio scheduling engine.

Repositories own all database access; services and the scheduling core only
see the pydantic snapshot types they return.
"""

from .schedule_repository import ScheduleRepository, ScheduleRepositoryProtocol

__all__ = ["ScheduleRepository", "ScheduleRepositoryProtocol"]
