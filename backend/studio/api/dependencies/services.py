# backend/studio/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Factory functions that build service instances with their repositories
injected, one per request.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...repositories.schedule_repository import ScheduleRepository
from ...services.schedule_service import ScheduleService
from .database import get_db


def get_schedule_repository(db: Session = Depends(get_db)) -> ScheduleRepository:
    return ScheduleRepository(db)


def get_schedule_service(
    repository: ScheduleRepository = Depends(get_schedule_repository),
) -> ScheduleService:
    return ScheduleService(repository)
