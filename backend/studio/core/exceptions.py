# backend/studio/core/exceptions.py
"""
Domain-specific exceptions for the studio scheduling engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.

Policy outcomes (a reschedule inside the lead-time window, for example)
are NOT exceptions; they are returned as structured results.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class SlotCapacityConflictException(ConflictException):
    """Raised when the destination slot filled up before a reschedule was persisted."""

    def __init__(self, date: str, time: str, capacity: int, participants: int):
        super().__init__(
            message=f"Slot {date} {time} is full ({participants}/{capacity})",
            code="SLOT_CAPACITY_CONFLICT",
            details={
                "date": date,
                "time": time,
                "capacity": capacity,
                "participants": participants,
            },
        )


class SlotNotFoundException(NotFoundException):
    """Raised when a booking does not hold the slot a mutation refers to."""

    def __init__(self, booking_id: str, date: str, time: str):
        super().__init__(
            message=f"Booking {booking_id} has no slot on {date} at {time}",
            code="SLOT_NOT_FOUND",
            details={"booking_id": booking_id, "date": date, "time": time},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
