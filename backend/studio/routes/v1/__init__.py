# backend/studio/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import health, schedule

__all__ = ["health", "schedule"]
