"""
Database models for the studio scheduling engine.

- Instructor roster
- Product catalog (type-specific fields as JSON)
- Bookings with their reserved slots
- Studio settings (availability template, schedule overrides, class capacity)
"""

from .booking import Booking
from .instructor import Instructor
from .product import Product
from .studio_setting import StudioSetting

__all__ = ["Booking", "Instructor", "Product", "StudioSetting"]
