"""Instructor roster schemas."""

from ._strict_base import SnapshotModel


class Instructor(SnapshotModel):
    """Roster entry. The color scheme is only used when rendering the grid."""

    id: int
    name: str
    color_scheme: str = "secondary"
