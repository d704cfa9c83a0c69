"""Schema baselines: strict DTOs, lenient snapshot records and frozen derived values."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StrictModel(BaseModel):
    """Neutral strict base for response DTOs (camelCase on the wire)."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class StrictRequestModel(StrictModel):
    """Request DTO base that always forbids unexpected fields."""


class SnapshotModel(BaseModel):
    """
    Lenient base for records read from the booking store.

    Stored rows are camelCase JSON written by several client generations, so
    unknown keys are ignored rather than rejected.
    """

    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FrozenModel(StrictModel):
    """
    Immutable value recomputed on every call, never persisted.

    Extra keys are ignored so a dump that includes computed fields validates
    back into the same model.
    """

    model_config = ConfigDict(frozen=True, validate_assignment=False, extra="ignore")
