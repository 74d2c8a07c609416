"""
Base schemas shared by request and response DTOs.
"""

from pydantic import BaseModel, ConfigDict


class StandardizedModel(BaseModel):
    """Response base: enums serialised by value, fields populated by name or alias."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class StrictRequestModel(BaseModel):
    """Request base that rejects unexpected fields."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
