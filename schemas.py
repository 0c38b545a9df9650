"""Pydantic schemas for request/response validation."""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, model_validator

RATE_CATEGORIES = ("project", "design", "modules")


def _is_rate(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value >= 0
    )


# --- Rate Table ---


class RateTable(BaseModel):
    """
    The rate configuration document.

    Unknown top-level keys are kept so that a read-modify-write round trip
    does not drop fields this service does not know about.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, allow_inf_nan=False)

    hourly_rate: NonNegativeFloat = Field(..., alias="hourlyRate")
    project: dict[str, NonNegativeFloat] = Field(default_factory=dict)
    design: dict[str, NonNegativeFloat] = Field(default_factory=dict)
    modules: dict[str, NonNegativeFloat] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_extra_rates(self) -> "RateTable":
        """Unknown keys must hold a rate or a flat mapping of rates."""
        for key, value in (self.model_extra or {}).items():
            if isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    if not _is_rate(sub_value):
                        raise ValueError(f"{key}.{sub_key} must be a non-negative number")
            elif not _is_rate(value):
                raise ValueError(f"{key} must be a non-negative number")
        return self

    @classmethod
    def from_store(cls, data: dict[str, Any]) -> "RateTable":
        """Build a table from stored data as-is, without validating values."""
        values = dict(data)
        hourly_rate = values.pop("hourly_rate", 0)
        hourly_rate = values.pop("hourlyRate", hourly_rate)
        categories = {name: dict(values.pop(name, None) or {}) for name in RATE_CATEGORIES}
        return cls.model_construct(hourly_rate=hourly_rate, **categories, **values)

    def hours_for(self, category: str, key: str | None) -> float:
        """Hours for an identifier in a category; unknown identifiers cost nothing."""
        if key is None:
            return 0.0
        table: dict[str, float] = getattr(self, category)
        return table.get(key) or 0.0

    def to_document(self) -> dict[str, Any]:
        """Serialize using the stored document's field names."""
        return self.model_dump(by_alias=True)


# --- Estimate Schemas ---


class SelectionPayload(BaseModel):
    """A calculator selection as sent by the page or stored locally."""

    model_config = ConfigDict(populate_by_name=True)

    project_type: str | None = Field(None, alias="projectType", max_length=100)
    design_type: str | None = Field(None, alias="designType", max_length=100)
    modules: list[str] = Field(default_factory=list, max_length=100)


class EstimateResponse(BaseModel):
    """Schema for estimate response."""

    total_hours: float
    total_cost: float
    formatted_cost: str
    formatted_timeline: str


# --- Generic Responses ---


class MessageResponse(BaseModel):
    """Schema for a plain success message."""

    message: str


class ErrorResponse(BaseModel):
    """Schema for every error body returned by the API."""

    message: str
    error: str
