"""Shared schema primitives for MCP tool request/response models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


def validate_optional_non_empty_str(value: Optional[str], field_name: str) -> Optional[str]:
    """Validate optional string fields that cannot be empty/whitespace."""
    if value is None:
        return None
    if not value.strip():
        raise ValueError(f"Invalid {field_name}: cannot be empty")
    return value


class StrictForbidRequest(BaseModel):
    """Request base with strict typing and rejected unknown fields."""

    model_config = ConfigDict(extra="forbid", strict=True)


class ActorMixin(BaseModel):
    """Reusable actor field validation."""

    actor: Optional[str] = None

    @field_validator("actor")
    @classmethod
    def validate_actor(cls, value: Optional[str]) -> Optional[str]:
        return validate_optional_non_empty_str(value, "actor")


class ApplicationIdMixin(BaseModel):
    """Reusable application_id field validation."""

    application_id: int

    @field_validator("application_id")
    @classmethod
    def validate_application_id(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value


class OfferIdMixin(BaseModel):
    """Reusable offer_id field validation."""

    offer_id: int

    @field_validator("offer_id")
    @classmethod
    def validate_offer_id(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value
