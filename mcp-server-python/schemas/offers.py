"""Pydantic schemas for the offer tools."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.records import Attachment
from models.status import OfferResponse
from schemas.common import ActorMixin, ApplicationIdMixin, OfferIdMixin, StrictForbidRequest


def coerce_attachment(value: Any) -> Any:
    """
    Normalize the loose attachment shapes callers send into the tagged record.

    - None or "" -> no attachment
    - "offers/42.pdf" -> reference named after the last path segment
    - {"key", "name", "type"} (object-store style) -> reference
    """
    if value is None:
        return {"kind": "none"}
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return {"kind": "none"}
        return {"kind": "reference", "name": PurePosixPath(value).name or value, "url": value}
    if isinstance(value, dict) and "kind" not in value:
        url = value.get("url") or value.get("key")
        name = value.get("name") or (PurePosixPath(url).name if url else "")
        if not url and not name:
            return {"kind": "none"}
        return {
            "kind": "reference",
            "name": name,
            "url": url,
            "mime_type": value.get("mime_type") or value.get("type"),
        }
    return value


class OfferTerms(BaseModel):
    """Editable terms of an offer."""

    model_config = ConfigDict(extra="forbid")

    offer_type: Literal["text", "pdf", "word"] = "text"
    offer_content: Optional[str] = None
    attachment: Attachment = Field(default_factory=Attachment)
    salary: Optional[str] = None
    salary_currency: Optional[str] = None
    bonus: Optional[str] = None
    equity: Optional[str] = None
    benefits: Optional[str] = None
    start_date: Optional[str] = None
    expiry_date: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    internal_notes: Optional[str] = None

    @field_validator("attachment", mode="before")
    @classmethod
    def normalize_attachment(cls, value: Any) -> Any:
        return coerce_attachment(value)

    @field_validator("salary", "bonus", "equity", mode="before")
    @classmethod
    def stringify_amounts(cls, value: Any) -> Any:
        # Amounts are free text ("12 LPA", "10%"); plain numbers are accepted too
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def check_document(self) -> "OfferTerms":
        if self.offer_type in ("pdf", "word") and self.attachment.kind == "none":
            raise ValueError(f"a {self.offer_type} offer needs an attachment")
        return self


class CreateOfferRequest(ApplicationIdMixin, ActorMixin, StrictForbidRequest):
    terms: dict[str, Any] = Field(default_factory=dict)
    send_now: bool = False


class SendOfferRequest(OfferIdMixin, ActorMixin, StrictForbidRequest):
    pass


class RespondToOfferRequest(OfferIdMixin, ActorMixin, StrictForbidRequest):
    response: OfferResponse
    details: Optional[str] = None
    joining_date: Optional[str] = None
    joining_location: Optional[str] = None

    @field_validator("response", mode="before")
    @classmethod
    def parse_response(cls, value: Any) -> Any:
        if isinstance(value, str):
            return OfferResponse(value)
        return value


class SetOfferStatusRequest(OfferIdMixin, ActorMixin, StrictForbidRequest):
    status: str
    notes: Optional[str] = None


class UpdateOfferTermsRequest(OfferIdMixin, ActorMixin, StrictForbidRequest):
    terms: dict[str, Any]
    resend: bool = False


class OfferActionRequest(OfferIdMixin, ActorMixin, StrictForbidRequest):
    """Request for resend/delete/view/get operations that only need an offer id."""


class ListOffersRequest(ApplicationIdMixin, StrictForbidRequest):
    pass
