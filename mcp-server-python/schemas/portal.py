"""Pydantic schemas for the candidate portal tools."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from schemas.common import ApplicationIdMixin, StrictForbidRequest


class PortalAuthMixin(ApplicationIdMixin, BaseModel):
    """Credentials every application-scoped portal call carries."""

    email: str
    token: str


class PortalLookupRequest(StrictForbidRequest):
    email: str
    phone_last5: str


class PortalStatusRequest(PortalAuthMixin, StrictForbidRequest):
    pass


class PortalWithdrawRequest(PortalAuthMixin, StrictForbidRequest):
    reason: Optional[str] = None


class PortalRespondToOfferRequest(PortalAuthMixin, StrictForbidRequest):
    """Request schema for the portal's respond_to_offer."""

    response: str
    message: Optional[str] = None
    joining_date: Optional[str] = None
    joining_location: Optional[str] = None
    reason: Optional[str] = None


class PortalSubmitApplicationRequest(StrictForbidRequest):
    """Request schema for the public apply form."""

    name: str
    email: str
    job_id: int
    phone: Optional[str] = None
    resume_text: Optional[str] = None
    resume_key: Optional[str] = None
    referral_source: Optional[str] = None
