"""
Domain records for the hiring pipeline.

These pydantic models are what the reader returns, what the engines operate
on, and what the tools serialize back to callers. Raw database rows are
accepted directly: unknown columns are ignored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.status import ApplicationStatus, OfferStatus, Stage


class _Record(BaseModel):
    """Record base: ignores unknown row columns."""

    model_config = ConfigDict(extra="ignore")


class StageHistoryEntry(_Record):
    """One stage-residency interval in an application's ledger."""

    id: Optional[int] = None
    stage: Stage
    entered_at: datetime
    exited_at: Optional[datetime] = None
    duration_days: Optional[int] = None
    moved_by: str
    notes: Optional[str] = None
    action: str = "stage_change"

    @property
    def is_open(self) -> bool:
        return self.exited_at is None


class Comment(_Record):
    text: str
    author: str
    timestamp: datetime
    stage: Optional[str] = None


class Candidate(_Record):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    resume_text: Optional[str] = None
    resume_key: Optional[str] = None


class JobOpening(_Record):
    id: int
    title: str
    department: Optional[str] = None
    location: Optional[str] = None
    skills: Optional[str] = None
    description: Optional[str] = None


class Application(_Record):
    """The root aggregate: one candidate pursuing one job opening."""

    id: int
    candidate_id: int
    job_id: int
    stage: Stage = Stage.SHORTLISTING
    status: ApplicationStatus = ApplicationStatus.UNDER_REVIEW
    reference_number: Optional[str] = None
    referral_source: Optional[str] = None
    days_in_stage: int = 0
    needs_attention: bool = False
    applied_at: datetime
    last_activity_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_date: Optional[datetime] = None
    withdrawn_reason: Optional[str] = None
    withdrawn_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    ai_score: Optional[float] = None
    profile_strength: Optional[str] = None
    ai_analysis: Optional[Dict[str, Any]] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    stage_history: List[StageHistoryEntry] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)


class Attachment(_Record):
    """Offer document reference: either nothing, or an opaque object-store reference."""

    kind: Literal["none", "reference"] = "none"
    name: str = ""
    url: Optional[str] = None
    mime_type: Optional[str] = None

    @model_validator(mode="after")
    def check_reference(self) -> "Attachment":
        if self.kind == "reference" and not (self.name or self.url):
            raise ValueError("attachment reference needs a name or url")
        if self.kind == "none" and (self.url or self.mime_type):
            raise ValueError("attachment of kind 'none' cannot carry a url or mime_type")
        return self


class NegotiationEntry(_Record):
    id: Optional[int] = None
    date: datetime
    action: str
    details: str
    by: str


class Offer(_Record):
    """A terms proposal tied to one application, with its own lifecycle."""

    id: int
    application_id: int
    status: OfferStatus = OfferStatus.DRAFT
    offer_type: Literal["text", "pdf", "word"] = "text"
    offer_content: Optional[str] = None
    attachment: Attachment = Field(default_factory=Attachment)
    salary: Optional[str] = None
    salary_currency: str = "INR"
    bonus: Optional[str] = None
    equity: Optional[str] = None
    benefits: Optional[str] = None
    start_date: Optional[str] = None
    expiry_date: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    internal_notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    sent_by: Optional[str] = None
    response_date: Optional[datetime] = None
    response_notes: Optional[str] = None
    joining_date: Optional[str] = None
    joining_location: Optional[str] = None
    decline_reason: Optional[str] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    negotiation_history: List[NegotiationEntry] = Field(default_factory=list)


class ActivityLogEntry(_Record):
    id: Optional[int] = None
    application_id: int
    action: str
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
