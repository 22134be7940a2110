"""Pydantic schemas for the application (console) tools."""

from __future__ import annotations

from typing import Optional

from pydantic import field_validator

from schemas.common import (
    ActorMixin,
    ApplicationIdMixin,
    StrictForbidRequest,
    validate_optional_non_empty_str,
)


class MoveToStageRequest(ApplicationIdMixin, ActorMixin, StrictForbidRequest):
    """Request schema for move_to_stage."""

    target_stage: str
    notes: Optional[str] = None
    action: Optional[str] = None
    expected_stage: Optional[str] = None
    notify: bool = False


class RejectApplicationRequest(ApplicationIdMixin, ActorMixin, StrictForbidRequest):
    """Request schema for reject_application."""

    reason: str
    notify: bool = False

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("cannot be empty")
        return value


class WithdrawApplicationRequest(ApplicationIdMixin, ActorMixin, StrictForbidRequest):
    reason: Optional[str] = None


class CreateApplicationRequest(ActorMixin, StrictForbidRequest):
    """Request schema for create_application."""

    candidate_id: int
    job_id: int
    referral_source: Optional[str] = None
    notify: bool = False


class AddCommentRequest(ApplicationIdMixin, ActorMixin, StrictForbidRequest):
    text: str
    stage: Optional[str] = None


class AssignApplicationRequest(ApplicationIdMixin, ActorMixin, StrictForbidRequest):
    assignee: str

    @field_validator("assignee")
    @classmethod
    def validate_assignee(cls, value: str) -> str:
        return validate_optional_non_empty_str(value, "assignee")


class ApplicationQueryRequest(ApplicationIdMixin, StrictForbidRequest):
    """Request for read-only lookups keyed by application id."""


class RefreshStageAgesRequest(StrictForbidRequest):
    pass


class RegisterCandidateRequest(StrictForbidRequest):
    """Request schema for register_candidate."""

    name: str
    email: str
    phone: Optional[str] = None
    resume_text: Optional[str] = None
    resume_key: Optional[str] = None


class CreateJobOpeningRequest(StrictForbidRequest):
    """Request schema for create_job_opening."""

    title: str
    department: Optional[str] = None
    location: Optional[str] = None
    skills: Optional[str] = None
    description: Optional[str] = None
