"""
MCP tool handlers for the console's application operations.

Each handler takes the raw tool arguments, validates them against the
request schema and delegates to the stage engine. Results are plain dicts;
failures come back in the shared error envelope.
"""

from typing import Any, Dict

from pipeline import activity_log
from pipeline.directory import create_job_opening as create_job_opening_record
from pipeline.directory import register_candidate as register_candidate_record
from pipeline.services import HiringServices
from pipeline.stage_engine import StageTransitionEngine
from schemas.applications import (
    AddCommentRequest,
    ApplicationQueryRequest,
    AssignApplicationRequest,
    CreateApplicationRequest,
    CreateJobOpeningRequest,
    MoveToStageRequest,
    RefreshStageAgesRequest,
    RegisterCandidateRequest,
    RejectApplicationRequest,
    WithdrawApplicationRequest,
)
from utils.tool_envelope import to_payload, tool_handler


def _engine(services: HiringServices) -> StageTransitionEngine:
    return StageTransitionEngine(services)


@tool_handler("move_to_stage")
def move_to_stage(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    """
    Move an application to another pipeline stage.

    Returns:
        {"application": {...}, "transition": {"allowed": true, "warnings": [...]}}
    """
    request = MoveToStageRequest.model_validate(args)
    application, result = _engine(services).move_to_stage(
        request.application_id,
        request.target_stage,
        actor=request.actor,
        notes=request.notes,
        action=request.action,
        expected_stage=request.expected_stage,
        notify=request.notify,
    )
    return {"application": to_payload(application), "transition": result.to_dict()}


@tool_handler("reject_application")
def reject_application(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = RejectApplicationRequest.model_validate(args)
    application = _engine(services).reject(
        request.application_id, request.reason, actor=request.actor, notify=request.notify
    )
    return {"application": to_payload(application)}


@tool_handler("withdraw_application")
def withdraw_application(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = WithdrawApplicationRequest.model_validate(args)
    application = _engine(services).withdraw(
        request.application_id, reason=request.reason, actor=request.actor
    )
    return {"application": to_payload(application)}


@tool_handler("create_application")
def create_application(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    """Create an application for an existing candidate and job opening."""
    request = CreateApplicationRequest.model_validate(args)
    application = _engine(services).create_application(
        request.candidate_id,
        request.job_id,
        actor=request.actor,
        referral_source=request.referral_source,
        notify=request.notify,
    )
    return {"application": to_payload(application)}


@tool_handler("add_comment")
def add_comment(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = AddCommentRequest.model_validate(args)
    application = _engine(services).add_comment(
        request.application_id, request.text, author=request.actor, stage=request.stage
    )
    return {"application": to_payload(application)}


@tool_handler("assign_application")
def assign_application(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = AssignApplicationRequest.model_validate(args)
    application = _engine(services).assign(
        request.application_id, request.assignee, actor=request.actor
    )
    return {"application": to_payload(application)}


@tool_handler("get_application")
def get_application(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = ApplicationQueryRequest.model_validate(args)
    application = _engine(services).get_application(request.application_id)
    return {"application": to_payload(application)}


@tool_handler("list_activity")
def list_activity(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    """Activity log of an application, oldest first."""
    request = ApplicationQueryRequest.model_validate(args)
    # Raises NOT_FOUND for unknown ids instead of returning an empty log
    _engine(services).get_application(request.application_id)
    entries = activity_log.list_activity(request.application_id, services.db_path)
    return {
        "application_id": request.application_id,
        "activities": to_payload(entries),
        "count": len(entries),
    }


@tool_handler("get_journey")
def get_journey(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = ApplicationQueryRequest.model_validate(args)
    return to_payload(_engine(services).build_journey(request.application_id))


@tool_handler("refresh_stage_ages")
def refresh_stage_ages(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    RefreshStageAgesRequest.model_validate(args)
    return _engine(services).refresh_days_in_stage()


@tool_handler("register_candidate")
def register_candidate(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = RegisterCandidateRequest.model_validate(args)
    candidate = register_candidate_record(
        services,
        request.name,
        request.email,
        phone=request.phone,
        resume_text=request.resume_text,
        resume_key=request.resume_key,
    )
    return {"candidate": to_payload(candidate)}


@tool_handler("create_job_opening")
def create_job_opening(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = CreateJobOpeningRequest.model_validate(args)
    job = create_job_opening_record(
        services,
        request.title,
        department=request.department,
        location=request.location,
        skills=request.skills,
        description=request.description,
    )
    return {"job": to_payload(job)}
