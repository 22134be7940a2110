"""
MCP tool handlers for the candidate portal.

These are the only entry points the portal server exposes. Everything
application-scoped is authorized by PortalAccess before any engine runs.
"""

from typing import Any, Dict

from pipeline.portal_access import PortalAccess
from pipeline.services import HiringServices
from schemas.portal import (
    PortalLookupRequest,
    PortalRespondToOfferRequest,
    PortalStatusRequest,
    PortalSubmitApplicationRequest,
    PortalWithdrawRequest,
)
from utils.tool_envelope import to_payload, tool_handler


def _portal(services: HiringServices) -> PortalAccess:
    return PortalAccess(services)


@tool_handler("portal_lookup")
def portal_lookup(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    """
    Find a candidate's applications by email plus the last five phone digits.

    Returns the applications and the tracking token the other portal
    tools expect.
    """
    request = PortalLookupRequest.model_validate(args)
    return to_payload(_portal(services).lookup(request.email, request.phone_last5))


@tool_handler("portal_get_application_status")
def portal_get_application_status(
    args: Dict[str, Any], services: HiringServices
) -> Dict[str, Any]:
    request = PortalStatusRequest.model_validate(args)
    return to_payload(
        _portal(services).get_application_status(request.application_id, request.email, request.token)
    )


@tool_handler("portal_withdraw")
def portal_withdraw(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = PortalWithdrawRequest.model_validate(args)
    return to_payload(
        _portal(services).withdraw(
            request.application_id, request.email, request.token, reason=request.reason
        )
    )


@tool_handler("portal_respond_to_offer")
def portal_respond_to_offer(
    args: Dict[str, Any], services: HiringServices
) -> Dict[str, Any]:
    request = PortalRespondToOfferRequest.model_validate(args)
    return to_payload(
        _portal(services).respond_to_offer(
            request.application_id,
            request.email,
            request.token,
            request.response,
            message=request.message,
            joining_date=request.joining_date,
            joining_location=request.joining_location,
            reason=request.reason,
        )
    )


@tool_handler("portal_view_offer")
def portal_view_offer(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = PortalStatusRequest.model_validate(args)
    return to_payload(
        _portal(services).view_offer(request.application_id, request.email, request.token)
    )


@tool_handler("portal_submit_application")
def portal_submit_application(
    args: Dict[str, Any], services: HiringServices
) -> Dict[str, Any]:
    request = PortalSubmitApplicationRequest.model_validate(args)
    return to_payload(
        _portal(services).submit_application(
            request.name,
            request.email,
            request.job_id,
            phone=request.phone,
            resume_text=request.resume_text,
            resume_key=request.resume_key,
            referral_source=request.referral_source,
        )
    )
