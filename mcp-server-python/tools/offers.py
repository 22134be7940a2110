"""
MCP tool handlers for the console's offer operations.

Offers are created as drafts (or sent straight away), sent, resolved by the
candidate or closed administratively. Every handler returns the offer as it
is after the operation.
"""

from typing import Any, Dict

from pipeline.offer_engine import OfferLifecycleEngine
from pipeline.services import HiringServices
from schemas.offers import (
    CreateOfferRequest,
    ListOffersRequest,
    OfferActionRequest,
    RespondToOfferRequest,
    SendOfferRequest,
    SetOfferStatusRequest,
    UpdateOfferTermsRequest,
)
from utils.tool_envelope import to_payload, tool_handler


def _engine(services: HiringServices) -> OfferLifecycleEngine:
    return OfferLifecycleEngine(services)


def _offer_and_application(offer, application) -> Dict[str, Any]:
    return {"offer": to_payload(offer), "application": to_payload(application)}


@tool_handler("create_offer")
def create_offer(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    """
    Create an offer for an application.

    With ``send_now`` the offer is sent in the same transaction and the
    application moves to 'offer-sent'.
    """
    request = CreateOfferRequest.model_validate(args)
    offer, application = _engine(services).create_offer(
        request.application_id, request.terms, actor=request.actor, send_now=request.send_now
    )
    return _offer_and_application(offer, application)


@tool_handler("send_offer")
def send_offer(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = SendOfferRequest.model_validate(args)
    offer, application = _engine(services).send_offer(request.offer_id, actor=request.actor)
    return _offer_and_application(offer, application)


@tool_handler("respond_to_offer")
def respond_to_offer(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    """Record an accept/decline entered on the candidate's behalf."""
    request = RespondToOfferRequest.model_validate(args)
    offer, application = _engine(services).respond_to_offer(
        request.offer_id,
        request.response,
        request.actor or services.default_actor,
        details=request.details,
        joining_date=request.joining_date,
        joining_location=request.joining_location,
    )
    return _offer_and_application(offer, application)


@tool_handler("set_offer_status")
def set_offer_status(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = SetOfferStatusRequest.model_validate(args)
    offer = _engine(services).set_offer_status(
        request.offer_id, request.status, actor=request.actor, notes=request.notes
    )
    return {"offer": to_payload(offer)}


@tool_handler("update_offer_terms")
def update_offer_terms(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = UpdateOfferTermsRequest.model_validate(args)
    offer = _engine(services).update_offer_terms(
        request.offer_id, request.terms, actor=request.actor, resend=request.resend
    )
    return {"offer": to_payload(offer)}


@tool_handler("mark_offer_viewed")
def mark_offer_viewed(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = OfferActionRequest.model_validate(args)
    offer = _engine(services).mark_offer_viewed(request.offer_id, viewer=request.actor)
    return {"offer": to_payload(offer)}


@tool_handler("resend_offer")
def resend_offer(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = OfferActionRequest.model_validate(args)
    offer = _engine(services).resend_offer(request.offer_id, actor=request.actor)
    return {"offer": to_payload(offer)}


@tool_handler("delete_offer")
def delete_offer(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = OfferActionRequest.model_validate(args)
    offer = _engine(services).delete_offer(request.offer_id, actor=request.actor)
    return {"deleted": True, "offer_id": offer.id, "application_id": offer.application_id}


@tool_handler("get_offer")
def get_offer(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    request = OfferActionRequest.model_validate(args)
    return {"offer": to_payload(_engine(services).get_offer(request.offer_id))}


@tool_handler("list_offers")
def list_offers(args: Dict[str, Any], services: HiringServices) -> Dict[str, Any]:
    """All offers of an application, newest first."""
    request = ListOffersRequest.model_validate(args)
    offers = _engine(services).list_offers(request.application_id)
    return {
        "application_id": request.application_id,
        "offers": to_payload(offers),
        "count": len(offers),
    }
