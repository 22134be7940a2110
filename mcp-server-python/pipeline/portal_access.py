"""
Candidate portal access layer.

The portal reaches the same engines as the console but only through this
class. Every call that names an application is authorized first: the caller's
email must belong to the application's candidate and the tracking token must
verify for that email. The actor is always the candidate's own name, and only
the public projections of stages and offers are returned.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from db.hiring_reader import (
    fetch_active_offer,
    fetch_activity,
    fetch_applications_for_candidate,
    fetch_candidate,
    fetch_candidate_by_email,
    fetch_job,
    fetch_offers_for_application,
    get_connection,
)
from models.errors import (
    create_not_found_error,
    create_unauthorized_error,
    create_validation_error,
)
from models.records import Application, Candidate, Offer
from models.stage_catalog import WITHDRAW_BLOCKED_STAGES, is_absorbing
from models.status import OfferResponse, OfferStatus, Stage
from pipeline.offer_engine import OfferLifecycleEngine
from pipeline.services import HiringServices
from pipeline.stage_engine import StageTransitionEngine
from utils.portal_tokens import phone_last_digits
from utils.public_timeline import build_public_summary, build_public_timeline
from utils.validation import format_timestamp, validate_email, validate_positive_id

logger = logging.getLogger(__name__)

# Stages at which the candidate sees offer details
OFFER_VISIBLE_STAGES = frozenset({Stage.OFFER_SENT, Stage.OFFER_ACCEPTED, Stage.HIRED})

RESPONDABLE_OFFER_STATUSES = frozenset({OfferStatus.SENT, OfferStatus.VIEWED})


def visible_offers(offers: List[Offer]) -> List[Offer]:
    """Offers the candidate may see, newest first; drafts never leave the console."""
    return [offer for offer in offers if offer.status != OfferStatus.DRAFT]


def public_offer_details(offer: Offer) -> Dict[str, Any]:
    """Offer fields a candidate may see; internal notes never leave the console."""
    attachment = None
    if offer.attachment.kind == "reference":
        attachment = {
            "name": offer.attachment.name,
            "url": offer.attachment.url,
            "mime_type": offer.attachment.mime_type,
        }
    return {
        "offer_id": offer.id,
        "offer_type": offer.offer_type,
        "offer_content": offer.offer_content if offer.offer_type == "text" else None,
        "attachment": attachment,
        "salary": offer.salary,
        "salary_currency": offer.salary_currency,
        "bonus": offer.bonus,
        "equity": offer.equity,
        "benefits": offer.benefits,
        "start_date": offer.start_date,
        "expiry_date": offer.expiry_date,
        "terms_and_conditions": offer.terms_and_conditions,
        "status": offer.status.value,
        "sent_at": format_timestamp(offer.sent_at) if offer.sent_at else None,
    }


class PortalAccess:
    """Restricted, authorized entry points for candidates."""

    def __init__(
        self,
        services: HiringServices,
        stage_engine: Optional[StageTransitionEngine] = None,
        offer_engine: Optional[OfferLifecycleEngine] = None,
    ):
        self.services = services
        self.stage_engine = stage_engine or StageTransitionEngine(services)
        self.offer_engine = offer_engine or OfferLifecycleEngine(services, self.stage_engine)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(self, application_id: Any, email: Any, token: Any) -> Tuple[Application, Candidate]:
        """
        Resolve an application the caller is allowed to act on.

        Raises:
            ToolError: NOT_FOUND for an unknown application, UNAUTHORIZED when
                the email or token does not match its candidate
        """
        application_id = validate_positive_id(application_id, "application_id")
        email = validate_email(email)
        if not isinstance(token, str) or not token:
            raise create_unauthorized_error("Authentication required")

        with get_connection(self.services.db_path) as conn:
            candidate_row = conn.execute(
                "SELECT candidate_id FROM applications WHERE id = ?", (application_id,)
            ).fetchone()
            if candidate_row is None:
                raise create_not_found_error("Application", application_id)
            candidate = fetch_candidate(conn, candidate_row["candidate_id"])

        if candidate is None or candidate.email.lower() != email:
            logger.warning("Portal access denied for application %s: email mismatch", application_id)
            raise create_unauthorized_error()
        if not self.services.portal_signer.verify(token, candidate.email, candidate.id):
            logger.warning("Portal access denied for application %s: bad token", application_id)
            raise create_unauthorized_error("Invalid token")

        application = self.stage_engine.get_application(application_id)
        return application, candidate

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def lookup(self, email: Any, phone_last5: Any) -> Dict[str, Any]:
        """Verify a candidate by email and phone tail and hand out their tracking token."""
        email = validate_email(email)
        if not isinstance(phone_last5, str) or len(phone_last5) != 5 or not phone_last5.isdigit():
            raise create_validation_error(
                "Please enter the last 5 digits of your registered phone number"
            )

        with get_connection(self.services.db_path) as conn:
            candidate = fetch_candidate_by_email(conn, email)
            if candidate is None:
                raise create_not_found_error("Applications for email", email)

            stored_last5 = phone_last_digits(candidate.phone or "")
            if not stored_last5:
                raise create_unauthorized_error("Phone number not registered. Please contact support.")
            if stored_last5 != phone_last5:
                raise create_unauthorized_error(
                    "Invalid credentials. Please check your email and phone number."
                )

            applications = fetch_applications_for_candidate(conn, candidate.id)
            if not applications:
                raise create_not_found_error("Applications for email", email)
            summaries = []
            for application in applications:
                job = fetch_job(conn, application.job_id)
                summaries.append(
                    {
                        **build_public_summary(application),
                        "job_title": job.title if job else "Position",
                        "department": job.department if job else None,
                        "location": job.location if job else None,
                    }
                )

        return {
            "candidate_name": candidate.name,
            "email": candidate.email,
            "applications": summaries,
            "token": self.services.portal_signer.issue(candidate.email, candidate.id),
        }

    def get_application_status(self, application_id: Any, email: Any, token: Any) -> Dict[str, Any]:
        """Public status, timeline and (when relevant) offer details of one application."""
        application, candidate = self.authorize(application_id, email, token)

        with get_connection(self.services.db_path) as conn:
            job = fetch_job(conn, application.job_id)
            activities = fetch_activity(conn, application.id)
            offer = None
            if application.stage in OFFER_VISIBLE_STAGES:
                offers = visible_offers(fetch_offers_for_application(conn, application.id))
                offer = offers[0] if offers else None

        can_respond = (
            application.stage == Stage.OFFER_SENT
            and offer is not None
            and offer.status in RESPONDABLE_OFFER_STATUSES
        )
        return {
            **build_public_summary(application),
            "candidate_name": candidate.name,
            "job_title": job.title if job else "Position",
            "department": job.department if job else None,
            "location": job.location if job else None,
            "timeline": build_public_timeline(application, activities),
            "offer_details": public_offer_details(offer) if offer else None,
            "can_withdraw": not is_absorbing(application.stage)
            and application.stage not in WITHDRAW_BLOCKED_STAGES,
            "can_accept_offer": can_respond,
            "can_decline_offer": can_respond,
        }

    def withdraw(self, application_id: Any, email: Any, token: Any, reason: Any = None) -> Dict[str, Any]:
        application, candidate = self.authorize(application_id, email, token)
        updated = self.stage_engine.withdraw(
            application.id, reason, actor=candidate.name, withdrawn_by="candidate"
        )
        return {
            **build_public_summary(updated),
            "message": "Application withdrawn successfully",
        }

    def respond_to_offer(
        self,
        application_id: Any,
        email: Any,
        token: Any,
        response: Any,
        message: Any = None,
        joining_date: Any = None,
        joining_location: Any = None,
        reason: Any = None,
    ) -> Dict[str, Any]:
        """
        Accept or decline the pending offer of an application.

        Accepting requires a joining date and location; declining requires a reason.
        """
        application, candidate = self.authorize(application_id, email, token)
        try:
            response = OfferResponse(response)
        except ValueError:
            raise create_validation_error("Response must be accept or decline") from None

        if response == OfferResponse.ACCEPT:
            if not joining_date:
                raise create_validation_error("Joining date is required to accept the offer")
            if not joining_location:
                raise create_validation_error("Joining location is required to accept the offer")
            details = message
        else:
            if not reason:
                raise create_validation_error("Reason is required to decline the offer")
            details = reason

        with get_connection(self.services.db_path) as conn:
            offer = fetch_active_offer(conn, application.id)
        if offer is None:
            raise create_not_found_error("Pending offer for application", application.id)

        offer, updated = self.offer_engine.respond_to_offer(
            offer.id,
            response,
            candidate.name,
            details=details,
            joining_date=joining_date if response == OfferResponse.ACCEPT else None,
            joining_location=joining_location if response == OfferResponse.ACCEPT else None,
        )
        if response == OfferResponse.ACCEPT:
            message_text = (
                "Congratulations! Offer accepted successfully. Our HR team will be in touch soon."
            )
        else:
            message_text = "Offer declined. We wish you all the best in your future endeavors."
        return {
            **build_public_summary(updated),
            "offer_status": offer.status.value,
            "message": message_text,
        }

    def view_offer(self, application_id: Any, email: Any, token: Any) -> Dict[str, Any]:
        """Show the latest offer and mark it viewed if it was just sent."""
        application, candidate = self.authorize(application_id, email, token)
        with get_connection(self.services.db_path) as conn:
            visible = visible_offers(fetch_offers_for_application(conn, application.id))
        if not visible:
            raise create_not_found_error("Offer for application", application.id)

        offer = self.offer_engine.mark_offer_viewed(visible[0].id, viewer=candidate.name)
        return public_offer_details(offer)

    def submit_application(
        self,
        name: Any,
        email: Any,
        job_id: Any,
        phone: Any = None,
        resume_text: Any = None,
        resume_key: Any = None,
        referral_source: Any = None,
    ) -> Dict[str, Any]:
        """
        Public apply; returns the reference number only.

        The caller is not authenticated, so no tracking token is issued here.
        The candidate gets one from lookup with their registered phone.
        """
        application = self.stage_engine.submit_application(
            name,
            email,
            job_id,
            phone=phone,
            resume_text=resume_text,
            resume_key=resume_key,
            referral_source=referral_source,
        )
        return {
            **build_public_summary(application),
            "message": "Application submitted successfully. Use your email and phone number to track it.",
        }
