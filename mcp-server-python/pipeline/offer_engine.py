"""
Offer Lifecycle Engine.

Manages an offer's own states and its negotiation history. Operations that
also move the application (send, accept) run the offer update and the stage
transition in one HiringWriter transaction, so either both commit or neither.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from db.hiring_reader import (
    fetch_active_offer,
    fetch_offer,
    fetch_offers_for_application,
    get_connection,
)
from db.hiring_writer import HiringWriter
from models.errors import (
    create_invalid_offer_state_error,
    create_not_found_error,
    create_validation_error,
)
from models.records import Application, Attachment, NegotiationEntry, Offer
from models.stage_catalog import OFFER_ACCEPTED_ACTION
from models.status import OfferResponse, OfferStatus, Stage
from pipeline import activity_log
from pipeline.activity_log import ActivityAction
from pipeline.services import HiringServices
from pipeline.stage_engine import StageTransitionEngine, ensure_not_absorbing, load_application
from pipeline.tasks import enqueue_notification
from schemas.offers import OfferTerms
from utils.notifications import OFFER_ACCEPTED, OFFER_SENT
from utils.offer_policy import check_admin_status_or_raise, check_offer_operation_or_raise
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.validation import (
    validate_actor,
    validate_offer_status,
    validate_optional_text,
    validate_positive_id,
)

logger = logging.getLogger(__name__)


def normalize_terms(terms: Optional[Dict[str, Any]], partial: bool = False) -> Dict[str, Any]:
    """
    Validate offer terms and return the column values to store.

    With ``partial`` only the keys the caller sent are returned.

    Raises:
        ToolError: VALIDATION_ERROR for unknown keys or malformed values
    """
    try:
        model = OfferTerms.model_validate(terms or {})
    except ValidationError as e:
        raise map_pydantic_validation_error(e) from e
    values = model.model_dump(exclude_unset=partial)
    if "attachment" in values:
        values["attachment_json"] = model.attachment.model_dump()
        del values["attachment"]
    return values


def load_offer(db_path: Optional[str], offer_id: int) -> Offer:
    """
    Read an offer snapshot.

    Raises:
        ToolError: NOT_FOUND if the id does not resolve
    """
    with get_connection(db_path) as conn:
        offer = fetch_offer(conn, offer_id)
    if offer is None:
        raise create_not_found_error("Offer", offer_id)
    return offer


class OfferLifecycleEngine:
    """Creates, sends and resolves offers."""

    def __init__(self, services: HiringServices, stage_engine: Optional[StageTransitionEngine] = None):
        self.services = services
        self.stage_engine = stage_engine or StageTransitionEngine(services)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _update_offer(
        self,
        writer: HiringWriter,
        offer: Offer,
        fields: Dict[str, Any],
        now: datetime,
        negotiation: Optional[NegotiationEntry] = None,
    ) -> Offer:
        new_version = writer.compare_and_set_offer(
            offer.id, offer.version, fields, now, expected_status=offer.status
        )
        history = list(offer.negotiation_history)
        if negotiation is not None:
            entry_id = writer.insert_negotiation_entry(offer.id, negotiation)
            history.append(negotiation.model_copy(update={"id": entry_id}))

        update = {key: value for key, value in fields.items() if key != "attachment_json"}
        if "attachment_json" in fields:
            update["attachment"] = Attachment.model_validate(fields["attachment_json"])
        return offer.model_copy(
            update={**update, "version": new_version, "updated_at": now, "negotiation_history": history}
        )

    def _send_in_transaction(
        self,
        writer: HiringWriter,
        offer: Offer,
        application: Application,
        actor: str,
        now: datetime,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Offer, Application]:
        fields = {"status": OfferStatus.SENT, "sent_at": now, "sent_by": actor}
        fields.update(extra_fields or {})
        offer = self._update_offer(writer, offer, fields, now)

        description = f"Offer sent by {actor}"
        metadata = {"offer_id": offer.id}
        if application.stage != Stage.OFFER_SENT:
            application, _ = self.stage_engine.apply_transition(
                writer,
                application,
                Stage.OFFER_SENT,
                actor,
                now,
                action="offer_sent",
                activity_action=ActivityAction.OFFER_SENT,
                activity_description=description,
                activity_metadata=metadata,
            )
        else:
            activity_log.record(writer, application.id, ActivityAction.OFFER_SENT, description, now, metadata)
        return offer, application

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_offer(self, offer_id: int) -> Offer:
        offer_id = validate_positive_id(offer_id, "offer_id")
        return load_offer(self.services.db_path, offer_id)

    def list_offers(self, application_id: int) -> List[Offer]:
        application_id = validate_positive_id(application_id, "application_id")
        with get_connection(self.services.db_path) as conn:
            return fetch_offers_for_application(conn, application_id)

    def create_offer(
        self,
        application_id: int,
        terms: Optional[Dict[str, Any]] = None,
        actor: Optional[str] = None,
        send_now: bool = False,
    ) -> Tuple[Offer, Application]:
        """
        Create a draft offer, or a sent one when ``send_now`` is set.

        Raises:
            ToolError: INVALID_TRANSITION for a closed application,
                INVALID_OFFER_STATE if an active offer already exists
        """
        application_id = validate_positive_id(application_id, "application_id")
        actor = validate_actor(actor, self.services.default_actor)
        values = normalize_terms(terms)
        if not values.get("salary_currency"):
            values["salary_currency"] = self.services.default_currency

        application = load_application(self.services.db_path, application_id)
        ensure_not_absorbing(application, Stage.OFFER_SENT)

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            existing = fetch_active_offer(writer.conn, application_id)
            if existing is not None:
                raise create_invalid_offer_state_error(
                    existing.id, existing.status.value, "superseded while still active"
                )
            offer_id = writer.insert_offer(
                application_id, {**values, "status": OfferStatus.DRAFT}, now
            )
            offer = writer.load_offer(offer_id)

            if send_now:
                offer, application = self._send_in_transaction(writer, offer, application, actor, now)
            else:
                activity_log.record(
                    writer,
                    application_id,
                    ActivityAction.OFFER_DRAFTED,
                    f"Offer drafted by {actor}",
                    now,
                    {"offer_id": offer_id},
                )
            writer.commit()

        logger.info("Offer %s created for application %s (%s)", offer.id, application_id, offer.status.value)
        if send_now:
            enqueue_notification(self.services, OFFER_SENT, application_id, {"offer_id": offer.id})
        return offer, application

    def send_offer(self, offer_id: int, actor: Optional[str] = None) -> Tuple[Offer, Application]:
        """Send a draft offer and move the application to 'offer-sent'."""
        offer_id = validate_positive_id(offer_id, "offer_id")
        actor = validate_actor(actor, self.services.default_actor)

        offer = load_offer(self.services.db_path, offer_id)
        check_offer_operation_or_raise(offer.id, offer.status, "sent")
        application = load_application(self.services.db_path, offer.application_id)

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            offer, application = self._send_in_transaction(writer, offer, application, actor, now)
            writer.commit()

        enqueue_notification(self.services, OFFER_SENT, application.id, {"offer_id": offer.id})
        return offer, application

    def respond_to_offer(
        self,
        offer_id: int,
        response: Any,
        responder: str,
        details: Any = None,
        joining_date: Any = None,
        joining_location: Any = None,
    ) -> Tuple[Offer, Application]:
        """
        Record the candidate's answer to a sent offer.

        Accept moves the application to 'offer-accepted' (status hired);
        decline only closes the offer and leaves the application where it is.
        """
        offer_id = validate_positive_id(offer_id, "offer_id")
        try:
            response = OfferResponse(response)
        except ValueError:
            allowed = ", ".join(option.value for option in OfferResponse)
            raise create_validation_error(
                f"Invalid response '{response}'. Allowed values: {allowed}"
            ) from None
        responder = validate_actor(responder)
        details = validate_optional_text(details, "details")
        joining_date = validate_optional_text(joining_date, "joining_date", max_length=40)
        joining_location = validate_optional_text(joining_location, "joining_location", max_length=200)

        offer = load_offer(self.services.db_path, offer_id)
        check_offer_operation_or_raise(offer.id, offer.status, "responded to")
        application = load_application(self.services.db_path, offer.application_id)

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            if response == OfferResponse.ACCEPT:
                offer = self._update_offer(
                    writer,
                    offer,
                    {
                        "status": OfferStatus.ACCEPTED,
                        "response_date": now,
                        "response_notes": details,
                        "joining_date": joining_date,
                        "joining_location": joining_location,
                    },
                    now,
                    NegotiationEntry(
                        date=now,
                        action="accepted",
                        details=details or "Offer accepted",
                        by=responder,
                    ),
                )
                description = f"{responder} accepted the offer"
                if joining_date or joining_location:
                    description += f". Joining Date: {joining_date or '-'}, Location: {joining_location or '-'}"
                application, _ = self.stage_engine.apply_transition(
                    writer,
                    application,
                    Stage.OFFER_ACCEPTED,
                    responder,
                    now,
                    notes=details,
                    action=OFFER_ACCEPTED_ACTION,
                    activity_action=ActivityAction.OFFER_ACCEPTED,
                    activity_description=description,
                    activity_metadata={
                        "offer_id": offer.id,
                        "response": response.value,
                        "joining_date": joining_date,
                        "joining_location": joining_location,
                    },
                )
            else:
                offer = self._update_offer(
                    writer,
                    offer,
                    {
                        "status": OfferStatus.DECLINED,
                        "response_date": now,
                        "response_notes": details,
                        "decline_reason": details,
                    },
                    now,
                    NegotiationEntry(
                        date=now,
                        action="declined",
                        details=details or "Offer declined",
                        by=responder,
                    ),
                )
                activity_log.record(
                    writer,
                    application.id,
                    ActivityAction.OFFER_DECLINED,
                    f"{responder} declined the offer. Reason: {details or 'Not specified'}",
                    now,
                    {"offer_id": offer.id, "response": response.value, "reason": details},
                )
            writer.commit()

        logger.info("Offer %s %s by %s", offer.id, offer.status.value, responder)
        if response == OfferResponse.ACCEPT:
            enqueue_notification(self.services, OFFER_ACCEPTED, application.id, {"offer_id": offer.id})
        return offer, application

    def set_offer_status(
        self,
        offer_id: int,
        status: Any,
        actor: Optional[str] = None,
        notes: Any = None,
    ) -> Offer:
        """
        Administrative status change from the console.

        Allowed targets are negotiating, rejected, expired and withdrawn.
        Every change appends a negotiation entry recording both statuses.
        """
        offer_id = validate_positive_id(offer_id, "offer_id")
        target = validate_offer_status(status)
        actor = validate_actor(actor, self.services.default_actor)
        notes = validate_optional_text(notes, "notes")

        offer = load_offer(self.services.db_path, offer_id)
        check_admin_status_or_raise(offer.id, offer.status, target)
        previous = offer.status

        now = self.services.now()
        details = f"Status changed from {previous.value} to {target.value}"
        if notes:
            details += f": {notes}"
        fields: Dict[str, Any] = {"status": target}
        if target == OfferStatus.REJECTED:
            fields["response_date"] = now
            fields["response_notes"] = notes

        with HiringWriter(self.services.db_path) as writer:
            offer = self._update_offer(
                writer,
                offer,
                fields,
                now,
                NegotiationEntry(date=now, action=target.value, details=details, by=actor),
            )
            activity_log.record(
                writer,
                offer.application_id,
                ActivityAction.OFFER_STATUS_CHANGED,
                f"Offer {target.value} by {actor}",
                now,
                {"offer_id": offer.id, "old_status": previous.value, "new_status": target.value, "notes": notes},
            )
            writer.commit()

        logger.info("Offer %s status %s -> %s by %s", offer.id, previous.value, target.value, actor)
        return offer

    def update_offer_terms(
        self,
        offer_id: int,
        terms: Optional[Dict[str, Any]],
        actor: Optional[str] = None,
        resend: bool = False,
    ) -> Offer:
        """
        Change the terms of a non-terminal offer.

        With ``resend`` the offer goes (back) to 'sent' and the candidate is
        notified again; a draft resent this way is simply sent.
        """
        offer_id = validate_positive_id(offer_id, "offer_id")
        actor = validate_actor(actor, self.services.default_actor)
        values = normalize_terms(terms, partial=True)

        offer = load_offer(self.services.db_path, offer_id)
        check_offer_operation_or_raise(offer.id, offer.status, "updated")

        sending_draft = resend and offer.status == OfferStatus.DRAFT
        application = (
            load_application(self.services.db_path, offer.application_id) if sending_draft else None
        )

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            if sending_draft:
                offer, _ = self._send_in_transaction(writer, offer, application, actor, now, values)
            else:
                fields = dict(values)
                if resend:
                    fields.update({"status": OfferStatus.SENT, "sent_at": now, "sent_by": actor})
                offer = self._update_offer(writer, offer, fields, now)
                activity_log.record(
                    writer,
                    offer.application_id,
                    ActivityAction.OFFER_UPDATED,
                    f"Offer updated by {actor}" + (" and resent" if resend else ""),
                    now,
                    {"offer_id": offer.id, "fields": sorted(values), "resent": resend},
                )
            writer.commit()

        if resend:
            enqueue_notification(self.services, OFFER_SENT, offer.application_id, {"offer_id": offer.id})
        return offer

    def mark_offer_viewed(self, offer_id: int, viewer: Optional[str] = None) -> Offer:
        """Flip a sent offer to 'viewed'; any other status is returned unchanged."""
        offer_id = validate_positive_id(offer_id, "offer_id")
        offer = load_offer(self.services.db_path, offer_id)
        if offer.status != OfferStatus.SENT:
            return offer

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            offer = self._update_offer(writer, offer, {"status": OfferStatus.VIEWED}, now)
            activity_log.record(
                writer,
                offer.application_id,
                ActivityAction.OFFER_VIEWED,
                f"Offer viewed by {viewer or 'candidate'}",
                now,
                {"offer_id": offer.id},
            )
            writer.commit()
        return offer

    def resend_offer(self, offer_id: int, actor: Optional[str] = None) -> Offer:
        """Send the offer notification again without changing the offer."""
        offer_id = validate_positive_id(offer_id, "offer_id")
        actor = validate_actor(actor, self.services.default_actor)
        offer = load_offer(self.services.db_path, offer_id)
        check_offer_operation_or_raise(offer.id, offer.status, "resent")

        with HiringWriter(self.services.db_path) as writer:
            activity_log.record(
                writer,
                offer.application_id,
                ActivityAction.OFFER_RESENT,
                f"Offer resent by {actor}",
                self.services.now(),
                {"offer_id": offer.id},
            )
            writer.commit()

        enqueue_notification(self.services, OFFER_SENT, offer.application_id, {"offer_id": offer.id})
        return offer

    def delete_offer(self, offer_id: int, actor: Optional[str] = None) -> Offer:
        """Delete a draft offer; sent offers can only be withdrawn."""
        offer_id = validate_positive_id(offer_id, "offer_id")
        actor = validate_actor(actor, self.services.default_actor)
        offer = load_offer(self.services.db_path, offer_id)
        check_offer_operation_or_raise(offer.id, offer.status, "deleted")

        with HiringWriter(self.services.db_path) as writer:
            writer.delete_offer(offer.id, offer.version)
            activity_log.record(
                writer,
                offer.application_id,
                ActivityAction.OFFER_DELETED,
                f"Draft offer deleted by {actor}",
                self.services.now(),
                {"offer_id": offer.id},
            )
            writer.commit()
        return offer

