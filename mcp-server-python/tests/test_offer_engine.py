"""
Tests for the Offer Lifecycle Engine.
"""

import pytest

from db.hiring_reader import fetch_activity, get_connection
from models.errors import ErrorCode, ToolError
from models.status import ApplicationStatus, OfferStatus, Stage
from utils.notifications import OFFER_ACCEPTED, OFFER_SENT

TERMS = {"salary": 1800000, "benefits": "Health cover", "start_date": "2026-03-01"}


@pytest.fixture
def interviewed(stage_engine, make_application):
    application = make_application()
    stage_engine.move_to_stage(application.id, "interview")
    return stage_engine.get_application(application.id)


@pytest.fixture
def sent_offer(services, offer_engine, interviewed, notifier):
    offer, _ = offer_engine.create_offer(interviewed.id, TERMS, actor="R1", send_now=True)
    services.side_effects.drain()
    notifier.sent.clear()
    return offer


def _actions(services, application_id):
    with get_connection(services.db_path) as conn:
        return [entry.action for entry in fetch_activity(conn, application_id)]


class TestCreateOffer:
    def test_draft_offer(self, services, offer_engine, interviewed):
        offer, application = offer_engine.create_offer(interviewed.id, TERMS, actor="R1")

        assert offer.status == OfferStatus.DRAFT
        assert offer.salary == "1800000"
        assert offer.salary_currency == "INR"
        assert offer.attachment.kind == "none"
        assert application.stage == Stage.INTERVIEW
        assert "offer_drafted" in _actions(services, interviewed.id)

    def test_send_now_moves_application(self, services, offer_engine, interviewed, notifier):
        offer, application = offer_engine.create_offer(interviewed.id, TERMS, actor="R1", send_now=True)
        services.side_effects.drain()

        assert offer.status == OfferStatus.SENT
        assert offer.sent_by == "R1"
        assert application.stage == Stage.OFFER_SENT
        assert application.status == ApplicationStatus.OFFERED
        assert [key for key, _ in notifier.sent] == [OFFER_SENT]

    def test_second_active_offer_refused(self, offer_engine, interviewed):
        first, _ = offer_engine.create_offer(interviewed.id, TERMS)
        with pytest.raises(ToolError) as exc_info:
            offer_engine.create_offer(interviewed.id, TERMS)
        assert exc_info.value.code == ErrorCode.INVALID_OFFER_STATE
        assert offer_engine.list_offers(interviewed.id) == [first]

    def test_new_offer_allowed_after_decline(self, offer_engine, sent_offer):
        offer_engine.respond_to_offer(sent_offer.id, "decline", "candidate")
        offer, _ = offer_engine.create_offer(sent_offer.application_id, {"salary": "20 LPA"})
        assert offer.status == OfferStatus.DRAFT
        assert len(offer_engine.list_offers(sent_offer.application_id)) == 2

    def test_closed_application_refused(self, stage_engine, offer_engine, make_application):
        application = make_application()
        stage_engine.reject(application.id, "not a fit")
        with pytest.raises(ToolError) as exc_info:
            offer_engine.create_offer(application.id, TERMS)
        assert exc_info.value.code == ErrorCode.INVALID_TRANSITION

    def test_document_offer_needs_attachment(self, offer_engine, interviewed):
        with pytest.raises(ToolError) as exc_info:
            offer_engine.create_offer(interviewed.id, {"offer_type": "pdf"})
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    def test_attachment_reference_from_string(self, offer_engine, interviewed):
        offer, _ = offer_engine.create_offer(
            interviewed.id, {"offer_type": "pdf", "attachment": "offers/2026/asha-offer.pdf"}
        )
        assert offer.attachment.kind == "reference"
        assert offer.attachment.name == "asha-offer.pdf"
        assert offer_engine.get_offer(offer.id).attachment == offer.attachment

    def test_unknown_term_refused(self, offer_engine, interviewed):
        with pytest.raises(ToolError) as exc_info:
            offer_engine.create_offer(interviewed.id, {"salary": "10", "stock": "lots"})
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR


class TestSendOffer:
    def test_send_draft(self, services, offer_engine, interviewed, notifier):
        draft, _ = offer_engine.create_offer(interviewed.id, TERMS)
        offer, application = offer_engine.send_offer(draft.id, actor="R1")
        services.side_effects.drain()

        assert offer.status == OfferStatus.SENT
        assert offer.sent_at == services.now()
        assert application.stage == Stage.OFFER_SENT
        assert application.stage_history[-1].action == "offer_sent"

        reloaded = offer_engine.get_offer(draft.id)
        assert reloaded.status == OfferStatus.SENT
        assert reloaded.version == 2
        assert notifier.sent[0][1]["offer_id"] == draft.id
        assert "offer_sent" in _actions(services, interviewed.id)

    def test_send_twice_refused(self, offer_engine, sent_offer):
        with pytest.raises(ToolError) as exc_info:
            offer_engine.send_offer(sent_offer.id)
        assert exc_info.value.code == ErrorCode.INVALID_OFFER_STATE

    def test_unknown_offer(self, offer_engine):
        with pytest.raises(ToolError) as exc_info:
            offer_engine.send_offer(999)
        assert exc_info.value.code == ErrorCode.NOT_FOUND


class TestRespondToOffer:
    def test_accept(self, services, stage_engine, offer_engine, sent_offer, notifier):
        offer, application = offer_engine.respond_to_offer(
            sent_offer.id,
            "accept",
            "Candidate 1",
            details="Happy to join",
            joining_date="2026-03-01",
            joining_location="Bengaluru",
        )
        services.side_effects.drain()

        assert offer.status == OfferStatus.ACCEPTED
        assert offer.joining_location == "Bengaluru"
        assert len(offer.negotiation_history) == len(sent_offer.negotiation_history) + 1
        assert offer.negotiation_history[-1].action == "accepted"
        assert application.stage == Stage.OFFER_ACCEPTED
        assert application.status == ApplicationStatus.HIRED

        reloaded = stage_engine.get_application(application.id)
        assert reloaded.status == ApplicationStatus.HIRED
        assert len([entry for entry in reloaded.stage_history if entry.is_open]) == 1
        assert [key for key, _ in notifier.sent] == [OFFER_ACCEPTED]

    def test_decline_keeps_stage(self, services, stage_engine, offer_engine, sent_offer):
        offer, application = offer_engine.respond_to_offer(
            sent_offer.id, "decline", "Candidate 1", details="Counter offer elsewhere"
        )

        assert offer.status == OfferStatus.DECLINED
        assert offer.decline_reason == "Counter offer elsewhere"
        assert application.stage == Stage.OFFER_SENT
        assert stage_engine.get_application(application.id).stage == Stage.OFFER_SENT
        assert "offer_declined" in _actions(services, application.id)

    def test_respond_to_draft_refused(self, offer_engine, interviewed):
        draft, _ = offer_engine.create_offer(interviewed.id, TERMS)
        with pytest.raises(ToolError) as exc_info:
            offer_engine.respond_to_offer(draft.id, "accept", "candidate")
        assert exc_info.value.code == ErrorCode.INVALID_OFFER_STATE

    def test_unknown_response(self, offer_engine, sent_offer):
        with pytest.raises(ToolError) as exc_info:
            offer_engine.respond_to_offer(sent_offer.id, "maybe", "candidate")
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    def test_viewed_offer_can_be_accepted(self, offer_engine, sent_offer):
        offer_engine.mark_offer_viewed(sent_offer.id)
        offer, _ = offer_engine.respond_to_offer(sent_offer.id, "accept", "candidate")
        assert offer.status == OfferStatus.ACCEPTED


class TestTerminalOffers:
    @pytest.fixture
    def accepted_offer(self, offer_engine, sent_offer):
        offer, _ = offer_engine.respond_to_offer(sent_offer.id, "accept", "candidate")
        return offer

    @pytest.mark.parametrize(
        "operation",
        [
            lambda engine, offer_id: engine.send_offer(offer_id),
            lambda engine, offer_id: engine.respond_to_offer(offer_id, "decline", "candidate"),
            lambda engine, offer_id: engine.set_offer_status(offer_id, "withdrawn"),
            lambda engine, offer_id: engine.update_offer_terms(offer_id, {"salary": "1"}),
            lambda engine, offer_id: engine.resend_offer(offer_id),
            lambda engine, offer_id: engine.delete_offer(offer_id),
        ],
        ids=["send", "respond", "set_status", "update", "resend", "delete"],
    )
    def test_every_mutator_refuses(self, offer_engine, accepted_offer, operation):
        with pytest.raises(ToolError) as exc_info:
            operation(offer_engine, accepted_offer.id)
        assert exc_info.value.code == ErrorCode.INVALID_OFFER_STATE
        assert offer_engine.get_offer(accepted_offer.id) == accepted_offer

    def test_mark_viewed_is_a_noop(self, offer_engine, accepted_offer):
        assert offer_engine.mark_offer_viewed(accepted_offer.id) == accepted_offer


class TestSetOfferStatus:
    def test_negotiating_records_history(self, services, offer_engine, sent_offer):
        offer = offer_engine.set_offer_status(sent_offer.id, "negotiating", actor="R1", notes="asked for more")

        assert offer.status == OfferStatus.NEGOTIATING
        assert offer.negotiation_history[-1].details == "Status changed from sent to negotiating: asked for more"
        assert offer.negotiation_history[-1].by == "R1"
        assert offer_engine.get_offer(sent_offer.id).negotiation_history == offer.negotiation_history
        assert "offer_status_changed" in _actions(services, sent_offer.application_id)

    def test_recruiter_rejection(self, offer_engine, sent_offer):
        offer = offer_engine.set_offer_status(sent_offer.id, "rejected", notes="budget cut")
        assert offer.status == OfferStatus.REJECTED
        assert offer.response_notes == "budget cut"

    def test_withdraw_draft(self, offer_engine, interviewed):
        draft, _ = offer_engine.create_offer(interviewed.id, TERMS)
        assert offer_engine.set_offer_status(draft.id, "withdrawn").status == OfferStatus.WITHDRAWN

    def test_console_cannot_accept(self, offer_engine, sent_offer):
        with pytest.raises(ToolError) as exc_info:
            offer_engine.set_offer_status(sent_offer.id, "accepted")
        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR


class TestUpdateAndResend:
    def test_partial_update_keeps_other_terms(self, offer_engine, sent_offer):
        offer = offer_engine.update_offer_terms(sent_offer.id, {"bonus": "10%"}, actor="R1")

        assert offer.bonus == "10%"
        assert offer.salary == "1800000"
        assert offer.status == OfferStatus.SENT
        reloaded = offer_engine.get_offer(sent_offer.id)
        assert reloaded.bonus == "10%"
        assert reloaded.benefits == "Health cover"

    def test_update_with_resend_notifies(self, services, offer_engine, sent_offer, notifier):
        offer_engine.set_offer_status(sent_offer.id, "negotiating")
        offer = offer_engine.update_offer_terms(sent_offer.id, {"salary": "20 LPA"}, resend=True)
        services.side_effects.drain()

        assert offer.status == OfferStatus.SENT
        assert [key for key, _ in notifier.sent] == [OFFER_SENT]

    def test_resending_a_draft_sends_it(self, stage_engine, offer_engine, interviewed):
        draft, _ = offer_engine.create_offer(interviewed.id, TERMS)
        offer = offer_engine.update_offer_terms(draft.id, {"salary": "21 LPA"}, resend=True)

        assert offer.status == OfferStatus.SENT
        assert offer.salary == "21 LPA"
        assert stage_engine.get_application(interviewed.id).stage == Stage.OFFER_SENT

    def test_resend_offer(self, services, offer_engine, sent_offer, notifier):
        offer = offer_engine.resend_offer(sent_offer.id, actor="R1")
        services.side_effects.drain()

        assert offer == sent_offer
        assert [key for key, _ in notifier.sent] == [OFFER_SENT]
        assert "offer_resent" in _actions(services, sent_offer.application_id)

    def test_resend_draft_refused(self, offer_engine, interviewed):
        draft, _ = offer_engine.create_offer(interviewed.id, TERMS)
        with pytest.raises(ToolError) as exc_info:
            offer_engine.resend_offer(draft.id)
        assert exc_info.value.code == ErrorCode.INVALID_OFFER_STATE


class TestViewAndDelete:
    def test_mark_viewed(self, services, offer_engine, sent_offer):
        offer = offer_engine.mark_offer_viewed(sent_offer.id, viewer="candidate")
        assert offer.status == OfferStatus.VIEWED
        assert "offer_viewed" in _actions(services, sent_offer.application_id)

        again = offer_engine.mark_offer_viewed(sent_offer.id)
        assert again.version == offer.version

    def test_delete_draft(self, services, offer_engine, interviewed):
        draft, _ = offer_engine.create_offer(interviewed.id, TERMS)
        deleted = offer_engine.delete_offer(draft.id, actor="R1")

        assert deleted.id == draft.id
        assert offer_engine.list_offers(interviewed.id) == []
        assert "offer_deleted" in _actions(services, interviewed.id)
        with pytest.raises(ToolError) as exc_info:
            offer_engine.get_offer(draft.id)
        assert exc_info.value.code == ErrorCode.NOT_FOUND

    def test_delete_sent_refused(self, offer_engine, sent_offer):
        with pytest.raises(ToolError) as exc_info:
            offer_engine.delete_offer(sent_offer.id)
        assert exc_info.value.code == ErrorCode.INVALID_OFFER_STATE
