"""
Tests for the public and console timeline projections.
"""

from datetime import datetime, timedelta, timezone

from models.records import ActivityLogEntry, Application, Comment
from models.status import ApplicationStatus, Stage
from utils import ledger
from utils.public_timeline import (
    build_console_journey,
    build_public_summary,
    build_public_timeline,
    total_days,
)

T0 = datetime(2026, 2, 1, 10, 0, tzinfo=timezone.utc)


def _application(*moves):
    history = [ledger.open_entry(Stage.SHORTLISTING, T0, "Asha", action="applied")]
    at = T0
    for stage, hours, notes in moves:
        at = at + timedelta(hours=hours)
        history = ledger.advance(history, stage, at, "R1", notes)
    current = history[-1].stage
    return Application(
        id=5,
        candidate_id=1,
        job_id=2,
        stage=current,
        status=ApplicationStatus.UNDER_REVIEW,
        reference_number="HF-20260201-ABCD",
        applied_at=T0,
        stage_history=history,
        comments=[Comment(text="Strong SQL", author="R1", timestamp=T0 + timedelta(hours=1), stage="shortlisting")],
    )


def _activity(action, hours, description="x"):
    return ActivityLogEntry(
        application_id=5, action=action, description=description, created_at=T0 + timedelta(hours=hours)
    )


class TestPublicTimeline:
    def test_stages_use_public_labels(self):
        application = _application((Stage.SCREENING, 2, "recruiter only"), (Stage.REJECTED, 30, "weak"))

        timeline = build_public_timeline(application, [])

        assert [event["event"] for event in timeline] == [
            "Application Submitted",
            "Initial Screening",
            "Not Selected",
        ]
        assert timeline[-1]["status"] == "current"
        assert timeline[1]["status"] == "completed"
        assert "recruiter only" not in str(timeline)
        assert "R1" not in str(timeline)

    def test_only_offer_milestones_from_activity(self):
        application = _application((Stage.OFFER_SENT, 5, None))
        activities = [
            _activity("stage_changed", 5),
            _activity("comment_added", 6, "internal remark"),
            _activity("offer_sent", 5, "Offer sent by R1"),
            _activity("offer_accepted", 48, "Asha accepted the offer"),
        ]

        timeline = build_public_timeline(application, activities)

        events = [event["event"] for event in timeline]
        assert events == ["Application Submitted", "Offer Extended", "Offer Extended", "Offer Accepted"]
        assert "internal remark" not in str(timeline)

    def test_dates_are_formatted(self):
        timeline = build_public_timeline(_application(), [])
        assert timeline == [{"event": "Application Submitted", "date": "2026-02-01T10:00:00.000Z", "status": "completed"}]

    def test_summary(self):
        summary = build_public_summary(_application((Stage.ASSIGNMENT_SENT, 3, None)))
        assert summary["stage"] == "Assessment Sent"
        assert summary["stage_key"] == "assignment-sent"
        assert summary["status"] == "action_required"
        assert summary["applied_at"] == "2026-02-01T10:00:00.000Z"


class TestConsoleJourney:
    def test_merges_sources_in_time_order(self):
        application = _application((Stage.SCREENING, 2, "phone screen booked"))
        activities = [
            _activity("application_submitted", 0),
            _activity("ai_scored", 0.5, "Resume scored 80 (Strong)"),
            _activity("stage_changed", 2),
            _activity("notification_failed", 3, "smtp down"),
        ]

        journey = build_console_journey(application, activities, T0 + timedelta(days=2, hours=1))

        types = [item["type"] for item in journey["journey"]]
        assert types == ["applied", "ai_scored", "comment", "stage_change", "notification_failed"]
        assert journey["journey"][3]["description"] == "phone screen booked"
        assert journey["journey"][0]["duration_days"] == 1
        assert journey["current_stage"]["stage"] == "screening"
        assert journey["total_days"] == 3

    def test_total_days(self):
        assert total_days(T0, T0) == 0
        assert total_days(T0, T0 + timedelta(minutes=1)) == 1
        assert total_days(T0, T0 - timedelta(days=1)) == 0
