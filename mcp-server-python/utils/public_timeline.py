"""
Timeline projections of an application.

build_public_timeline renders what a candidate may see: ledger stages
through the public label tables plus a fixed set of offer milestones, never
internal notes, comments or actor names. build_console_journey merges the
ledger, comments and activity log for the internal console.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Sequence

from models.records import ActivityLogEntry, Application
from models.stage_catalog import (
    public_stage_description,
    public_stage_label,
    public_stage_status,
    stage_label,
)
from utils.validation import format_timestamp

# Activity actions a candidate sees, with their public event names
PUBLIC_ACTIVITY_EVENTS: Dict[str, str] = {
    "offer_sent": "Offer Extended",
    "offer_updated": "Offer Updated",
    "offer_accepted": "Offer Accepted",
    "offer_declined": "Offer Declined",
}

# Ledger action tags with a dedicated console title
JOURNEY_ACTION_TITLES: Dict[str, str] = {
    "applied": "Application Submitted",
    "rejected": "Application Rejected",
    "withdrawn": "Application Withdrawn",
    "offer_accepted": "Offer Accepted",
    "hired": "Candidate Hired",
}

# Already represented by ledger entries
_LEDGER_ACTIVITY_ACTIONS = frozenset({
    "stage_changed",
    "application_rejected",
    "application_withdrawn",
    "application_submitted",
})


def build_public_timeline(
    application: Application, activities: Sequence[ActivityLogEntry]
) -> List[Dict[str, Any]]:
    """Candidate-safe timeline, oldest first."""
    events: List[Dict[str, Any]] = [
        {
            "event": "Application Submitted",
            "date": application.applied_at,
            "status": "completed",
        }
    ]

    # The first ledger entry is the submission itself
    for entry in application.stage_history[1:]:
        events.append(
            {
                "event": public_stage_label(entry.stage),
                "date": entry.entered_at,
                "status": "current" if entry.is_open else "completed",
                "stage_status": public_stage_status(entry.stage).value,
            }
        )

    for activity in activities:
        event_name = PUBLIC_ACTIVITY_EVENTS.get(activity.action)
        if event_name is None:
            continue
        events.append({"event": event_name, "date": activity.created_at, "status": "completed"})

    events.sort(key=lambda event: event["date"])
    return [{**event, "date": format_timestamp(event["date"])} for event in events]


def build_public_summary(application: Application) -> Dict[str, Any]:
    """Public stage fields shared by lookup and status responses."""
    return {
        "application_id": application.id,
        "reference_number": application.reference_number,
        "stage": public_stage_label(application.stage),
        "stage_key": application.stage.value,
        "status": public_stage_status(application.stage).value,
        "status_description": public_stage_description(application.stage),
        "applied_at": format_timestamp(application.applied_at),
    }


def total_days(applied_at: datetime, now: datetime) -> int:
    """Days since applying, rounded up."""
    elapsed = (now - applied_at).total_seconds()
    if elapsed <= 0:
        return 0
    return math.ceil(elapsed / 86400)


def build_console_journey(
    application: Application,
    activities: Sequence[ActivityLogEntry],
    now: datetime,
) -> Dict[str, Any]:
    """Full internal timeline of an application."""
    journey: List[Dict[str, Any]] = []

    for entry in application.stage_history:
        journey.append(
            {
                "type": entry.action,
                "stage": entry.stage.value,
                "stage_name": stage_label(entry.stage),
                "timestamp": entry.entered_at,
                "title": JOURNEY_ACTION_TITLES.get(entry.action, f"Moved to {stage_label(entry.stage)}"),
                "description": entry.notes,
                "moved_by": entry.moved_by,
                "duration_days": entry.duration_days,
            }
        )

    for comment in application.comments:
        journey.append(
            {
                "type": "comment",
                "stage": comment.stage,
                "stage_name": stage_label(comment.stage) if comment.stage else None,
                "timestamp": comment.timestamp,
                "title": "Comment Added",
                "description": comment.text,
                "author": comment.author,
            }
        )

    for activity in activities:
        if activity.action in _LEDGER_ACTIVITY_ACTIONS or activity.action == "comment_added":
            continue
        journey.append(
            {
                "type": activity.action,
                "timestamp": activity.created_at,
                "title": activity.action.replace("_", " ").capitalize(),
                "description": activity.description,
                "metadata": activity.metadata,
            }
        )

    journey.sort(key=lambda item: item["timestamp"])
    for item in journey:
        item["timestamp"] = format_timestamp(item["timestamp"])

    return {
        "application_id": application.id,
        "current_stage": {
            "stage": application.stage.value,
            "stage_name": stage_label(application.stage),
            "days_in_stage": application.days_in_stage,
            "status": application.status.value,
        },
        "rejection_reason": application.rejection_reason,
        "journey": journey,
        "total_days": total_days(application.applied_at, now),
    }
