"""
Activity Event Log: the append-only audit trail of every application.

Entries are written through the same HiringWriter as the change they
describe, so an audit entry exists if and only if its change committed.
Side-effect outcomes are written afterwards in their own transaction.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from db.hiring_reader import fetch_activity, get_connection
from db.hiring_writer import HiringWriter
from models.records import ActivityLogEntry


class ActivityAction(str, Enum):
    """Action tags written to the activity log."""

    APPLICATION_SUBMITTED = "application_submitted"
    STAGE_CHANGED = "stage_changed"
    APPLICATION_REJECTED = "application_rejected"
    APPLICATION_WITHDRAWN = "application_withdrawn"
    APPLICATION_ASSIGNED = "application_assigned"
    COMMENT_ADDED = "comment_added"
    OFFER_DRAFTED = "offer_drafted"
    OFFER_SENT = "offer_sent"
    OFFER_UPDATED = "offer_updated"
    OFFER_VIEWED = "offer_viewed"
    OFFER_RESENT = "offer_resent"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_DECLINED = "offer_declined"
    OFFER_STATUS_CHANGED = "offer_status_changed"
    OFFER_DELETED = "offer_deleted"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_FAILED = "notification_failed"
    AI_SCORED = "ai_scored"
    SCORING_DEGRADED = "scoring_degraded"


def record(
    writer: HiringWriter,
    application_id: int,
    action: ActivityAction,
    description: str,
    at: datetime,
    metadata: Optional[Dict[str, Any]] = None,
) -> ActivityLogEntry:
    """Append one entry inside the writer's transaction and return it."""
    metadata = metadata or {}
    entry_id = writer.insert_activity(application_id, action, description, metadata, at)
    return ActivityLogEntry(
        id=entry_id,
        application_id=application_id,
        action=ActivityAction(action).value,
        description=description,
        metadata=metadata,
        created_at=at,
    )


def list_activity(application_id: int, db_path: Optional[str] = None) -> List[ActivityLogEntry]:
    """Entries of one application, oldest first."""
    with get_connection(db_path) as conn:
        return fetch_activity(conn, application_id)
