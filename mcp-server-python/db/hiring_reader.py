"""
Database reader layer for the hiring store.

Provides read-only access with connection management and mapping of rows to
domain records. Every fetch_* function takes an open connection so the writer
can reuse them inside its own transaction.
"""

import json
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from db.schema import resolve_db_path
from models.errors import create_db_error, create_db_not_found_error
from models.records import (
    ActivityLogEntry,
    Application,
    Candidate,
    JobOpening,
    Offer,
)
from models.stage_catalog import ABSORBING_STAGES, ACTIVE_OFFER_STATUSES


@contextmanager
def get_connection(db_path: Optional[str] = None):
    """
    Context manager for read-only SQLite connections.

    Ensures connections are always properly closed, even on errors.

    Args:
        db_path: Optional database path override

    Yields:
        sqlite3.Connection: Database connection

    Raises:
        ToolError: If database file doesn't exist or connection fails
    """
    resolved_path = resolve_db_path(db_path)

    if not resolved_path.exists() or not resolved_path.is_file():
        raise create_db_not_found_error(str(resolved_path))

    conn = None
    try:
        # Read-only URI mode: readers can never mutate pipeline state
        uri = f"file:{resolved_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
        conn.row_factory = sqlite3.Row

        yield conn

    except sqlite3.OperationalError as e:
        error_msg = str(e)
        if "unable to open database" in error_msg.lower():
            raise create_db_not_found_error(str(resolved_path)) from e
        else:
            raise create_db_error(error_msg, retryable=True, original_error=e) from e

    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e

    finally:
        if conn is not None:
            conn.close()


def _load_json(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    return json.loads(value)


def _application_from_row(conn: sqlite3.Connection, row: sqlite3.Row) -> Application:
    data: Dict[str, Any] = dict(row)
    data["ai_analysis"] = _load_json(data.pop("ai_analysis_json", None), None)
    data["stage_history"] = [
        dict(entry)
        for entry in conn.execute(
            "SELECT * FROM stage_history WHERE application_id = ? ORDER BY id",
            (data["id"],),
        )
    ]
    data["comments"] = [
        {
            "text": comment["text"],
            "author": comment["author"],
            "stage": comment["stage"],
            "timestamp": comment["created_at"],
        }
        for comment in conn.execute(
            "SELECT * FROM application_comments WHERE application_id = ? ORDER BY id",
            (data["id"],),
        )
    ]
    return Application.model_validate(data)


def _offer_from_row(conn: sqlite3.Connection, row: sqlite3.Row) -> Offer:
    data: Dict[str, Any] = dict(row)
    data["attachment"] = _load_json(data.pop("attachment_json", None), {"kind": "none"})
    data["negotiation_history"] = [
        {
            "id": entry["id"],
            "date": entry["date"],
            "action": entry["action"],
            "details": entry["details"],
            "by": entry["by_actor"],
        }
        for entry in conn.execute(
            "SELECT * FROM negotiation_history WHERE offer_id = ? ORDER BY id",
            (data["id"],),
        )
    ]
    return Offer.model_validate(data)


def fetch_application(conn: sqlite3.Connection, application_id: int) -> Optional[Application]:
    """Load one application aggregate with its ledger and comments, or None."""
    try:
        row = conn.execute(
            "SELECT * FROM applications WHERE id = ?", (application_id,)
        ).fetchone()
        if row is None:
            return None
        return _application_from_row(conn, row)
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e


def fetch_applications_for_candidate(conn: sqlite3.Connection, candidate_id: int) -> List[Application]:
    """All applications of a candidate, newest first."""
    try:
        rows = conn.execute(
            "SELECT * FROM applications WHERE candidate_id = ? ORDER BY applied_at DESC, id DESC",
            (candidate_id,),
        ).fetchall()
        return [_application_from_row(conn, row) for row in rows]
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e


def fetch_open_applications(conn: sqlite3.Connection) -> List[Application]:
    """Applications whose stage still accepts transitions."""
    placeholders = ",".join("?" * len(ABSORBING_STAGES))
    try:
        rows = conn.execute(
            f"SELECT * FROM applications WHERE stage NOT IN ({placeholders}) ORDER BY id",
            [stage.value for stage in ABSORBING_STAGES],
        ).fetchall()
        return [_application_from_row(conn, row) for row in rows]
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e


def fetch_offer(conn: sqlite3.Connection, offer_id: int) -> Optional[Offer]:
    """Load one offer with its negotiation history, or None."""
    try:
        row = conn.execute("SELECT * FROM offers WHERE id = ?", (offer_id,)).fetchone()
        if row is None:
            return None
        return _offer_from_row(conn, row)
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e


def fetch_offers_for_application(conn: sqlite3.Connection, application_id: int) -> List[Offer]:
    """All offers of an application, newest first."""
    try:
        rows = conn.execute(
            "SELECT * FROM offers WHERE application_id = ? ORDER BY id DESC",
            (application_id,),
        ).fetchall()
        return [_offer_from_row(conn, row) for row in rows]
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e


def fetch_active_offer(conn: sqlite3.Connection, application_id: int) -> Optional[Offer]:
    """The single non-terminal offer of an application, if any."""
    for offer in fetch_offers_for_application(conn, application_id):
        if offer.status in ACTIVE_OFFER_STATUSES:
            return offer
    return None


def fetch_activity(conn: sqlite3.Connection, application_id: int) -> List[ActivityLogEntry]:
    """Activity log of an application in chronological order."""
    try:
        rows = conn.execute(
            "SELECT * FROM activity_log WHERE application_id = ? ORDER BY created_at, id",
            (application_id,),
        ).fetchall()
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e
    entries = []
    for row in rows:
        data = dict(row)
        data["metadata"] = _load_json(data.pop("metadata_json", None), {})
        entries.append(ActivityLogEntry.model_validate(data))
    return entries


def fetch_candidate(conn: sqlite3.Connection, candidate_id: int) -> Optional[Candidate]:
    try:
        row = conn.execute("SELECT * FROM candidates WHERE id = ?", (candidate_id,)).fetchone()
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e
    return Candidate.model_validate(dict(row)) if row is not None else None


def fetch_candidate_by_email(conn: sqlite3.Connection, email: str) -> Optional[Candidate]:
    try:
        row = conn.execute(
            "SELECT * FROM candidates WHERE email = ? COLLATE NOCASE", (email,)
        ).fetchone()
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e
    return Candidate.model_validate(dict(row)) if row is not None else None


def fetch_job(conn: sqlite3.Connection, job_id: int) -> Optional[JobOpening]:
    try:
        row = conn.execute("SELECT * FROM job_openings WHERE id = ?", (job_id,)).fetchone()
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=False, original_error=e) from e
    return JobOpening.model_validate(dict(row)) if row is not None else None
