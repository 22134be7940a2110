"""
Database writer layer for the hiring pipeline.

Provides write access to the hiring store with transaction management and
compare-and-set updates. Every pipeline operation opens one HiringWriter, so
each transition commits or rolls back as a unit.
"""

import json
import sqlite3
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from db import hiring_reader
from db.schema import resolve_db_path
from models.errors import (
    create_conflict_error,
    create_db_error,
    create_db_not_found_error,
)
from models.records import Application, Comment, NegotiationEntry, Offer, StageHistoryEntry
from models.status import Stage
from utils.validation import format_timestamp

# Seconds a writer waits for another writer's lock before giving up
BUSY_TIMEOUT_SECONDS = 5.0


def to_db_value(value: Any) -> Any:
    """Convert a domain value to what the SQLite columns store."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return value


class HiringWriter:
    """
    Context manager for write operations on the hiring database.

    Provides transaction management with automatic rollback on exceptions
    and guaranteed connection cleanup. The transaction is opened with
    ``BEGIN IMMEDIATE`` so two writers never interleave.

    Usage:
        with HiringWriter(db_path) as writer:
            writer.compare_and_set_application(app.id, app.version, app.stage, fields, now)
            writer.insert_history_entry(app.id, entry)
            writer.commit()
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize writer with database path.

        Args:
            db_path: Optional database path override
        """
        self.db_path = db_path
        self.resolved_path: Optional[Path] = None
        self.conn: Optional[sqlite3.Connection] = None
        self._in_transaction = False

    def __enter__(self):
        """
        Open connection and begin an immediate transaction.

        Raises:
            ToolError: If database file doesn't exist or connection fails
        """
        self.resolved_path = resolve_db_path(self.db_path)

        if not self.resolved_path.exists() or not self.resolved_path.is_file():
            raise create_db_not_found_error(str(self.resolved_path))

        try:
            self.conn = sqlite3.connect(
                str(self.resolved_path), timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None
            )
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")

            self.conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True

            return self

        except sqlite3.OperationalError as e:
            self._close()
            error_msg = str(e)
            if "unable to open database" in error_msg.lower():
                raise create_db_not_found_error(str(self.resolved_path)) from e
            else:
                # "database is locked" lands here
                raise create_db_error(error_msg, retryable=True, original_error=e) from e

        except sqlite3.Error as e:
            self._close()
            raise create_db_error(str(e), retryable=False, original_error=e) from e

    def __exit__(self, exc_type, exc_val, exc_tb):
        """
        Rollback on exception or uncommitted work, close connection always.

        Returns:
            False to propagate exceptions
        """
        try:
            if self._in_transaction:
                self.rollback()
        finally:
            self._close()

        return False

    def _close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def _require_conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise create_db_error("Connection not established", retryable=False)
        return self.conn

    def _execute(self, query: str, params=()) -> sqlite3.Cursor:
        conn = self._require_conn()
        try:
            return conn.execute(query, params)
        except sqlite3.IntegrityError as e:
            message = str(e)
            if "UNIQUE" in message.upper():
                raise create_conflict_error(
                    "Concurrent modification: a conflicting record already exists"
                ) from e
            raise create_db_error(message, retryable=False, original_error=e) from e
        except sqlite3.OperationalError as e:
            raise create_db_error(str(e), retryable=True, original_error=e) from e
        except sqlite3.Error as e:
            raise create_db_error(str(e), retryable=False, original_error=e) from e

    # ------------------------------------------------------------------
    # Reads inside the write transaction
    # ------------------------------------------------------------------

    def load_application(self, application_id: int) -> Optional[Application]:
        return hiring_reader.fetch_application(self._require_conn(), application_id)

    def load_offer(self, offer_id: int) -> Optional[Offer]:
        return hiring_reader.fetch_offer(self._require_conn(), offer_id)

    # ------------------------------------------------------------------
    # Compare-and-set updates
    # ------------------------------------------------------------------

    def compare_and_set_application(
        self,
        application_id: int,
        expected_version: int,
        fields: Dict[str, Any],
        timestamp: datetime,
        expected_stage=None,
    ) -> int:
        """
        Update an application only if nobody changed it since it was read.

        Args:
            application_id: The application to update
            expected_version: Version observed when the caller read the record
            fields: Column -> new value
            timestamp: Value for updated_at
            expected_stage: Optional stage the row must still be in

        Returns:
            The new version number

        Raises:
            ToolError: CONFLICT if the row moved on in the meantime
        """
        assignments = [f"{column} = ?" for column in fields]
        params = [to_db_value(value) for value in fields.values()]
        assignments.extend(["version = version + 1", "updated_at = ?"])
        params.append(to_db_value(timestamp))

        query = f"UPDATE applications SET {', '.join(assignments)} WHERE id = ? AND version = ?"
        params.extend([application_id, expected_version])
        if expected_stage is not None:
            query += " AND stage = ?"
            params.append(to_db_value(expected_stage))

        cursor = self._execute(query, params)
        if cursor.rowcount == 0:
            raise create_conflict_error(
                f"Application {application_id} was modified concurrently; re-read and retry"
            )
        return expected_version + 1

    def compare_and_set_offer(
        self,
        offer_id: int,
        expected_version: int,
        fields: Dict[str, Any],
        timestamp: datetime,
        expected_status=None,
    ) -> int:
        """
        Update an offer only if nobody changed it since it was read.

        Returns:
            The new version number

        Raises:
            ToolError: CONFLICT if the row moved on in the meantime
        """
        assignments = [f"{column} = ?" for column in fields]
        params = [to_db_value(value) for value in fields.values()]
        assignments.extend(["version = version + 1", "updated_at = ?"])
        params.append(to_db_value(timestamp))

        query = f"UPDATE offers SET {', '.join(assignments)} WHERE id = ? AND version = ?"
        params.extend([offer_id, expected_version])
        if expected_status is not None:
            query += " AND status = ?"
            params.append(to_db_value(expected_status))

        cursor = self._execute(query, params)
        if cursor.rowcount == 0:
            raise create_conflict_error(
                f"Offer {offer_id} was modified concurrently; re-read and retry"
            )
        return expected_version + 1

    # ------------------------------------------------------------------
    # Ledger, comments, activity
    # ------------------------------------------------------------------

    def close_history_entry(self, entry: StageHistoryEntry) -> None:
        """Persist the exit stamp and duration of a closed ledger entry."""
        self._execute(
            """
            UPDATE stage_history
            SET exited_at = ?, duration_days = ?
            WHERE id = ? AND exited_at IS NULL
            """,
            (to_db_value(entry.exited_at), entry.duration_days, entry.id),
        )

    def insert_history_entry(self, application_id: int, entry: StageHistoryEntry) -> int:
        cursor = self._execute(
            """
            INSERT INTO stage_history
                (application_id, stage, entered_at, exited_at, duration_days, moved_by, notes, action)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                application_id,
                to_db_value(entry.stage),
                to_db_value(entry.entered_at),
                to_db_value(entry.exited_at),
                entry.duration_days,
                entry.moved_by,
                entry.notes,
                entry.action,
            ),
        )
        return cursor.lastrowid

    def insert_comment(self, application_id: int, comment: Comment) -> int:
        cursor = self._execute(
            """
            INSERT INTO application_comments (application_id, text, author, stage, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                application_id,
                comment.text,
                comment.author,
                comment.stage,
                to_db_value(comment.timestamp),
            ),
        )
        return cursor.lastrowid

    def insert_activity(
        self,
        application_id: int,
        action: str,
        description: str,
        metadata: Dict[str, Any],
        created_at: datetime,
    ) -> int:
        cursor = self._execute(
            """
            INSERT INTO activity_log (application_id, action, description, metadata_json, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                application_id,
                to_db_value(action),
                description,
                json.dumps(metadata or {}, sort_keys=True, default=str),
                to_db_value(created_at),
            ),
        )
        return cursor.lastrowid

    # ------------------------------------------------------------------
    # Candidates, jobs, applications
    # ------------------------------------------------------------------

    def upsert_candidate(
        self,
        name: str,
        email: str,
        timestamp: datetime,
        phone: Optional[str] = None,
        resume_text: Optional[str] = None,
        resume_key: Optional[str] = None,
        refresh_existing: bool = True,
    ) -> int:
        """
        Insert a candidate or refresh the existing one with the same email.

        Blank optional values never overwrite stored ones. With
        refresh_existing=False an existing row is left untouched.

        Returns:
            The candidate id
        """
        existing = self._execute(
            "SELECT id FROM candidates WHERE email = ? COLLATE NOCASE", (email,)
        ).fetchone()
        stamp = to_db_value(timestamp)
        if existing is not None and not refresh_existing:
            return existing["id"]
        if existing is not None:
            self._execute(
                """
                UPDATE candidates
                SET name = ?,
                    phone = COALESCE(?, phone),
                    resume_text = COALESCE(?, resume_text),
                    resume_key = COALESCE(?, resume_key),
                    updated_at = ?
                WHERE id = ?
                """,
                (name, phone, resume_text, resume_key, stamp, existing["id"]),
            )
            return existing["id"]

        cursor = self._execute(
            """
            INSERT INTO candidates (name, email, phone, resume_text, resume_key, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (name, email, phone, resume_text, resume_key, stamp, stamp),
        )
        return cursor.lastrowid

    def insert_job(
        self,
        title: str,
        timestamp: datetime,
        department: Optional[str] = None,
        location: Optional[str] = None,
        skills: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        cursor = self._execute(
            """
            INSERT INTO job_openings (title, department, location, skills, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (title, department, location, skills, description, to_db_value(timestamp)),
        )
        return cursor.lastrowid

    def insert_application(self, fields: Dict[str, Any], timestamp: datetime) -> int:
        """
        Insert a new application row.

        Raises:
            ToolError: CONFLICT if the candidate already applied to the job
        """
        columns = list(fields) + ["created_at", "updated_at"]
        params = [to_db_value(value) for value in fields.values()]
        params.extend([to_db_value(timestamp), to_db_value(timestamp)])
        placeholders = ",".join("?" * len(columns))
        cursor = self._execute(
            f"INSERT INTO applications ({', '.join(columns)}) VALUES ({placeholders})",
            params,
        )
        return cursor.lastrowid

    def update_application_scoring(
        self,
        application_id: int,
        ai_score: float,
        profile_strength: str,
        analysis: Dict[str, Any],
        timestamp: datetime,
    ) -> None:
        """
        Store a scoring result.

        Scoring fields are outside the state machine, so the version is not
        bumped and a concurrent transition never conflicts with a scorer.
        """
        self._execute(
            """
            UPDATE applications
            SET ai_score = ?, profile_strength = ?, ai_analysis_json = ?, updated_at = ?
            WHERE id = ?
            """,
            (ai_score, profile_strength, to_db_value(analysis), to_db_value(timestamp), application_id),
        )

    def update_stage_age(
        self,
        application_id: int,
        expected_version: int,
        expected_stage: Stage,
        days_in_stage: int,
        needs_attention: bool,
    ) -> bool:
        """
        Refresh the days-in-stage counter of one application.

        The row is only touched while it still has the version and stage the
        counter was computed from; the version itself is left unchanged.

        Returns:
            True if the row was updated, False if it moved on meanwhile
        """
        cursor = self._execute(
            """
            UPDATE applications
            SET days_in_stage = ?, needs_attention = ?
            WHERE id = ? AND version = ? AND stage = ?
            """,
            (
                days_in_stage,
                int(needs_attention),
                application_id,
                expected_version,
                Stage(expected_stage).value,
            ),
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    def insert_offer(self, application_id: int, fields: Dict[str, Any], timestamp: datetime) -> int:
        """
        Insert a new offer row.

        Raises:
            ToolError: CONFLICT if the application already has an active offer
        """
        columns = ["application_id"] + list(fields) + ["created_at", "updated_at"]
        params = [application_id] + [to_db_value(value) for value in fields.values()]
        params.extend([to_db_value(timestamp), to_db_value(timestamp)])
        placeholders = ",".join("?" * len(columns))
        cursor = self._execute(
            f"INSERT INTO offers ({', '.join(columns)}) VALUES ({placeholders})",
            params,
        )
        return cursor.lastrowid

    def insert_negotiation_entry(self, offer_id: int, entry: NegotiationEntry) -> int:
        cursor = self._execute(
            """
            INSERT INTO negotiation_history (offer_id, date, action, details, by_actor)
            VALUES (?, ?, ?, ?, ?)
            """,
            (offer_id, to_db_value(entry.date), entry.action, entry.details, entry.by),
        )
        return cursor.lastrowid

    def delete_offer(self, offer_id: int, expected_version: int) -> None:
        """
        Delete an offer together with its negotiation history.

        Raises:
            ToolError: CONFLICT if the offer changed since it was read
        """
        # Children first; a lost compare-and-set rolls both deletes back
        self._execute("DELETE FROM negotiation_history WHERE offer_id = ?", (offer_id,))
        cursor = self._execute(
            "DELETE FROM offers WHERE id = ? AND version = ?", (offer_id, expected_version)
        )
        if cursor.rowcount == 0:
            raise create_conflict_error(
                f"Offer {offer_id} was modified concurrently; re-read and retry"
            )

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    def commit(self) -> None:
        """
        Commit the transaction.

        Raises:
            ToolError: If commit fails
        """
        conn = self._require_conn()

        if not self._in_transaction:
            return

        try:
            conn.execute("COMMIT")
            self._in_transaction = False

        except sqlite3.Error as e:
            raise create_db_error(
                f"Failed to commit transaction: {str(e)}", retryable=True, original_error=e
            ) from e

    def rollback(self) -> None:
        """
        Rollback the transaction.

        Does not raise exceptions since rollback is often called during
        error handling.
        """
        if self.conn is None or not self._in_transaction:
            return

        try:
            self.conn.execute("ROLLBACK")
        except sqlite3.Error:
            # Already rolled back by SQLite after a failed statement
            pass
        finally:
            self._in_transaction = False
