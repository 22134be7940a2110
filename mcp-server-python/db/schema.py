"""
Database path resolution and schema bootstrap for the hiring store.

One SQLite file holds every aggregate. Two partial unique indexes back the
pipeline invariants at the storage level:
- idx_stage_history_open: at most one open ledger entry per application
- idx_offers_active: at most one active offer per application
"""

import os
import sqlite3
from pathlib import Path
from typing import Optional

from models.errors import create_db_error

# Default database path relative to repository root
DEFAULT_DB_PATH = "data/hireflow.db"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS candidates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
    phone TEXT,
    resume_text TEXT,
    resume_key TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS job_openings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    department TEXT,
    location TEXT,
    skills TEXT,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS applications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    candidate_id INTEGER NOT NULL REFERENCES candidates(id),
    job_id INTEGER NOT NULL REFERENCES job_openings(id),
    stage TEXT NOT NULL DEFAULT 'shortlisting',
    status TEXT NOT NULL DEFAULT 'under_review',
    reference_number TEXT UNIQUE,
    referral_source TEXT,
    days_in_stage INTEGER NOT NULL DEFAULT 0,
    needs_attention INTEGER NOT NULL DEFAULT 0,
    applied_at TEXT NOT NULL,
    last_activity_at TEXT,
    rejection_reason TEXT,
    rejection_date TEXT,
    withdrawn_reason TEXT,
    withdrawn_at TEXT,
    assigned_to TEXT,
    ai_score REAL,
    profile_strength TEXT,
    ai_analysis_json TEXT,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (candidate_id, job_id)
);

CREATE INDEX IF NOT EXISTS idx_applications_stage ON applications(stage);

CREATE TABLE IF NOT EXISTS stage_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    application_id INTEGER NOT NULL REFERENCES applications(id),
    stage TEXT NOT NULL,
    entered_at TEXT NOT NULL,
    exited_at TEXT,
    duration_days INTEGER,
    moved_by TEXT NOT NULL,
    notes TEXT,
    action TEXT NOT NULL DEFAULT 'stage_change'
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_stage_history_open
    ON stage_history(application_id) WHERE exited_at IS NULL;

CREATE TABLE IF NOT EXISTS application_comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    application_id INTEGER NOT NULL REFERENCES applications(id),
    text TEXT NOT NULL,
    author TEXT NOT NULL,
    stage TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS offers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    application_id INTEGER NOT NULL REFERENCES applications(id),
    status TEXT NOT NULL DEFAULT 'draft',
    offer_type TEXT NOT NULL DEFAULT 'text',
    offer_content TEXT,
    attachment_json TEXT,
    salary TEXT,
    salary_currency TEXT NOT NULL DEFAULT 'INR',
    bonus TEXT,
    equity TEXT,
    benefits TEXT,
    start_date TEXT,
    expiry_date TEXT,
    terms_and_conditions TEXT,
    internal_notes TEXT,
    sent_at TEXT,
    sent_by TEXT,
    response_date TEXT,
    response_notes TEXT,
    joining_date TEXT,
    joining_location TEXT,
    decline_reason TEXT,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_offers_active
    ON offers(application_id) WHERE status IN ('draft', 'sent', 'viewed', 'negotiating');

CREATE TABLE IF NOT EXISTS negotiation_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    offer_id INTEGER NOT NULL REFERENCES offers(id),
    date TEXT NOT NULL,
    action TEXT NOT NULL,
    details TEXT NOT NULL,
    by_actor TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    application_id INTEGER NOT NULL,
    action TEXT NOT NULL,
    description TEXT NOT NULL,
    metadata_json TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_activity_log_application
    ON activity_log(application_id, created_at);
"""


def resolve_db_path(db_path: Optional[str] = None) -> Path:
    """
    Resolve the database path with support for overrides and defaults.

    Resolution order:
    1. Provided db_path parameter
    2. HIREFLOW_DB environment variable
    3. HIREFLOW_ROOT/data/hireflow.db
    4. Default path: data/hireflow.db

    Args:
        db_path: Optional database path override

    Returns:
        Resolved absolute Path to the database
    """
    if db_path is not None:
        path_str = db_path
    else:
        db_env = os.getenv("HIREFLOW_DB")
        if db_env:
            path_str = db_env
        else:
            root_env = os.getenv("HIREFLOW_ROOT")
            if root_env:
                return Path(root_env) / "data" / "hireflow.db"
            path_str = DEFAULT_DB_PATH

    path = Path(path_str)

    # If relative, resolve from repository root
    if not path.is_absolute():
        current_file = Path(__file__).resolve()
        repo_root = current_file.parents[2]  # db/ -> mcp-server-python/ -> repo/
        path = repo_root / path

    return path


def ensure_parent_dirs(db_path: Path) -> None:
    """
    Ensure parent directories exist for the database file.

    Raises:
        ToolError: If directory creation fails
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise create_db_error(
            f"Failed to create parent directories: {str(e)}", retryable=False, original_error=e
        ) from e


def bootstrap_schema(conn: sqlite3.Connection) -> None:
    """
    Create every table and index if missing.

    This operation is idempotent - safe to call on existing databases.

    Raises:
        ToolError: If schema creation fails
    """
    try:
        conn.executescript(SCHEMA_SQL)
        conn.commit()
    except sqlite3.Error as e:
        raise create_db_error(
            f"Failed to bootstrap schema: {str(e)}", retryable=False, original_error=e
        ) from e


def init_db(db_path: Optional[str] = None) -> Path:
    """
    Create the database file (and parents) and bootstrap the schema.

    Returns:
        The resolved database path
    """
    resolved = resolve_db_path(db_path)
    ensure_parent_dirs(resolved)
    try:
        conn = sqlite3.connect(str(resolved))
    except sqlite3.Error as e:
        raise create_db_error(str(e), retryable=True, original_error=e) from e
    try:
        bootstrap_schema(conn)
    finally:
        conn.close()
    return resolved
