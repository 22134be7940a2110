"""
Input validation and timestamp utilities shared by the pipeline tools.

Validators raise ToolError(VALIDATION_ERROR) with a message naming the
offending field. Timestamps are always UTC and stored as ISO 8601 strings
with millisecond precision and a ``Z`` suffix.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

from models.errors import create_validation_error
from models.status import OfferStatus, Stage

MAX_ACTOR_LENGTH = 120
MAX_NOTES_LENGTH = 2000
MAX_COMMENT_LENGTH = 5000

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime as ISO 8601 UTC with millisecond precision.

    Naive datetimes are treated as UTC.

    Example: 2026-02-04T03:47:36.966Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def validate_positive_id(value: Any, field_name: str) -> int:
    """
    Validate a record id.

    Args:
        value: The id to validate
        field_name: Field name used in the error message

    Returns:
        The id as int

    Raises:
        ToolError: If the id is not a positive integer
    """
    # bool is a subclass of int in Python, reject explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise create_validation_error(
            f"Invalid {field_name} type: expected integer, got {type(value).__name__}"
        )
    if value < 1:
        raise create_validation_error(f"Invalid {field_name}: must be a positive integer")
    return value


def validate_stage(value: Any) -> Stage:
    """
    Validate a stage identifier against the Stage Catalog.

    Matching is case-sensitive and whitespace is not trimmed, mirroring how
    stages are stored.
    """
    if isinstance(value, Stage):
        return value
    if not isinstance(value, str):
        raise create_validation_error(
            f"Invalid stage type: expected string, got {type(value).__name__}"
        )
    try:
        return Stage(value)
    except ValueError:
        allowed = ", ".join(stage.value for stage in Stage)
        raise create_validation_error(f"Invalid stage '{value}'. Allowed values: {allowed}")


def validate_offer_status(value: Any) -> OfferStatus:
    """Validate an offer status string."""
    if isinstance(value, OfferStatus):
        return value
    if not isinstance(value, str):
        raise create_validation_error(
            f"Invalid status type: expected string, got {type(value).__name__}"
        )
    try:
        return OfferStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in OfferStatus)
        raise create_validation_error(f"Invalid offer status '{value}'. Allowed values: {allowed}")


def validate_actor(value: Optional[str], default: Optional[str] = None) -> str:
    """
    Validate the identity a transition is attributed to.

    Falls back to ``default`` when no actor is given; fails when neither exists.
    """
    if value is None:
        value = default
    if value is None or not isinstance(value, str) or not value.strip():
        raise create_validation_error("Invalid actor: cannot be empty")
    value = value.strip()
    if len(value) > MAX_ACTOR_LENGTH:
        raise create_validation_error(
            f"Invalid actor: exceeds maximum length of {MAX_ACTOR_LENGTH}"
        )
    return value


def validate_required_text(value: Any, field_name: str, max_length: int = MAX_NOTES_LENGTH) -> str:
    """Validate a required free-text field and return it stripped."""
    if value is None:
        raise create_validation_error(f"Missing required field: '{field_name}'")
    if not isinstance(value, str):
        raise create_validation_error(
            f"Invalid {field_name} type: expected string, got {type(value).__name__}"
        )
    value = value.strip()
    if not value:
        raise create_validation_error(f"Invalid {field_name}: cannot be empty")
    if len(value) > max_length:
        raise create_validation_error(
            f"Invalid {field_name}: exceeds maximum length of {max_length}"
        )
    return value


def validate_optional_text(value: Any, field_name: str, max_length: int = MAX_NOTES_LENGTH) -> Optional[str]:
    """Validate an optional free-text field; blank strings become None."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return validate_required_text(value, field_name, max_length)


def validate_email(value: Any) -> str:
    """Validate an email address and normalize it to lowercase."""
    value = validate_required_text(value, "email", max_length=254)
    if not _EMAIL_PATTERN.match(value):
        raise create_validation_error(f"Invalid email: {value!r}")
    return value.lower()
