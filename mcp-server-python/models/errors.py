"""
Error model for the HireFlow pipeline tools.

Provides structured error codes and sanitized error messages shared by the
stage/offer engines, the store, and both front doors (console and portal).
"""

from enum import Enum
from typing import Optional
import re


class ErrorCode(str, Enum):
    """Structured error codes for the MCP tools."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INVALID_OFFER_STATE = "INVALID_OFFER_STATE"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"
    DOWNSTREAM_DEGRADED = "DOWNSTREAM_DEGRADED"
    DB_NOT_FOUND = "DB_NOT_FOUND"
    DB_ERROR = "DB_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ToolError(Exception):
    """Base exception for tool errors with structured error information."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        retryable: bool = False,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize a tool error.

        Args:
            code: The error code
            message: Human-readable error message
            retryable: Whether the operation can be retried
            original_error: The original exception if this wraps another error
        """
        self.code = code
        self.message = message
        self.retryable = retryable
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary format for MCP response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "retryable": self.retryable
            }
        }


def sanitize_path(path: str) -> str:
    """
    Sanitize file paths to avoid exposing sensitive system details.

    Returns only the basename for absolute paths, keeps relative paths.
    """
    import os
    if os.path.isabs(path):
        return os.path.basename(path)
    return path


def sanitize_sql_error(error_msg: str) -> str:
    """
    Sanitize SQL error messages to remove sensitive details.

    Removes SQL fragments and absolute paths, keeping only actionable information.
    """
    sanitized = re.sub(r'SQL:.*', '', error_msg, flags=re.IGNORECASE)
    sanitized = re.sub(r'"[^"]*SELECT[^"]*"', '[SQL query]', sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(r"'[^']*SELECT[^']*'", '[SQL query]', sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(
        r'\b(SELECT|INSERT|UPDATE|DELETE)\b.*', '[SQL query]', sanitized, flags=re.IGNORECASE
    )
    sanitized = re.sub(r'/[^\s]+/', '[path]/', sanitized)
    return sanitized.strip()


def sanitize_stack_trace(error_msg: str) -> str:
    """Keep only the first line of a multi-line error message."""
    lines = error_msg.split('\n')
    if lines:
        return lines[0].strip()
    return error_msg


def create_validation_error(message: str) -> ToolError:
    """
    Create a validation error for malformed or missing input.

    Args:
        message: Description of the validation failure

    Returns:
        ToolError with VALIDATION_ERROR code
    """
    return ToolError(
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        retryable=False
    )


def create_not_found_error(resource: str, resource_id) -> ToolError:
    """
    Create an error for an application, offer or candidate id that does not resolve.

    Args:
        resource: Human-readable resource name (e.g. "Application")
        resource_id: The id that was looked up

    Returns:
        ToolError with NOT_FOUND code
    """
    return ToolError(
        code=ErrorCode.NOT_FOUND,
        message=f"{resource} not found: {resource_id}",
        retryable=False
    )


def create_invalid_transition_error(current_stage: str, target_stage: str, reason: str) -> ToolError:
    """Create an error for a stage change the pipeline does not permit."""
    return ToolError(
        code=ErrorCode.INVALID_TRANSITION,
        message=f"Cannot move application from '{current_stage}' to '{target_stage}': {reason}",
        retryable=False
    )


def create_invalid_offer_state_error(offer_id, status: str, operation: str) -> ToolError:
    """Create an error for an offer mutator called in a state that forbids it."""
    return ToolError(
        code=ErrorCode.INVALID_OFFER_STATE,
        message=f"Offer {offer_id} is '{status}' and cannot be {operation}",
        retryable=False
    )


def create_unauthorized_error(message: str = "Unauthorized") -> ToolError:
    """Create an error for a portal caller whose email or token does not match."""
    return ToolError(
        code=ErrorCode.UNAUTHORIZED,
        message=message,
        retryable=False
    )


def create_conflict_error(message: str) -> ToolError:
    """
    Create an error for a lost compare-and-set.

    Conflicts are retryable: the caller should re-read the record and decide again.
    """
    return ToolError(
        code=ErrorCode.CONFLICT,
        message=message,
        retryable=True
    )


def create_downstream_degraded_error(service: str, message: str,
                                     original_error: Optional[Exception] = None) -> ToolError:
    """
    Create an error describing a failed collaborator call.

    These errors are recorded in the activity log and never returned to the
    caller of the transition that triggered them.
    """
    return ToolError(
        code=ErrorCode.DOWNSTREAM_DEGRADED,
        message=f"{service} degraded: {sanitize_stack_trace(message)}",
        retryable=True,
        original_error=original_error
    )


def create_db_not_found_error(db_path: str) -> ToolError:
    """
    Create a database not found error.

    Args:
        db_path: The database path that was not found

    Returns:
        ToolError with DB_NOT_FOUND code
    """
    sanitized_path = sanitize_path(db_path)
    return ToolError(
        code=ErrorCode.DB_NOT_FOUND,
        message=f"Database not found: {sanitized_path}",
        retryable=False
    )


def create_db_error(message: str, retryable: bool = False, original_error: Optional[Exception] = None) -> ToolError:
    """
    Create a database error.

    Args:
        message: Description of the database error
        retryable: Whether the operation can be retried
        original_error: The original exception

    Returns:
        ToolError with DB_ERROR code
    """
    sanitized_message = sanitize_sql_error(message)
    sanitized_message = sanitize_stack_trace(sanitized_message)

    return ToolError(
        code=ErrorCode.DB_ERROR,
        message=f"Database error: {sanitized_message}",
        retryable=retryable,
        original_error=original_error
    )


def create_internal_error(message: str, original_error: Optional[Exception] = None) -> ToolError:
    """
    Create an internal error for unexpected exceptions.

    Args:
        message: Description of the internal error
        original_error: The original exception

    Returns:
        ToolError with INTERNAL_ERROR code
    """
    sanitized_message = sanitize_stack_trace(message)

    return ToolError(
        code=ErrorCode.INTERNAL_ERROR,
        message=f"Internal error: {sanitized_message}",
        retryable=True,
        original_error=original_error
    )
