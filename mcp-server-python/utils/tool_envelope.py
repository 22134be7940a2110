"""
Shared error envelope and serialization for the MCP tool handlers.

Every handler is a dict-in/dict-out function. Known failures come back as
ToolError.to_dict(); pydantic validation failures are mapped to
VALIDATION_ERROR; anything else is wrapped as INTERNAL_ERROR and logged.
"""

import functools
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict

from pydantic import BaseModel, ValidationError

from models.errors import ToolError, create_internal_error
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.validation import format_timestamp

logger = logging.getLogger(__name__)


def to_payload(value: Any) -> Any:
    """Convert records, enums and datetimes into JSON-friendly values."""
    if isinstance(value, BaseModel):
        return to_payload(value.model_dump())
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(item) for item in value]
    return value


def tool_handler(name: str) -> Callable:
    """Wrap a handler so it always returns a dict, never raises."""

    def decorator(func: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Dict[str, Any]:
            try:
                return func(*args, **kwargs)

            except ValidationError as e:
                return map_pydantic_validation_error(e).to_dict()

            except ToolError as e:
                # Known tool errors are already sanitized
                if e.code.value in ("DB_ERROR", "INTERNAL_ERROR"):
                    logger.error("%s failed: %s", name, e.message)
                return e.to_dict()

            except Exception as e:
                logger.exception("Unexpected error in %s", name)
                return create_internal_error(
                    message=f"Unexpected error in {name}: {e}", original_error=e
                ).to_dict()

        return wrapper

    return decorator
