"""
Transition policy for application stage changes.

This module enforces the pipeline rules shared by every caller:
- Absorbing stages (hired, rejected, withdrawn) accept no further move
- Moving to the stage the application is already in is refused
- Withdrawal is refused once an offer was accepted

Any non-absorbing stage may otherwise move to any catalog stage; recruiters
skip and revisit stages freely.
"""

from typing import Any, Dict, List, Optional

from models.errors import create_invalid_transition_error
from models.stage_catalog import ABSORBING_STAGES, WITHDRAW_BLOCKED_STAGES
from models.status import Stage


class TransitionResult:
    """Result of a transition policy check."""

    def __init__(
        self,
        allowed: bool,
        error_message: Optional[str] = None,
        warnings: Optional[List[str]] = None,
    ):
        """
        Initialize a transition result.

        Args:
            allowed: Whether the transition is allowed
            error_message: Reason the transition is blocked
            warnings: Non-blocking remarks about the transition
        """
        self.allowed = allowed
        self.error_message = error_message
        self.warnings = warnings or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary format."""
        result = {"allowed": self.allowed}
        if self.error_message:
            result["error_message"] = self.error_message
        if self.warnings:
            result["warnings"] = self.warnings
        return result


def validate_stage_transition(current_stage: Stage, target_stage: Stage) -> TransitionResult:
    """
    Validate an application stage change according to the pipeline rules.

    Rules:
    1. Absorbing current stage blocks every move
    2. target == current is blocked (no empty ledger intervals)
    3. Moving to withdrawn is blocked once the offer was accepted
    4. Everything else is allowed; moving backwards produces a warning

    Examples:
        >>> validate_stage_transition(Stage.SHORTLISTING, Stage.SCREENING).allowed
        True
        >>> validate_stage_transition(Stage.HIRED, Stage.SCREENING).allowed
        False
        >>> validate_stage_transition(Stage.INTERVIEW, Stage.INTERVIEW).allowed
        False
    """
    current_stage = Stage(current_stage)
    target_stage = Stage(target_stage)

    if current_stage in ABSORBING_STAGES:
        return TransitionResult(
            allowed=False, error_message=f"'{current_stage.value}' is a final stage"
        )

    if target_stage == current_stage:
        return TransitionResult(
            allowed=False,
            error_message=f"application is already in '{current_stage.value}'",
        )

    if target_stage == Stage.WITHDRAWN and current_stage in WITHDRAW_BLOCKED_STAGES:
        return TransitionResult(
            allowed=False, error_message="cannot withdraw at this stage"
        )

    warnings = []
    order = list(Stage)
    if target_stage not in ABSORBING_STAGES and order.index(target_stage) < order.index(current_stage):
        warnings.append(
            f"Moving backwards from '{current_stage.value}' to '{target_stage.value}'"
        )
    return TransitionResult(allowed=True, warnings=warnings)


def check_stage_transition_or_raise(current_stage: Stage, target_stage: Stage) -> TransitionResult:
    """
    Validate a stage change and raise INVALID_TRANSITION if blocked.

    Returns:
        TransitionResult if the transition is allowed

    Raises:
        ToolError: With INVALID_TRANSITION code if the transition is blocked
    """
    result = validate_stage_transition(current_stage, target_stage)
    if not result.allowed:
        raise create_invalid_transition_error(
            Stage(current_stage).value, Stage(target_stage).value, result.error_message
        )
    return result
