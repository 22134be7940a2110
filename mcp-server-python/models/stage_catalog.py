"""
Stage Catalog: the fixed pipeline order and its projections.

Every function here is pure and total over ``Stage``. The public tables are
the only way stage values reach the candidate portal.
"""

from typing import Dict, Optional, Tuple

from models.status import ApplicationStatus, OfferStatus, PublicStatus, Stage

STAGE_ORDER: Tuple[Stage, ...] = tuple(Stage)

ABSORBING_STAGES = frozenset({Stage.HIRED, Stage.REJECTED, Stage.WITHDRAWN})

# Once an offer is accepted the candidate can no longer walk away through the portal.
WITHDRAW_BLOCKED_STAGES = frozenset({Stage.HIRED, Stage.REJECTED, Stage.OFFER_ACCEPTED})

TERMINAL_OFFER_STATUSES = frozenset({
    OfferStatus.ACCEPTED,
    OfferStatus.REJECTED,
    OfferStatus.DECLINED,
    OfferStatus.EXPIRED,
    OfferStatus.WITHDRAWN,
})

ACTIVE_OFFER_STATUSES = frozenset(set(OfferStatus) - TERMINAL_OFFER_STATUSES)

# Ledger action tag written when a candidate accepts an offer.
OFFER_ACCEPTED_ACTION = "offer_accepted"

_STATUS_BY_STAGE: Dict[Stage, ApplicationStatus] = {
    Stage.HIRED: ApplicationStatus.HIRED,
    Stage.REJECTED: ApplicationStatus.REJECTED,
    Stage.WITHDRAWN: ApplicationStatus.WITHDRAWN,
    Stage.OFFER_SENT: ApplicationStatus.OFFERED,
    Stage.OFFER_ACCEPTED: ApplicationStatus.OFFERED,
    Stage.INTERVIEW: ApplicationStatus.INTERVIEWED,
}

STAGE_LABELS: Dict[Stage, str] = {
    Stage.SHORTLISTING: "Shortlisting",
    Stage.SCREENING: "Screening Call",
    Stage.ASSIGNMENT_SENT: "Assignment Sent",
    Stage.ASSIGNMENT_SUBMITTED: "Assignment Submitted",
    Stage.INTERVIEW: "Interview",
    Stage.OFFER_SENT: "Offer Sent",
    Stage.OFFER_ACCEPTED: "Offer Accepted",
    Stage.HIRED: "Hired",
    Stage.REJECTED: "Rejected",
    Stage.WITHDRAWN: "Withdrawn",
}

PUBLIC_STAGE_LABELS: Dict[Stage, str] = {
    Stage.SHORTLISTING: "Application Review",
    Stage.SCREENING: "Initial Screening",
    Stage.ASSIGNMENT_SENT: "Assessment Sent",
    Stage.ASSIGNMENT_SUBMITTED: "Assessment Review",
    Stage.INTERVIEW: "Interview Process",
    Stage.OFFER_SENT: "Offer Extended",
    Stage.OFFER_ACCEPTED: "Offer Accepted",
    Stage.HIRED: "Hired",
    Stage.REJECTED: "Not Selected",
    Stage.WITHDRAWN: "Withdrawn",
}

PUBLIC_STAGE_STATUSES: Dict[Stage, PublicStatus] = {
    Stage.SHORTLISTING: PublicStatus.IN_REVIEW,
    Stage.SCREENING: PublicStatus.IN_PROGRESS,
    Stage.ASSIGNMENT_SENT: PublicStatus.ACTION_REQUIRED,
    Stage.ASSIGNMENT_SUBMITTED: PublicStatus.IN_REVIEW,
    Stage.INTERVIEW: PublicStatus.IN_PROGRESS,
    Stage.OFFER_SENT: PublicStatus.ACTION_REQUIRED,
    Stage.OFFER_ACCEPTED: PublicStatus.ACCEPTED,
    Stage.HIRED: PublicStatus.COMPLETED,
    Stage.REJECTED: PublicStatus.CLOSED,
    Stage.WITHDRAWN: PublicStatus.WITHDRAWN,
}

PUBLIC_STAGE_DESCRIPTIONS: Dict[Stage, str] = {
    Stage.SHORTLISTING: "Your application is being reviewed by our recruitment team.",
    Stage.SCREENING: "You have been shortlisted! We will contact you soon.",
    Stage.ASSIGNMENT_SENT: "Please complete the assessment sent to your email.",
    Stage.ASSIGNMENT_SUBMITTED: "Thank you! Our team is reviewing your submission.",
    Stage.INTERVIEW: "You are in the interview stage. Check your email for details.",
    Stage.OFFER_SENT: (
        "Congratulations! We have extended an offer to you. "
        "Please review the details below and respond."
    ),
    Stage.OFFER_ACCEPTED: "Welcome aboard! Our HR team will contact you soon.",
    Stage.HIRED: "Congratulations! You are now part of our team.",
    Stage.REJECTED: "Thank you for your interest. We encourage you to apply again.",
    Stage.WITHDRAWN: "Your application has been withdrawn.",
}


def is_absorbing(stage: Stage) -> bool:
    """Return True when no further stage change is permitted."""
    return Stage(stage) in ABSORBING_STAGES


def is_terminal_offer(status: OfferStatus) -> bool:
    """Return True when no offer mutator is permitted."""
    return OfferStatus(status) in TERMINAL_OFFER_STATUSES


def project_status(stage: Stage, action: Optional[str] = None) -> ApplicationStatus:
    """
    Derive the coarse application status for a stage.

    The action tag of the ledger entry being opened only matters for
    ``offer-accepted``: an entry opened by the candidate accepting the offer
    projects to ``hired``, while a recruiter moving the card there manually
    keeps ``offered`` until the hire is confirmed.

    Args:
        stage: The stage being entered
        action: Ledger action tag of the entry being opened

    Returns:
        The derived ApplicationStatus
    """
    stage = Stage(stage)
    if stage == Stage.OFFER_ACCEPTED and action == OFFER_ACCEPTED_ACTION:
        return ApplicationStatus.HIRED
    return _STATUS_BY_STAGE.get(stage, ApplicationStatus.UNDER_REVIEW)


def stage_label(stage: Stage) -> str:
    """Internal console label for a stage."""
    return STAGE_LABELS[Stage(stage)]


def public_stage_label(stage: Stage) -> str:
    """Candidate-safe label for a stage."""
    return PUBLIC_STAGE_LABELS[Stage(stage)]


def public_stage_status(stage: Stage) -> PublicStatus:
    """Candidate-safe status for a stage."""
    return PUBLIC_STAGE_STATUSES[Stage(stage)]


def public_stage_description(stage: Stage) -> str:
    """Candidate-safe explanation of what a stage means for the candidate."""
    return PUBLIC_STAGE_DESCRIPTIONS[Stage(stage)]
