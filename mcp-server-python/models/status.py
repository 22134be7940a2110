"""
Centralized, type-safe status definitions for the HireFlow pipeline.

This module is the single source of truth for every enumerated value stored
in the database or returned at the tool boundary:

- ``Stage``: the pipeline position of an application (the Stage Catalog order).
- ``ApplicationStatus``: the coarse projection of a stage used for reporting.
- ``OfferStatus``: the offer's own lifecycle states.
- ``OfferResponse``: the two answers a candidate can give to an offer.
- ``PublicStatus``: the candidate-safe status shown by the portal.

All Enums inherit from ``(str, Enum)`` so members compare equal to plain
strings and serialize naturally to JSON.
"""

from enum import Enum


class Stage(str, Enum):
    """Pipeline stages, declared in catalog order.

    Canonical flow:
        shortlisting -> screening -> assignment-sent -> assignment-submitted
        -> interview -> offer-sent -> offer-accepted -> hired

    ``hired``, ``rejected`` and ``withdrawn`` are absorbing.
    """

    SHORTLISTING = "shortlisting"
    SCREENING = "screening"
    ASSIGNMENT_SENT = "assignment-sent"
    ASSIGNMENT_SUBMITTED = "assignment-submitted"
    INTERVIEW = "interview"
    OFFER_SENT = "offer-sent"
    OFFER_ACCEPTED = "offer-accepted"
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class ApplicationStatus(str, Enum):
    """Coarse application status, always derived from the stage."""

    NEW = "new"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    INTERVIEWED = "interviewed"
    OFFERED = "offered"
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class OfferStatus(str, Enum):
    """Offer lifecycle states.

    ``declined`` is the candidate's own answer from the portal; ``rejected``
    is a rejection recorded by a recruiter from the console.
    """

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DECLINED = "declined"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"


class OfferResponse(str, Enum):
    """Candidate responses to a sent offer."""

    ACCEPT = "accept"
    DECLINE = "decline"


class PublicStatus(str, Enum):
    """Candidate-facing status values rendered by the portal."""

    IN_REVIEW = "in_review"
    IN_PROGRESS = "in_progress"
    ACTION_REQUIRED = "action_required"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CLOSED = "closed"
    WITHDRAWN = "withdrawn"
