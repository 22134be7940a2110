"""
Resume scoring collaborator contract and its deterministic fallback.

The pipeline never depends on how a score is produced. A ResumeScorer is
injected at start-up; when it fails (or none is configured) the keyword
overlap heuristic in quick_score is used instead.
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from models.records import JobOpening

EXPERIENCE_KEYWORDS = ("years", "experience", "worked", "developed", "managed")

BASE_SCORE = 50
SKILL_WEIGHT = 30
EXPERIENCE_POINTS_PER_KEYWORD = 4
EXPERIENCE_CAP = 20
MAX_SCORE = 100

# (minimum score, label), checked top-down
PROFILE_STRENGTH_BANDS = (
    (90, "Exceptional"),
    (80, "Strong"),
    (70, "Good"),
    (60, "Fair"),
)


class ResumeScorer(ABC):
    """Scores a resume against a job opening."""

    name = "resume-scorer"

    @abstractmethod
    def score(self, resume_text: str, job: JobOpening) -> Dict[str, Any]:
        """
        Return at least ``{"score": <0-100>}``; extra keys are kept as analysis.

        Raises:
            Exception: Any failure; the caller falls back to quick_score
        """


class KeywordScorer(ResumeScorer):
    """Scorer that only runs the deterministic fallback."""

    name = "keyword-overlap"

    def score(self, resume_text: str, job: JobOpening) -> Dict[str, Any]:
        return {"score": quick_score(resume_text, job.skills), "method": self.name}


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def quick_score(resume_text: str, skills: Optional[str]) -> int:
    """
    Keyword-overlap score between a resume and a comma separated skill list.

    Base 50, plus up to 30 for the share of listed skills found in the text,
    plus 4 per experience keyword (at most 20), capped at 100.

    Examples:
        >>> quick_score("", None)
        50
        >>> quick_score("python developer with 5 years experience", "python, go")
        73
    """
    score = float(BASE_SCORE)
    resume_lower = (resume_text or "").lower()

    required = (skills or "").lower().split(",")
    matched = sum(1 for skill in required if skill.strip() and skill.strip() in resume_lower)
    if required:
        score += (matched / len(required)) * SKILL_WEIGHT

    experience_hits = sum(1 for keyword in EXPERIENCE_KEYWORDS if keyword in resume_lower)
    score += min(experience_hits * EXPERIENCE_POINTS_PER_KEYWORD, EXPERIENCE_CAP)

    return min(_round_half_up(score), MAX_SCORE)


def profile_strength(score: float) -> str:
    """Map a 0-100 score to its profile strength label."""
    for minimum, label in PROFILE_STRENGTH_BANDS:
        if score >= minimum:
            return label
    return "Weak"
