"""
Side-effect tasks scheduled after a transition commits.

Each task re-reads what it needs from the store, calls one collaborator and
returns the TaskOutcome the queue records in the activity log.
"""

import logging
from typing import Any, Dict, Optional

from db.hiring_reader import fetch_application, fetch_candidate, fetch_job, get_connection
from db.hiring_writer import HiringWriter
from models.errors import create_downstream_degraded_error
from pipeline.activity_log import ActivityAction
from pipeline.services import HiringServices
from pipeline.side_effects import TaskOutcome
from utils.resume_scoring import profile_strength, quick_score

logger = logging.getLogger(__name__)

# Strength labels used when the scorer failed and the keyword fallback ran
FALLBACK_STRONG_THRESHOLD = 70


def _notification_payload(services: HiringServices, application_id: int) -> Dict[str, Any]:
    with get_connection(services.db_path) as conn:
        application = fetch_application(conn, application_id)
        if application is None:
            raise LookupError(f"application {application_id} disappeared")
        candidate = fetch_candidate(conn, application.candidate_id)
        job = fetch_job(conn, application.job_id)
    return {
        "application_id": application_id,
        "reference_number": application.reference_number,
        "stage": application.stage.value,
        "to": candidate.email if candidate else None,
        "candidate_name": candidate.name if candidate else None,
        "job_title": job.title if job else None,
    }


def run_notification(
    services: HiringServices,
    template_key: str,
    application_id: int,
    extra: Optional[Dict[str, Any]] = None,
) -> TaskOutcome:
    """Send one templated notification and describe the result."""
    metadata = {"template": template_key, "notifier": services.notifier.name}
    try:
        payload = _notification_payload(services, application_id)
        payload.update(extra or {})
        services.notifier.send(template_key, payload)
    except Exception as e:
        degraded = create_downstream_degraded_error(services.notifier.name, str(e), original_error=e)
        return TaskOutcome(
            action=ActivityAction.NOTIFICATION_FAILED,
            description=f"Notification '{template_key}' failed: {degraded.message}",
            metadata={**metadata, "code": degraded.code.value, "error": str(e)},
        )
    return TaskOutcome(
        action=ActivityAction.NOTIFICATION_SENT,
        description=f"Notification '{template_key}' sent to {payload.get('to')}",
        metadata=metadata,
    )


def enqueue_notification(
    services: HiringServices,
    template_key: str,
    application_id: int,
    extra: Optional[Dict[str, Any]] = None,
):
    """Schedule a notification on the side-effect queue."""
    return services.side_effects.enqueue(
        "notify",
        application_id,
        lambda: run_notification(services, template_key, application_id, extra),
        failure_action=ActivityAction.NOTIFICATION_FAILED,
    )


def run_scoring(services: HiringServices, application_id: int) -> TaskOutcome:
    """
    Score an application's resume against its job and store the result.

    Falls back to quick_score when the scorer fails; empty resume text
    disables scoring altogether.
    """
    with get_connection(services.db_path) as conn:
        application = fetch_application(conn, application_id)
        if application is None:
            raise LookupError(f"application {application_id} disappeared")
        candidate = fetch_candidate(conn, application.candidate_id)
        job = fetch_job(conn, application.job_id)

    resume_text = (candidate.resume_text or "").strip() if candidate else ""
    if not resume_text or job is None:
        return TaskOutcome(
            action=ActivityAction.SCORING_DEGRADED,
            description="Resume scoring skipped: no resume text or job details",
            metadata={"reason": "missing_input"},
        )

    degraded_reason = None
    analysis: Dict[str, Any] = {}
    if services.scorer is None:
        degraded_reason = "no scorer configured"
    else:
        try:
            analysis = dict(services.scorer.score(resume_text, job))
            score = float(analysis["score"])
            strength = analysis.get("profile_strength") or profile_strength(score)
        except Exception as e:
            logger.warning("Scorer %s failed for application %s: %s", services.scorer.name, application_id, e)
            degraded_reason = str(e)

    if degraded_reason is not None:
        score = float(quick_score(resume_text, job.skills))
        strength = "Good" if score >= FALLBACK_STRONG_THRESHOLD else "Fair"
        analysis = {"score": score, "method": "quick_score", "degraded_reason": degraded_reason}

    with HiringWriter(services.db_path) as writer:
        writer.update_application_scoring(application_id, score, strength, analysis, services.now())
        writer.commit()

    if degraded_reason is not None:
        return TaskOutcome(
            action=ActivityAction.SCORING_DEGRADED,
            description=f"Scoring service unavailable, fallback score {score:g} applied",
            metadata={"score": score, "profile_strength": strength, "error": degraded_reason},
        )
    return TaskOutcome(
        action=ActivityAction.AI_SCORED,
        description=f"Resume scored {score:g} ({strength})",
        metadata={"score": score, "profile_strength": strength},
    )


def enqueue_scoring(services: HiringServices, application_id: int):
    """Schedule resume scoring on the side-effect queue."""
    return services.side_effects.enqueue(
        "score",
        application_id,
        lambda: run_scoring(services, application_id),
        failure_action=ActivityAction.SCORING_DEGRADED,
    )
