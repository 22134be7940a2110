"""
Stage Transition Engine.

Validates and applies application-level stage changes. Every change is one
read-modify-write: the aggregate is read through a read-only connection,
checked against the stage policy, then written with a compare-and-set on its
version inside a single HiringWriter transaction. The losing side of a race
gets CONFLICT and nothing of its change is persisted.

Offer, rejection and withdrawal flows reuse apply_transition so the ledger
rules live in exactly one place.
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from db.hiring_reader import (
    fetch_application,
    fetch_candidate,
    fetch_job,
    fetch_open_applications,
    get_connection,
)
from db.hiring_writer import HiringWriter
from models.errors import (
    create_conflict_error,
    create_invalid_transition_error,
    create_not_found_error,
)
from models.records import Application, Comment
from models.stage_catalog import is_absorbing, project_status
from models.status import ApplicationStatus, Stage
from pipeline import activity_log
from pipeline.activity_log import ActivityAction
from pipeline.services import HiringServices
from pipeline.tasks import enqueue_notification, enqueue_scoring
from utils import ledger
from utils.notifications import APPLICATION_RECEIVED, REJECTION, STAGE_UPDATE
from utils.public_timeline import build_console_journey
from utils.stage_policy import TransitionResult, check_stage_transition_or_raise
from utils.validation import (
    MAX_COMMENT_LENGTH,
    format_timestamp,
    validate_actor,
    validate_email,
    validate_optional_text,
    validate_positive_id,
    validate_required_text,
    validate_stage,
)

logger = logging.getLogger(__name__)

DEFAULT_WITHDRAW_REASON = "Candidate withdrew application"

REFERENCE_PREFIX = "HF"
_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_reference_number(now: datetime) -> str:
    """Human-friendly application reference, e.g. HF-20260204-K3QZ."""
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(4))
    return f"{REFERENCE_PREFIX}-{now.strftime('%Y%m%d')}-{suffix}"


def load_application(db_path: Optional[str], application_id: int) -> Application:
    """
    Read an application snapshot.

    Raises:
        ToolError: NOT_FOUND if the id does not resolve
    """
    with get_connection(db_path) as conn:
        application = fetch_application(conn, application_id)
    if application is None:
        raise create_not_found_error("Application", application_id)
    return application


class StageTransitionEngine:
    """Applies stage changes to applications and keeps their ledgers consistent."""

    def __init__(self, services: HiringServices):
        self.services = services

    # ------------------------------------------------------------------
    # Core transition
    # ------------------------------------------------------------------

    def apply_transition(
        self,
        writer: HiringWriter,
        application: Application,
        target_stage: Stage,
        actor: str,
        now: datetime,
        notes: Optional[str] = None,
        action: Optional[str] = None,
        extra_fields: Optional[Dict[str, Any]] = None,
        activity_action: ActivityAction = ActivityAction.STAGE_CHANGED,
        activity_description: Optional[str] = None,
        activity_metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Application, TransitionResult]:
        """
        Write one stage change inside ``writer``'s transaction.

        Closes the open ledger entry, appends the new one, updates stage,
        status and counters with a compare-and-set, and records one activity
        entry. The caller commits.

        Returns:
            (updated application, policy result with warnings)

        Raises:
            ToolError: INVALID_TRANSITION if the policy refuses the move,
                CONFLICT if the application changed since it was read
        """
        target_stage = Stage(target_stage)
        result = check_stage_transition_or_raise(application.stage, target_stage)

        status = project_status(target_stage, action)
        fields: Dict[str, Any] = {
            "stage": target_stage,
            "status": status,
            "days_in_stage": 0,
            "needs_attention": False,
            "last_activity_at": now,
        }
        fields.update(extra_fields or {})

        new_version = writer.compare_and_set_application(
            application.id,
            application.version,
            fields,
            now,
            expected_stage=application.stage,
        )

        history = ledger.advance(application.stage_history, target_stage, now, actor, notes, action)
        for before, after in zip(application.stage_history, history):
            if before.is_open:
                writer.close_history_entry(after)
        opened = history[-1]
        history[-1] = opened.model_copy(update={"id": writer.insert_history_entry(application.id, opened)})

        metadata = {
            "old_stage": application.stage.value,
            "new_stage": target_stage.value,
            "moved_by": actor,
        }
        metadata.update(activity_metadata or {})
        activity_log.record(
            writer,
            application.id,
            activity_action,
            activity_description
            or f"Moved from {application.stage.value} to {target_stage.value}",
            now,
            metadata,
        )

        updated = application.model_copy(
            update={
                **fields,
                "version": new_version,
                "updated_at": now,
                "stage_history": history,
            }
        )
        logger.info(
            "Application %s moved %s -> %s by %s",
            application.id,
            application.stage.value,
            target_stage.value,
            actor,
        )
        return updated, result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def move_to_stage(
        self,
        application_id: int,
        target_stage: Any,
        actor: Optional[str] = None,
        notes: Optional[str] = None,
        action: Optional[str] = None,
        expected_stage: Any = None,
        notify: bool = False,
    ) -> Tuple[Application, TransitionResult]:
        """
        Move an application to ``target_stage``.

        ``expected_stage`` lets a caller assert what stage it saw; a mismatch
        is a CONFLICT rather than a silent overwrite.
        """
        application_id = validate_positive_id(application_id, "application_id")
        target = validate_stage(target_stage)
        actor = validate_actor(actor, self.services.default_actor)
        notes = validate_optional_text(notes, "notes")
        action = validate_optional_text(action, "action", max_length=64)
        expected = validate_stage(expected_stage) if expected_stage is not None else None

        application = load_application(self.services.db_path, application_id)
        if expected is not None and application.stage != expected:
            raise create_conflict_error(
                f"Application {application_id} is in '{application.stage.value}', "
                f"not '{expected.value}'"
            )

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            updated, result = self.apply_transition(
                writer, application, target, actor, now, notes=notes, action=action
            )
            writer.commit()

        if notify:
            enqueue_notification(self.services, STAGE_UPDATE, application_id)
        return updated, result

    def reject(
        self,
        application_id: int,
        reason: Any,
        actor: Optional[str] = None,
        notify: bool = False,
    ) -> Application:
        """Force an application to 'rejected' with a mandatory reason."""
        application_id = validate_positive_id(application_id, "application_id")
        reason = validate_required_text(reason, "reason")
        actor = validate_actor(actor, self.services.default_actor)

        application = load_application(self.services.db_path, application_id)
        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            updated, _ = self.apply_transition(
                writer,
                application,
                Stage.REJECTED,
                actor,
                now,
                notes=reason,
                action="rejected",
                extra_fields={"rejection_reason": reason, "rejection_date": now},
                activity_action=ActivityAction.APPLICATION_REJECTED,
                activity_description=f"Application rejected by {actor}. Reason: {reason}",
                activity_metadata={"reason": reason, "notified": notify},
            )
            comment = Comment(
                text=f"Application rejected. Reason: {reason}",
                author=actor,
                timestamp=now,
                stage=application.stage.value,
            )
            writer.insert_comment(application_id, comment)
            writer.commit()

        if notify:
            enqueue_notification(self.services, REJECTION, application_id, {"reason": reason})
        return updated.model_copy(update={"comments": [*updated.comments, comment]})

    def withdraw(
        self,
        application_id: int,
        reason: Any = None,
        actor: Optional[str] = None,
        withdrawn_by: str = "console",
    ) -> Application:
        """Force an application to 'withdrawn' unless the offer was accepted or it is already closed."""
        application_id = validate_positive_id(application_id, "application_id")
        reason = validate_optional_text(reason, "reason") or DEFAULT_WITHDRAW_REASON
        actor = validate_actor(actor, self.services.default_actor)

        application = load_application(self.services.db_path, application_id)
        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            updated, _ = self.apply_transition(
                writer,
                application,
                Stage.WITHDRAWN,
                actor,
                now,
                notes=reason,
                action="withdrawn",
                extra_fields={"withdrawn_reason": reason, "withdrawn_at": now},
                activity_action=ActivityAction.APPLICATION_WITHDRAWN,
                activity_description=f"Application withdrawn. Reason: {reason}",
                activity_metadata={"reason": reason, "withdrawn_by": withdrawn_by},
            )
            writer.commit()
        return updated

    def create_application(
        self,
        candidate_id: int,
        job_id: int,
        actor: Optional[str] = None,
        referral_source: Any = None,
        notify: bool = False,
    ) -> Application:
        """
        Create an application at 'shortlisting' with one open ledger entry.

        Raises:
            ToolError: NOT_FOUND for an unknown candidate or job,
                CONFLICT if the candidate already applied to the job
        """
        candidate_id = validate_positive_id(candidate_id, "candidate_id")
        job_id = validate_positive_id(job_id, "job_id")
        actor = validate_actor(actor, self.services.default_actor)
        referral_source = validate_optional_text(referral_source, "referral_source", max_length=200)

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            application_id = self._insert_application(
                writer, candidate_id, job_id, actor, referral_source, now
            )
            writer.commit()

        self._after_create(application_id, notify)
        return load_application(self.services.db_path, application_id)

    def submit_application(
        self,
        name: Any,
        email: Any,
        job_id: int,
        phone: Any = None,
        resume_text: Any = None,
        resume_key: Any = None,
        referral_source: Any = None,
    ) -> Application:
        """
        Public apply: find or create the candidate by email, then create the
        application in the same transaction. An unauthenticated caller never
        changes an existing candidate's profile.
        """
        name = validate_required_text(name, "name", max_length=200)
        email = validate_email(email)
        job_id = validate_positive_id(job_id, "job_id")
        phone = validate_optional_text(phone, "phone", max_length=40)
        resume_text = validate_optional_text(resume_text, "resume_text", max_length=100000)
        resume_key = validate_optional_text(resume_key, "resume_key", max_length=500)
        referral_source = validate_optional_text(referral_source, "referral_source", max_length=200)

        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            candidate_id = writer.upsert_candidate(
                name,
                email,
                now,
                phone=phone,
                resume_text=resume_text,
                resume_key=resume_key,
                refresh_existing=False,
            )
            application_id = self._insert_application(
                writer, candidate_id, job_id, None, referral_source, now
            )
            writer.commit()

        self._after_create(application_id, notify=True)
        return load_application(self.services.db_path, application_id)

    def _insert_application(
        self,
        writer: HiringWriter,
        candidate_id: int,
        job_id: int,
        actor: Optional[str],
        referral_source: Optional[str],
        now: datetime,
    ) -> int:
        conn = writer.conn
        candidate = fetch_candidate(conn, candidate_id)
        if candidate is None:
            raise create_not_found_error("Candidate", candidate_id)
        actor = actor or candidate.name
        job = fetch_job(conn, job_id)
        if job is None:
            raise create_not_found_error("Job", job_id)

        existing = conn.execute(
            "SELECT id FROM applications WHERE candidate_id = ? AND job_id = ?",
            (candidate_id, job_id),
        ).fetchone()
        if existing is not None:
            raise create_conflict_error(
                f"Candidate {candidate_id} already applied to job {job_id} "
                f"(application {existing['id']})"
            )

        application_id = writer.insert_application(
            {
                "candidate_id": candidate_id,
                "job_id": job_id,
                "stage": Stage.SHORTLISTING,
                "status": ApplicationStatus.UNDER_REVIEW,
                "reference_number": generate_reference_number(now),
                "referral_source": referral_source,
                "applied_at": now,
                "last_activity_at": now,
            },
            now,
        )
        writer.insert_history_entry(
            application_id, ledger.open_entry(Stage.SHORTLISTING, now, actor, None, "applied")
        )
        activity_log.record(
            writer,
            application_id,
            ActivityAction.APPLICATION_SUBMITTED,
            f"New application received from {candidate.name} for {job.title}",
            now,
            {"candidate_id": candidate_id, "job_id": job_id, "new_stage": Stage.SHORTLISTING.value},
        )
        logger.info("Application %s created for candidate %s, job %s", application_id, candidate_id, job_id)
        return application_id

    def _after_create(self, application_id: int, notify: bool) -> None:
        enqueue_scoring(self.services, application_id)
        if notify:
            enqueue_notification(self.services, APPLICATION_RECEIVED, application_id)

    def add_comment(
        self,
        application_id: int,
        text: Any,
        author: Optional[str] = None,
        stage: Any = None,
    ) -> Application:
        """Append a comment; the stage defaults to the current one."""
        application_id = validate_positive_id(application_id, "application_id")
        text = validate_required_text(text, "text", max_length=MAX_COMMENT_LENGTH)
        author = validate_actor(author, self.services.default_actor)

        application = load_application(self.services.db_path, application_id)
        comment_stage = validate_stage(stage) if stage is not None else application.stage
        now = self.services.now()
        comment = Comment(text=text, author=author, timestamp=now, stage=comment_stage.value)

        with HiringWriter(self.services.db_path) as writer:
            new_version = writer.compare_and_set_application(
                application_id, application.version, {"last_activity_at": now}, now
            )
            writer.insert_comment(application_id, comment)
            activity_log.record(
                writer,
                application_id,
                ActivityAction.COMMENT_ADDED,
                f"{author} added a comment",
                now,
                {"stage": comment_stage.value},
            )
            writer.commit()

        return application.model_copy(
            update={
                "comments": [*application.comments, comment],
                "last_activity_at": now,
                "updated_at": now,
                "version": new_version,
            }
        )

    def assign(self, application_id: int, assignee: Any, actor: Optional[str] = None) -> Application:
        """Set the recruiter responsible for an application."""
        application_id = validate_positive_id(application_id, "application_id")
        assignee = validate_required_text(assignee, "assignee", max_length=120)
        actor = validate_actor(actor, self.services.default_actor)

        application = load_application(self.services.db_path, application_id)
        now = self.services.now()
        with HiringWriter(self.services.db_path) as writer:
            new_version = writer.compare_and_set_application(
                application_id,
                application.version,
                {"assigned_to": assignee, "last_activity_at": now},
                now,
            )
            activity_log.record(
                writer,
                application_id,
                ActivityAction.APPLICATION_ASSIGNED,
                f"Assigned to {assignee} by {actor}",
                now,
                {"assigned_to": assignee, "previous": application.assigned_to},
            )
            writer.commit()

        return application.model_copy(
            update={
                "assigned_to": assignee,
                "last_activity_at": now,
                "updated_at": now,
                "version": new_version,
            }
        )

    def get_application(self, application_id: int) -> Application:
        application_id = validate_positive_id(application_id, "application_id")
        return load_application(self.services.db_path, application_id)

    def build_journey(self, application_id: int) -> Dict[str, Any]:
        """Console timeline merging ledger, comments and activity."""
        application = self.get_application(application_id)
        activities = activity_log.list_activity(application.id, self.services.db_path)
        return build_console_journey(application, activities, self.services.now())

    def refresh_days_in_stage(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Recompute days_in_stage for every open application and flag stale ones.

        Touches neither the ledger nor the stage. An application that
        transitions while the sweep runs keeps the values its transition wrote.
        """
        now = now or self.services.now()
        with get_connection(self.services.db_path) as conn:
            applications = fetch_open_applications(conn)

        flagged: List[int] = []
        updated = 0
        with HiringWriter(self.services.db_path) as writer:
            for application in applications:
                entry = ledger.current_entry(application.stage_history)
                if entry is None:
                    logger.warning("Application %s has no open ledger entry", application.id)
                    continue
                days = ledger.elapsed_whole_days(entry.entered_at, now)
                stale = days > self.services.stale_stage_days
                if not writer.update_stage_age(
                    application.id, application.version, application.stage, days, stale
                ):
                    logger.info("Application %s changed during the stage-age sweep", application.id)
                    continue
                updated += 1
                if stale:
                    flagged.append(application.id)
            writer.commit()

        logger.info("Stage ages refreshed: %s applications, %s need attention", updated, len(flagged))
        return {
            "refreshed_at": format_timestamp(now),
            "updated_count": updated,
            "needs_attention": flagged,
        }


def ensure_not_absorbing(application: Application, target: Stage) -> None:
    """Raise INVALID_TRANSITION early for a closed application."""
    if is_absorbing(application.stage):
        raise create_invalid_transition_error(
            application.stage.value, Stage(target).value, f"'{application.stage.value}' is a final stage"
        )
