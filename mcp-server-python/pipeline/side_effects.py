"""
Post-commit side-effect queue.

Notifications and resume scoring run on a small thread pool after the
transition that triggered them has committed. Callers never wait on them
and their failures never reach the caller: every outcome is written to the
Activity Event Log instead.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from db.hiring_writer import HiringWriter
from models.errors import ToolError, create_downstream_degraded_error
from pipeline import activity_log
from pipeline.activity_log import ActivityAction
from utils.validation import utc_now

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 2


@dataclass
class TaskOutcome:
    """What a finished side effect wants recorded in the activity log."""

    action: ActivityAction
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class SideEffectQueue:
    """
    Bounded worker pool for post-commit tasks.

    Usage:
        queue = SideEffectQueue(db_path)
        queue.enqueue("notify", app_id, task_fn, failure_action=ActivityAction.NOTIFICATION_FAILED)
        queue.drain()
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        max_workers: int = DEFAULT_WORKERS,
        clock: Callable = utc_now,
    ):
        self.db_path = db_path
        self.clock = clock
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers), thread_name_prefix="hireflow-side-effect"
        )
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def enqueue(
        self,
        kind: str,
        application_id: int,
        task: Callable[[], TaskOutcome],
        failure_action: ActivityAction,
    ) -> Future:
        """
        Schedule ``task`` and return its future.

        ``failure_action`` is recorded if the task raises instead of returning
        an outcome.
        """
        future = self._executor.submit(self._run, kind, application_id, task, failure_action)
        with self._lock:
            self._pending = [pending for pending in self._pending if not pending.done()]
            self._pending.append(future)
        return future

    def _run(
        self,
        kind: str,
        application_id: int,
        task: Callable[[], TaskOutcome],
        failure_action: ActivityAction,
    ) -> TaskOutcome:
        try:
            outcome = task()
        except Exception as e:
            degraded = create_downstream_degraded_error(kind, str(e), original_error=e)
            logger.warning("Side effect %s failed for application %s: %s", kind, application_id, e)
            outcome = TaskOutcome(
                action=failure_action,
                description=degraded.message,
                metadata={"kind": kind, "code": degraded.code.value, "error": str(e)},
            )

        if outcome.action in (ActivityAction.NOTIFICATION_FAILED, ActivityAction.SCORING_DEGRADED):
            logger.warning("%s for application %s: %s", outcome.action.value, application_id, outcome.description)

        try:
            with HiringWriter(self.db_path) as writer:
                activity_log.record(
                    writer,
                    application_id,
                    outcome.action,
                    outcome.description,
                    self.clock(),
                    outcome.metadata,
                )
                writer.commit()
        except ToolError as e:
            logger.error(
                "Could not record %s outcome for application %s: %s", kind, application_id, e.message
            )
        return outcome

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until every task scheduled so far has finished."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_tasks)
