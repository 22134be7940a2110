"""
Collaborators shared by the engines and the tool handlers.

Everything the pipeline calls out to is built once at start-up by
build_services and handed down explicitly; engines never look collaborators
up themselves.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from pipeline.side_effects import SideEffectQueue
from utils.notifications import LoggingNotifier, Notifier
from utils.portal_tokens import PortalTokenSigner
from utils.resume_scoring import KeywordScorer, ResumeScorer
from utils.validation import utc_now

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "system"
DEFAULT_STALE_STAGE_DAYS = 7
DEFAULT_CURRENCY = "INR"


@dataclass
class HiringServices:
    """Injected collaborators and settings for one running surface."""

    db_path: Optional[str]
    notifier: Notifier
    scorer: Optional[ResumeScorer]
    side_effects: SideEffectQueue
    portal_signer: PortalTokenSigner
    clock: Callable[[], datetime] = utc_now
    default_actor: str = DEFAULT_ACTOR
    stale_stage_days: int = DEFAULT_STALE_STAGE_DAYS
    default_currency: str = DEFAULT_CURRENCY

    def now(self) -> datetime:
        return self.clock()


def build_services(config, notifier: Optional[Notifier] = None,
                   scorer: Optional[ResumeScorer] = None) -> HiringServices:
    """
    Build the collaborators from a Config instance.

    Args:
        config: Loaded Config
        notifier: Optional notifier override (defaults to LoggingNotifier)
        scorer: Optional scorer override (defaults to KeywordScorer)
    """
    db_path = config.get_db_path_str()
    services = HiringServices(
        db_path=db_path,
        notifier=notifier or LoggingNotifier(),
        scorer=scorer or KeywordScorer(),
        side_effects=SideEffectQueue(db_path, max_workers=config.side_effect_workers),
        portal_signer=PortalTokenSigner(config.portal_secret),
        default_actor=config.default_actor,
        stale_stage_days=config.stale_stage_days,
        default_currency=config.default_currency,
    )
    logger.info(
        "Services ready: notifier=%s scorer=%s workers=%s",
        services.notifier.name,
        services.scorer.name if services.scorer else None,
        config.side_effect_workers,
    )
    return services

