"""
Notification collaborator contract.

The pipeline only knows template keys and payload dicts; rendering and
delivery belong to whatever Notifier is injected at start-up.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Template keys the pipeline emits
APPLICATION_RECEIVED = "application_received"
STAGE_UPDATE = "stage_update"
REJECTION = "rejection"
OFFER_SENT = "offer_sent"
OFFER_ACCEPTED = "offer_accepted"

TEMPLATE_KEYS = frozenset({APPLICATION_RECEIVED, STAGE_UPDATE, REJECTION, OFFER_SENT, OFFER_ACCEPTED})


class NotificationError(Exception):
    """Raised by a Notifier when a message could not be delivered."""


class Notifier(ABC):
    """Delivers a rendered message for a template key."""

    name = "notifier"

    @abstractmethod
    def send(self, template_key: str, payload: Dict[str, Any]) -> None:
        """
        Deliver one message.

        Raises:
            NotificationError: If delivery failed
        """


class LoggingNotifier(Notifier):
    """Notifier that writes every message to the log; the default when no mail transport is wired."""

    name = "log"

    def send(self, template_key: str, payload: Dict[str, Any]) -> None:
        if template_key not in TEMPLATE_KEYS:
            raise NotificationError(f"Unknown template: {template_key}")
        logger.info(
            "Notification %s to %s (application %s)",
            template_key,
            payload.get("to", "<unknown>"),
            payload.get("application_id"),
        )
