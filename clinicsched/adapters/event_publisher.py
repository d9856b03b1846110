"""
Event publisher that writes domain events to the application log.

Used where no message broker is wired in; each event is logged as a single
JSON payload so it can still be picked up by log shipping.
"""

import json
import logging

from ..domain.events import DomainEvent

logger = logging.getLogger(__name__)


class LoggingEventPublisher:
    """Publishes events by logging their payload."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def publish(self, event: DomainEvent) -> None:
        logger.log(
            self.level,
            "%s for appointment %s: %s",
            event.event_type,
            event.aggregate_id,
            json.dumps(event.to_dict(), sort_keys=True),
        )
