"""Change-feed consumer that keeps cached loan statuses fresh."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from confluent_kafka import Consumer, KafkaError, KafkaException

from loan_ledger.config import KafkaConfig
from loan_ledger.exceptions import EntityNotFoundError
from loan_ledger.models import ChangeAction, ChangeEvent
from loan_ledger.realtime.events import TABLES, event_from_dict

if TYPE_CHECKING:
    from loan_ledger.service import LedgerService

logger = logging.getLogger(__name__)


class ChangeListener:
    """Map row-change events to loan refreshes.

    Payment, receipt and loan events refresh the loan they touch. Client
    events and loan deletions need no refresh. Refreshing is idempotent, so
    duplicated or reordered events are harmless.
    """

    def __init__(self, service: LedgerService) -> None:
        self.service = service

    def loan_to_refresh(self, event: ChangeEvent) -> str | None:
        """Return the loan id an event requires refreshing, if any."""
        if event.table == "clients":
            return None
        if event.table == "loans":
            if event.action == ChangeAction.DELETE:
                return None
            return event.loan_id or event.record_id
        return event.loan_id

    def handle(self, event: ChangeEvent) -> bool:
        """Apply one event; return whether a loan was refreshed."""
        loan_id = self.loan_to_refresh(event)
        if loan_id is None:
            return False
        try:
            self.service.refresh_loan(loan_id)
        except EntityNotFoundError:
            logger.debug("Skipping %s for unknown loan %s", event.event_type, loan_id)
            return False
        return True


@dataclass
class ConsumerStats:
    received: int = 0
    refreshed: int = 0
    skipped: int = 0
    invalid: int = 0


class KafkaChangeConsumer:
    """Poll the change topics and hand events to a listener.

    No ordering across topics is assumed; each event triggers a full
    recompute of the affected loan.
    """

    def __init__(self, config: KafkaConfig | str, listener: ChangeListener) -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.listener = listener
        self.consumer = Consumer(config.consumer_dict())
        self.topics = [config.topic_for(table) for table in TABLES]
        self.consumer.subscribe(self.topics)
        self.stats = ConsumerStats()
        self._running = False

    def _decode(self, msg: Any) -> ChangeEvent | None:
        try:
            return event_from_dict(json.loads(msg.value()))
        except (ValueError, TypeError) as e:
            self.stats.invalid += 1
            logger.warning("Skipping undecodable message on %s: %s", msg.topic(), e)
            return None

    def poll_once(self, timeout: float = 1.0) -> bool:
        """Process at most one message; return whether one was received."""
        msg = self.consumer.poll(timeout)
        if msg is None:
            return False
        if msg.error():
            if msg.error().code() == KafkaError._PARTITION_EOF:
                return False
            raise KafkaException(msg.error())

        self.stats.received += 1
        event = self._decode(msg)
        if event is None:
            return True
        if self.listener.handle(event):
            self.stats.refreshed += 1
        else:
            self.stats.skipped += 1
        return True

    def run(self, max_messages: int | None = None, timeout: float = 1.0) -> ConsumerStats:
        """Consume until stopped or ``max_messages`` have been received."""
        self._running = True
        logger.info("Listening for changes on %s", ", ".join(self.topics))
        try:
            while self._running:
                self.poll_once(timeout)
                if max_messages is not None and self.stats.received >= max_messages:
                    break
        finally:
            self.close()
        return self.stats

    def stop(self) -> None:
        self._running = False

    def close(self) -> None:
        self.consumer.close()
        logger.info(
            "Change consumer closed: received=%d, refreshed=%d, skipped=%d, invalid=%d",
            self.stats.received,
            self.stats.refreshed,
            self.stats.skipped,
            self.stats.invalid,
        )
