"""Change event publishers."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from loan_ledger.config import KafkaConfig
from loan_ledger.exceptions import PublishError
from loan_ledger.models import ChangeEvent
from loan_ledger.realtime.events import event_to_dict

logger = logging.getLogger(__name__)


class ChangePublisher(ABC):
    """Destination for row-change events."""

    @abstractmethod
    def publish(self, event: ChangeEvent) -> None:
        """Publish one event; raise ``PublishError`` on failure."""

    def flush(self, timeout: float = 30.0) -> None:
        """Wait for pending events."""

    def close(self) -> None:
        """Flush and release resources."""
        self.flush()


class RecordingPublisher(ChangePublisher):
    """Keep published events in memory (local runs and tests)."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    def publish(self, event: ChangeEvent) -> None:
        self.events.append(event)


@dataclass
class PublisherStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0


class KafkaChangePublisher(ChangePublisher):
    """Publish change events to ``<topic_prefix>.<table>`` Kafka topics.

    Events are keyed by loan id so every change of one loan lands on the same
    partition.
    """

    def __init__(self, config: KafkaConfig | str) -> None:
        """Initialize the publisher.

        Parameters
        ----------
        config : KafkaConfig | str
            Kafka configuration or bootstrap servers string.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.producer = Producer(config.to_dict())
        self.stats = PublisherStats()

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Change event delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def publish(self, event: ChangeEvent) -> None:
        topic = self.config.topic_for(event.table)
        key = event.loan_id or event.record_id
        value = json.dumps(event_to_dict(event), ensure_ascii=False, default=str).encode("utf-8")
        try:
            self.producer.produce(
                topic=topic,
                key=key.encode("utf-8") if key else None,
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as e:
            self.stats.failed += 1
            logger.error("Could not enqueue %s for %s: %s", event.event_type, topic, e)
            raise PublishError(f"Could not publish {event.event_type}: {e}") from e
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        logger.info(
            "Change publisher closed: sent=%d, delivered=%d, failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )
