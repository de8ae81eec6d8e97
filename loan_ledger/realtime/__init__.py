"""Row-change feed: events, publishers and the refresh listener."""

from loan_ledger.realtime.events import TABLES, event_from_dict, event_to_dict, make_change_event
from loan_ledger.realtime.listener import ChangeListener, ConsumerStats, KafkaChangeConsumer
from loan_ledger.realtime.publisher import (
    ChangePublisher,
    KafkaChangePublisher,
    PublisherStats,
    RecordingPublisher,
)

__all__ = [
    "TABLES",
    "ChangeListener",
    "ChangePublisher",
    "ConsumerStats",
    "KafkaChangeConsumer",
    "KafkaChangePublisher",
    "PublisherStats",
    "RecordingPublisher",
    "event_from_dict",
    "event_to_dict",
    "make_change_event",
]
