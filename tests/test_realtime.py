"""Tests for the change feed: events, publishers, listener and consumer."""

import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from confluent_kafka import KafkaException
from conftest import TODAY, make_loan, make_payment

from loan_ledger.config import KafkaConfig
from loan_ledger.exceptions import PublishError, ReferentialIntegrityError
from loan_ledger.models import ChangeAction, Client, LoanStatus, PaymentKind
from loan_ledger.realtime import (
    ChangeListener,
    KafkaChangeConsumer,
    KafkaChangePublisher,
    RecordingPublisher,
    event_from_dict,
    event_to_dict,
    make_change_event,
)
from loan_ledger.service import LedgerService
from loan_ledger.store import InMemoryLedgerStore, PublishingStore


class TestEvents:
    """Tests for change event construction and decoding."""

    def test_make_change_event(self) -> None:
        """Test the event envelope."""
        event = make_change_event("payments", ChangeAction.INSERT, "pay-1", loan_id="loan-001", data={"amount": "10"})

        assert event.event_type == "payments.insert"
        assert event.loan_id == "loan-001"
        assert len(event.event_id) == 32
        assert event.event_time.tzinfo is not None

    def test_unknown_table(self) -> None:
        """Test that unknown tables are rejected."""
        with pytest.raises(ValueError):
            make_change_event("pix_keys", ChangeAction.INSERT, "k1")

    def test_dict_round_trip(self) -> None:
        """Test event encoding and decoding."""
        event = make_change_event("loans", ChangeAction.UPDATE, "loan-001", loan_id="loan-001", data={"status": "completed"})

        assert event_from_dict(json.loads(json.dumps(event_to_dict(event)))) == event

    def test_missing_field(self) -> None:
        """Test that incomplete payloads raise ValueError."""
        with pytest.raises(ValueError, match="Missing event field"):
            event_from_dict({"event_id": "x"})


class TestPublishingStore:
    """Tests for the publishing store decorator."""

    @pytest.fixture
    def recorder(self) -> RecordingPublisher:
        return RecordingPublisher()

    @pytest.fixture
    def publishing(self, store: InMemoryLedgerStore, recorder: RecordingPublisher) -> PublishingStore:
        return PublishingStore(store, recorder)

    def test_writes_emit_events(self, publishing: PublishingStore, recorder: RecordingPublisher, sample_client: Client) -> None:
        """Test one event per successful write."""
        publishing.add_client(sample_client)
        publishing.add_loan(make_loan())
        publishing.add_payment(make_payment("100", PaymentKind.FULL))
        publishing.update_loan("loan-001", {"status": LoanStatus.COMPLETED})

        assert [e.event_type for e in recorder.events] == [
            "clients.insert",
            "loans.insert",
            "payments.insert",
            "loans.update",
        ]
        assert recorder.events[2].loan_id == "loan-001"
        assert recorder.events[3].data["status"] == "completed"

    def test_reads_emit_nothing(self, publishing: PublishingStore, recorder: RecordingPublisher, sample_client: Client) -> None:
        """Test that reads pass through silently."""
        publishing.add_client(sample_client)
        recorder.events.clear()

        publishing.get_client("client-001")
        publishing.list_loans()
        publishing.summary()

        assert recorder.events == []

    def test_failed_write_emits_nothing(self, publishing: PublishingStore, recorder: RecordingPublisher) -> None:
        """Test that events follow successful writes only."""
        with pytest.raises(ReferentialIntegrityError):
            publishing.add_loan(make_loan())

        assert recorder.events == []

    def test_empty_bulk_delete_emits_nothing(
        self, publishing: PublishingStore, recorder: RecordingPublisher, sample_client: Client
    ) -> None:
        """Test that bulk deletes of nothing are silent."""
        publishing.add_client(sample_client)
        recorder.events.clear()

        assert publishing.delete_receipts_for_client("client-001") == 0
        assert recorder.events == []

    def test_publish_error_does_not_fail_write(
        self, store: InMemoryLedgerStore, sample_client: Client, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that a lost event is logged and the write kept."""
        publisher = MagicMock()
        publisher.publish.side_effect = PublishError("broker down")
        publishing = PublishingStore(store, publisher)

        publishing.add_client(sample_client)

        assert store.get_client("client-001") == sample_client
        assert "broker down" in caplog.text


class TestKafkaChangePublisher:
    """Tests for the Kafka publisher with a mocked producer."""

    @patch("loan_ledger.realtime.publisher.Producer")
    def test_init_with_string(self, mock_producer_class: MagicMock) -> None:
        """Test init with a bootstrap string."""
        publisher = KafkaChangePublisher("kafka:9092")

        assert publisher.config.bootstrap_servers == "kafka:9092"
        mock_producer_class.assert_called_once()

    @patch("loan_ledger.realtime.publisher.Producer")
    def test_publish_topic_and_key(self, mock_producer_class: MagicMock) -> None:
        """Test topic naming and loan-id keying."""
        publisher = KafkaChangePublisher(KafkaConfig(topic_prefix="dr.changes"))
        event = make_change_event("receipts", ChangeAction.INSERT, "rec-1", loan_id="loan-001", data={"amount": "10"})

        publisher.publish(event)

        kwargs = mock_producer_class.return_value.produce.call_args.kwargs
        assert kwargs["topic"] == "dr.changes.receipts"
        assert kwargs["key"] == b"loan-001"
        assert json.loads(kwargs["value"])["record_id"] == "rec-1"
        assert publisher.stats.sent == 1

    @patch("loan_ledger.realtime.publisher.Producer")
    def test_key_falls_back_to_record(self, mock_producer_class: MagicMock) -> None:
        """Test keying client events by their own id."""
        publisher = KafkaChangePublisher("kafka:9092")

        publisher.publish(make_change_event("clients", ChangeAction.DELETE, "client-001"))

        assert mock_producer_class.return_value.produce.call_args.kwargs["key"] == b"client-001"

    @patch("loan_ledger.realtime.publisher.Producer")
    def test_buffer_full(self, mock_producer_class: MagicMock) -> None:
        """Test that a full local queue raises PublishError."""
        mock_producer_class.return_value.produce.side_effect = BufferError("queue full")
        publisher = KafkaChangePublisher("kafka:9092")

        with pytest.raises(PublishError):
            publisher.publish(make_change_event("loans", ChangeAction.UPDATE, "loan-001"))

        assert publisher.stats.failed == 1

    @patch("loan_ledger.realtime.publisher.Producer")
    def test_delivery_callback(self, mock_producer_class: MagicMock) -> None:
        """Test delivery statistics."""
        publisher = KafkaChangePublisher("kafka:9092")

        publisher._delivery_callback(None, MagicMock())
        publisher._delivery_callback("timed out", None)

        assert publisher.stats.delivered == 1
        assert publisher.stats.failed == 1

    @patch("loan_ledger.realtime.publisher.Producer")
    def test_close_flushes(self, mock_producer_class: MagicMock) -> None:
        """Test that close flushes the producer."""
        publisher = KafkaChangePublisher("kafka:9092")

        publisher.close()

        mock_producer_class.return_value.flush.assert_called_once()


@pytest.fixture
def ledger(service: LedgerService, store: InMemoryLedgerStore, sample_client: Client) -> LedgerService:
    """Service with one overdue loan."""
    store.add_client(sample_client)
    service.create_loan(make_loan(due_date=TODAY - timedelta(days=1)))
    return service


class TestChangeListener:
    """Tests for event-to-refresh mapping."""

    def test_payment_event_refreshes_loan(self, ledger: LedgerService, store: InMemoryLedgerStore) -> None:
        """Test that a payment event recomputes the loan status."""
        listener = ChangeListener(ledger)
        event = make_change_event("payments", ChangeAction.INSERT, "pay-1", loan_id="loan-001")

        assert listener.handle(event) is True
        assert store.get_loan("loan-001").status == LoanStatus.DEFAULTED

    def test_duplicate_events_are_harmless(self, ledger: LedgerService, store: InMemoryLedgerStore) -> None:
        """Test idempotent handling of repeated events."""
        listener = ChangeListener(ledger)
        event = make_change_event("loans", ChangeAction.UPDATE, "loan-001", loan_id="loan-001")

        listener.handle(event)
        listener.handle(event)

        assert store.get_loan("loan-001").status == LoanStatus.DEFAULTED

    @pytest.mark.parametrize(
        ("table", "action", "loan_id"),
        [
            ("clients", ChangeAction.DELETE, None),
            ("clients", ChangeAction.INSERT, None),
            ("loans", ChangeAction.DELETE, "loan-001"),
            ("receipts", ChangeAction.DELETE, None),
        ],
    )
    def test_events_without_refresh(self, ledger: LedgerService, table: str, action: ChangeAction, loan_id) -> None:
        """Test events that need no refresh."""
        listener = ChangeListener(ledger)

        assert listener.handle(make_change_event(table, action, "x", loan_id=loan_id)) is False

    def test_unknown_loan_skipped(self, ledger: LedgerService) -> None:
        """Test that events for deleted loans are skipped."""
        listener = ChangeListener(ledger)
        event = make_change_event("receipts", ChangeAction.INSERT, "rec-1", loan_id="gone")

        assert listener.handle(event) is False


def kafka_message(value: bytes | None, error: object = None) -> MagicMock:
    msg = MagicMock()
    msg.value.return_value = value
    msg.error.return_value = error
    msg.topic.return_value = "ledger.changes.payments"
    return msg


class TestKafkaChangeConsumer:
    """Tests for the consumer loop with a mocked consumer."""

    @patch("loan_ledger.realtime.listener.Consumer")
    def test_subscribes_to_all_tables(self, mock_consumer_class: MagicMock, ledger: LedgerService) -> None:
        """Test topic subscription."""
        KafkaChangeConsumer("kafka:9092", ChangeListener(ledger))

        topics = mock_consumer_class.return_value.subscribe.call_args[0][0]
        assert topics == [
            "ledger.changes.clients",
            "ledger.changes.loans",
            "ledger.changes.payments",
            "ledger.changes.receipts",
        ]

    @patch("loan_ledger.realtime.listener.Consumer")
    def test_run_handles_messages(
        self, mock_consumer_class: MagicMock, ledger: LedgerService, store: InMemoryLedgerStore
    ) -> None:
        """Test decoding, refreshing and skipping bad payloads."""
        event = make_change_event("payments", ChangeAction.INSERT, "pay-1", loan_id="loan-001")
        good = kafka_message(json.dumps(event_to_dict(event)).encode("utf-8"))
        bad = kafka_message(b"not json")
        client_event = make_change_event("clients", ChangeAction.UPDATE, "client-001")
        skipped = kafka_message(json.dumps(event_to_dict(client_event)).encode("utf-8"))
        mock_consumer_class.return_value.poll.side_effect = [None, good, bad, skipped]

        consumer = KafkaChangeConsumer("kafka:9092", ChangeListener(ledger))
        stats = consumer.run(max_messages=3)

        assert stats.received == 3
        assert stats.refreshed == 1
        assert stats.invalid == 1
        assert stats.skipped == 1
        assert store.get_loan("loan-001").status == LoanStatus.DEFAULTED
        mock_consumer_class.return_value.close.assert_called_once()

    @patch("loan_ledger.realtime.listener.Consumer")
    def test_broker_error_raises(self, mock_consumer_class: MagicMock, ledger: LedgerService) -> None:
        """Test that non-EOF broker errors surface."""
        error = MagicMock()
        error.code.return_value = -1
        mock_consumer_class.return_value.poll.return_value = kafka_message(None, error)

        consumer = KafkaChangeConsumer("kafka:9092", ChangeListener(ledger))

        with pytest.raises(KafkaException):
            consumer.poll_once()
