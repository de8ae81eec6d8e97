"""Tests for config and logging."""

import io
import json
import logging
import os
import sys
from unittest.mock import patch

import pytest

from loan_ledger.config import KafkaConfig, LedgerConfig, LedgerSettings, PostgresConfig
from loan_ledger.exceptions import ConfigurationError
from loan_ledger.logging import JsonFormatter, LedgerContextFilter, get_logger, ledger_context, setup_logging


class TestKafkaConfig:
    """Tests for KafkaConfig."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = KafkaConfig()

        assert config.bootstrap_servers == "localhost:9092"
        assert config.acks == "all"
        assert config.topic_prefix == "ledger.changes"
        assert config.group_id == "loan-ledger"

    def test_to_dict(self) -> None:
        """Test conversion to confluent-kafka producer config dict."""
        result = KafkaConfig(bootstrap_servers="kafka:9092", acks="1", linger_ms=10, retries=5).to_dict()

        assert result == {
            "bootstrap.servers": "kafka:9092",
            "acks": "1",
            "linger.ms": 10,
            "retries": 5,
        }

    def test_consumer_dict(self) -> None:
        """Test conversion to confluent-kafka consumer config dict."""
        result = KafkaConfig(group_id="refresher").consumer_dict()

        assert result["group.id"] == "refresher"
        assert result["bootstrap.servers"] == "localhost:9092"

    def test_topic_for(self) -> None:
        """Test topic naming per table."""
        assert KafkaConfig(topic_prefix="dr").topic_for("loans") == "dr.loans"


class TestPostgresConfig:
    """Tests for PostgresConfig."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = PostgresConfig()

        assert config.host == "localhost"
        assert config.port == 5432
        assert config.database == "dinheiro_rapido"

    def test_connection_string(self) -> None:
        """Test connection string generation."""
        config = PostgresConfig(host="db", port=5433, database="ledger", user="app", password="secret")

        assert config.connection_string == "postgresql://app:secret@db:5433/ledger"


class TestLedgerSettings:
    """Tests for LedgerSettings validation."""

    def test_defaults(self) -> None:
        """Test that receipts are the default confirmed source."""
        settings = LedgerSettings()

        assert settings.paid_source == "receipts"
        assert settings.receipt_number_attempts == 5
        assert settings.cascade_max_attempts == 3

    def test_invalid_paid_source(self) -> None:
        """Test that an unknown source is rejected."""
        with pytest.raises(ConfigurationError, match="paid_source"):
            LedgerSettings(paid_source="both")

    @pytest.mark.parametrize("field", ["receipt_number_attempts", "cascade_max_attempts"])
    def test_attempts_must_be_positive(self, field: str) -> None:
        """Test that retry counts must be at least one."""
        with pytest.raises(ConfigurationError):
            LedgerSettings(**{field: 0})


class TestLedgerConfig:
    """Tests for LedgerConfig.from_env."""

    def test_from_env_default(self) -> None:
        """Test creating config from an empty environment."""
        with patch.dict(os.environ, {}, clear=True):
            config = LedgerConfig.from_env()

        assert config.kafka.bootstrap_servers == "localhost:9092"
        assert config.postgres.database == "dinheiro_rapido"
        assert config.settings.paid_source == "receipts"
        assert config.publish_changes is False
        assert config.seed is None
        assert config.log_level == "INFO"

    def test_from_env_custom(self) -> None:
        """Test creating config from custom environment variables."""
        env = {
            "KAFKA_BOOTSTRAP_SERVERS": "kafka-cluster:9092",
            "TOPIC_PREFIX": "dr.changes",
            "POSTGRES_HOST": "db.example.com",
            "POSTGRES_PORT": "5433",
            "LEDGER_PAID_SOURCE": "PAYMENTS",
            "RECEIPT_NUMBER_ATTEMPTS": "8",
            "CASCADE_MAX_ATTEMPTS": "2",
            "PUBLISH_CHANGES": "true",
            "SEED": "42",
            "LOG_LEVEL": "DEBUG",
            "LOG_FORMAT": "json",
        }
        with patch.dict(os.environ, env, clear=True):
            config = LedgerConfig.from_env()

        assert config.kafka.bootstrap_servers == "kafka-cluster:9092"
        assert config.kafka.topic_for("payments") == "dr.changes.payments"
        assert config.postgres.port == 5433
        assert config.settings.paid_source == "payments"
        assert config.settings.receipt_number_attempts == 8
        assert config.settings.cascade_max_attempts == 2
        assert config.publish_changes is True
        assert config.seed == 42
        assert config.log_format == "json"

    def test_from_env_invalid_number(self) -> None:
        """Test that non-numeric values raise ConfigurationError."""
        with patch.dict(os.environ, {"POSTGRES_PORT": "five"}, clear=True):
            with pytest.raises(ConfigurationError):
                LedgerConfig.from_env()

    def test_from_env_invalid_seed(self) -> None:
        """Test that a non-numeric seed raises ConfigurationError."""
        with patch.dict(os.environ, {"SEED": "abc"}, clear=True):
            with pytest.raises(ConfigurationError, match="Invalid numeric setting"):
                LedgerConfig.from_env()

    def test_from_env_invalid_source(self) -> None:
        """Test that an unknown paid source raises ConfigurationError."""
        with patch.dict(os.environ, {"LEDGER_PAID_SOURCE": "ledger"}, clear=True):
            with pytest.raises(ConfigurationError):
                LedgerConfig.from_env()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_default(self) -> None:
        """Test default logging setup."""
        setup_logging()

        assert logging.getLogger("loan_ledger").level == logging.INFO

    def test_setup_logging_debug(self) -> None:
        """Test debug level logging setup."""
        setup_logging(level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_invalid_level(self) -> None:
        """Test logging with invalid level defaults to INFO."""
        setup_logging(level="INVALID")

        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_json_format(self) -> None:
        """Test JSON format logging."""
        setup_logging(format_type="json")

        assert any(isinstance(h.formatter, JsonFormatter) for h in logging.getLogger().handlers)

    def test_setup_logging_replaces_handlers(self) -> None:
        """Test that setup_logging replaces existing handlers."""
        logger = logging.getLogger()
        logger.addHandler(logging.StreamHandler())
        logger.addHandler(logging.StreamHandler())

        handler = setup_logging()

        assert logger.handlers == [handler]

    def test_external_loggers_quieted(self) -> None:
        """Test that external library loggers are quieted."""
        setup_logging(level="DEBUG")

        assert logging.getLogger("confluent_kafka").level == logging.WARNING
        assert logging.getLogger("psycopg").level == logging.WARNING
        assert logging.getLogger("faker").level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **kwargs) -> logging.LogRecord:
        defaults = dict(
            name="loan_ledger.service",
            level=logging.INFO,
            pathname="/path/to/service.py",
            lineno=42,
            msg="Loan %s status %s -> %s",
            args=("loan-001", "active", "completed"),
            exc_info=None,
        )
        defaults.update(kwargs)
        return logging.LogRecord(**defaults)

    def test_format_basic(self) -> None:
        """Test basic log formatting."""
        data = json.loads(JsonFormatter().format(self._record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "loan_ledger.service"
        assert data["message"] == "Loan loan-001 status active -> completed"
        assert "timestamp" in data

    def test_format_with_exception(self) -> None:
        """Test formatting with exception info."""
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(self._record(level=logging.ERROR, exc_info=exc_info)))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_format_with_context(self) -> None:
        """Test that ledger identifiers become top-level keys."""
        record = self._record()
        record.loan_id = "loan-001"
        record.payment_id = "pay-1"

        data = json.loads(JsonFormatter().format(record))

        assert data["loan_id"] == "loan-001"
        assert data["payment_id"] == "pay-1"
        assert "client_id" not in data


class TestLedgerContext:
    """Tests for ledger identifiers on log records."""

    def test_drops_unset_ids(self) -> None:
        """Test that None identifiers are left out."""
        assert ledger_context(loan_id="loan-001", receipt_id=None) == {"loan_id": "loan-001"}

    def test_unknown_field(self) -> None:
        """Test that unexpected keys are rejected."""
        with pytest.raises(ValueError, match="account_id"):
            ledger_context(account_id="a1")

    def test_standard_format_renders_context(self) -> None:
        """Test the trailing identifier block in standard output."""
        stream = io.StringIO()
        setup_logging(stream=stream)

        logging.getLogger("loan_ledger.test").info("Status changed", extra=ledger_context(loan_id="loan-001"))
        logging.getLogger("loan_ledger.test").info("No ids")

        lines = stream.getvalue().splitlines()
        assert lines[0].endswith("Status changed [loan_id=loan-001]")
        assert lines[1].endswith("No ids")

    def test_filter_sets_empty_context(self) -> None:
        """Test the filter on a record without identifiers."""
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

        assert LedgerContextFilter().filter(record) is True
        assert record.context == ""


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger(self) -> None:
        """Test getting a logger."""
        logger = get_logger("loan_ledger.test")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "loan_ledger.test"

    def test_get_logger_same_instance(self) -> None:
        """Test that get_logger returns same instance for same name."""
        assert get_logger("test.same") is get_logger("test.same")


class TestPackageInit:
    """Tests for loan_ledger __init__.py."""

    def test_version_exported(self) -> None:
        """Test that __version__ is exported."""
        from loan_ledger import __version__

        assert isinstance(__version__, str)
