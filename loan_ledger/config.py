"""Configuration management for loan-ledger."""

from dataclasses import dataclass, field
from typing import Any

from loan_ledger.exceptions import ConfigurationError

PAID_SOURCES = ("receipts", "payments")


@dataclass
class KafkaConfig:
    """Kafka configuration for the change feed."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    linger_ms: int = 5
    retries: int = 3
    topic_prefix: str = "ledger.changes"
    group_id: str = "loan-ledger"

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka producer config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "retries": self.retries,
        }

    def consumer_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka consumer config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "group.id": self.group_id,
            "auto.offset.reset": "latest",
            "enable.auto.commit": True,
        }

    def topic_for(self, table: str) -> str:
        """Return the change topic for a table."""
        return f"{self.topic_prefix}.{table}"


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "dinheiro_rapido"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class LedgerSettings:
    """Business settings for the ledger service."""

    # Which record type counts as "confirmed paid": "receipts" or "payments"
    paid_source: str = "receipts"
    receipt_number_attempts: int = 5
    cascade_max_attempts: int = 3

    def __post_init__(self) -> None:
        if self.paid_source not in PAID_SOURCES:
            raise ConfigurationError(
                f"paid_source must be one of {PAID_SOURCES}, got {self.paid_source!r}"
            )
        if self.receipt_number_attempts < 1:
            raise ConfigurationError("receipt_number_attempts must be >= 1")
        if self.cascade_max_attempts < 1:
            raise ConfigurationError("cascade_max_attempts must be >= 1")


@dataclass
class LedgerConfig:
    """Main configuration for loan-ledger."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    settings: LedgerSettings = field(default_factory=LedgerSettings)
    publish_changes: bool = False
    seed: int | None = None
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Create config from environment variables."""
        import os

        try:
            kafka = KafkaConfig(
                bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
                acks=os.getenv("KAFKA_ACKS", "all"),
                topic_prefix=os.getenv("TOPIC_PREFIX", "ledger.changes"),
                group_id=os.getenv("KAFKA_GROUP_ID", "loan-ledger"),
            )

            postgres = PostgresConfig(
                host=os.getenv("POSTGRES_HOST", "localhost"),
                port=int(os.getenv("POSTGRES_PORT", "5432")),
                database=os.getenv("POSTGRES_DB", "dinheiro_rapido"),
                user=os.getenv("POSTGRES_USER", "postgres"),
                password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            )

            settings = LedgerSettings(
                paid_source=os.getenv("LEDGER_PAID_SOURCE", "receipts").lower(),
                receipt_number_attempts=int(os.getenv("RECEIPT_NUMBER_ATTEMPTS", "5")),
                cascade_max_attempts=int(os.getenv("CASCADE_MAX_ATTEMPTS", "3")),
            )
            seed = int(os.getenv("SEED")) if os.getenv("SEED") else None
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        return cls(
            kafka=kafka,
            postgres=postgres,
            settings=settings,
            publish_changes=os.getenv("PUBLISH_CHANGES", "false").lower() == "true",
            seed=seed,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
