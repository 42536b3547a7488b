"""Settings for the ledger, its stores and its sinks.

Each section reads its own environment variables through ``from_env``;
``MillCreditConfig.from_env`` assembles them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mill_credit.exceptions import ConfigurationError


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


@dataclass
class KafkaConfig:
    """Producer settings for publishing ledger entries."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3

    @classmethod
    def from_env(cls) -> "KafkaConfig":
        return cls(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", cls.bootstrap_servers),
            acks=os.getenv("KAFKA_ACKS", cls.acks),
        )

    def to_dict(self) -> dict[str, Any]:
        """Keys as librdkafka expects them."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class PostgresConfig:
    """Where the customer table lives."""

    host: str = "localhost"
    port: int = 5432
    database: str = "millcredit"
    user: str = "postgres"
    password: str = "postgres"

    @classmethod
    def from_env(cls) -> "PostgresConfig":
        return cls(
            host=os.getenv("POSTGRES_HOST", cls.host),
            port=_env_int("POSTGRES_PORT", cls.port),
            database=os.getenv("POSTGRES_DB", cls.database),
            user=os.getenv("POSTGRES_USER", cls.user),
            password=os.getenv("POSTGRES_PASSWORD", cls.password),
        )

    @property
    def connection_string(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class OutputConfig:
    """File and console output."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False

    @classmethod
    def from_env(cls) -> "OutputConfig":
        return cls(
            json_output_dir=Path(os.getenv("OUTPUT_DIR", "output")),
            pretty_json=_env_flag("PRETTY_JSON"),
        )


@dataclass
class LedgerConfig:
    """Customer numbering and balance update behaviour.

    Raises
    ------
    ConfigurationError
        If the number width or the retry count is below one.
    """

    customer_number_prefix: str = "CUST"
    customer_number_width: int = 6
    default_credit_terms: int = 30  # days
    max_retries: int = 3
    ledger_topic: str = "mill.credit-ledger"

    def __post_init__(self) -> None:
        if self.customer_number_width < 1:
            raise ConfigurationError(
                f"customer_number_width must be at least 1, got {self.customer_number_width}"
            )
        if self.max_retries < 1:
            raise ConfigurationError(f"max_retries must be at least 1, got {self.max_retries}")

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        return cls(
            customer_number_prefix=os.getenv("CUSTOMER_NUMBER_PREFIX", cls.customer_number_prefix),
            customer_number_width=_env_int("CUSTOMER_NUMBER_WIDTH", cls.customer_number_width),
            default_credit_terms=_env_int("CREDIT_TERMS_DAYS", cls.default_credit_terms),
            max_retries=_env_int("LEDGER_MAX_RETRIES", cls.max_retries),
            ledger_topic=os.getenv("LEDGER_TOPIC", cls.ledger_topic),
        )


@dataclass
class MillCreditConfig:
    """All settings for one mill-credit process."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "MillCreditConfig":
        """Build the configuration from environment variables.

        Raises
        ------
        ConfigurationError
            If a numeric variable does not parse or a ledger setting is
            out of range.
        """
        return cls(
            kafka=KafkaConfig.from_env(),
            postgres=PostgresConfig.from_env(),
            output=OutputConfig.from_env(),
            ledger=LedgerConfig.from_env(),
            seed=_env_int("SEED", None),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
