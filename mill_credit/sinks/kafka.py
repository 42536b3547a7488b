"""Kafka sink: publishes ledger entries and customer snapshots as JSON."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from mill_credit.config import KafkaConfig
from mill_credit.exceptions import SinkError
from mill_credit.models.credit import Customer, LedgerEntry
from mill_credit.sinks.serialization import to_dict

logger = logging.getLogger(__name__)

RECORD_TYPES = {
    Customer: b"customer",
    LedgerEntry: b"ledger_entry",
}


@dataclass
class DeliveryStats:
    """Delivery reports received from the producer."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    last_error: str | None = None

    @property
    def pending(self) -> int:
        """Messages produced but not yet acknowledged either way."""
        return self.sent - self.delivered - self.failed


def message_key(record: Any) -> bytes | None:
    """Partition key: the customer id, so one customer's movements stay ordered."""
    if isinstance(record, dict):
        customer_id = record.get("customer_id")
    else:
        customer_id = getattr(record, "customer_id", None)
    return customer_id.encode("utf-8") if customer_id else None


class KafkaSink:
    """Publish records to Kafka topics.

    Parameters
    ----------
    config : KafkaConfig | str
        Producer configuration, or just the bootstrap servers.
    flush_timeout : float
        Seconds ``flush`` and ``close`` wait for outstanding deliveries.
    """

    def __init__(self, config: KafkaConfig | str, flush_timeout: float = 30.0) -> None:
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)
        self.config = config
        self.flush_timeout = flush_timeout
        self.stats = DeliveryStats()
        self.producer = Producer(config.to_dict())

    def send(self, topic: str, record: Any) -> None:
        """Produce one record; delivery is reported asynchronously.

        Raises
        ------
        SinkError
            If the local queue is full or the producer rejects the message.
        """
        record_type = RECORD_TYPES.get(type(record))
        try:
            self.producer.produce(
                topic=topic,
                key=message_key(record),
                value=json.dumps(to_dict(record), ensure_ascii=False, default=str).encode(
                    "utf-8"
                ),
                headers=[("record_type", record_type)] if record_type else None,
                on_delivery=self._on_delivery,
            )
        except (BufferError, KafkaException) as e:
            raise SinkError(f"Cannot produce to {topic}: {e}") from e
        self.stats.sent += 1
        self.producer.poll(0)

    def write_batch(self, topic: str, records: list[Any]) -> None:
        """Produce every record, then wait for the deliveries."""
        for record in records:
            self.send(topic, record)
        self.flush()
        logger.info("Published %d records to %s", len(records), topic)

    def flush(self) -> int:
        """Wait for outstanding deliveries; return how many are still queued."""
        remaining = self.producer.flush(self.flush_timeout)
        if remaining:
            logger.warning("%d messages still queued after %.1fs", remaining, self.flush_timeout)
        return remaining

    def close(self) -> None:
        self.flush()
        logger.info(
            "Kafka sink closed: sent=%d delivered=%d failed=%d",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
        )

    def _on_delivery(self, err: Any, msg: Any) -> None:
        if err is not None:
            self.stats.failed += 1
            self.stats.last_error = str(err)
            logger.error("Delivery failed: %s", err)
            return
        self.stats.delivered += 1
        logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())
