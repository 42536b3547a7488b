"""Output sinks for customers and ledger entries."""

from mill_credit.sinks.console import ConsoleSink
from mill_credit.sinks.json_file import JsonFileSink
from mill_credit.sinks.kafka import KafkaSink

__all__ = ["ConsoleSink", "JsonFileSink", "KafkaSink"]
