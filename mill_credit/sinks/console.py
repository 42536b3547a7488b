"""Console sink: prints ledger entries and customer batches to stdout."""

import json
from collections import Counter
from typing import Any

from mill_credit.sinks.serialization import to_dict

RULE = "=" * 60


class ConsoleSink:
    """Print records as JSON for local runs and debugging.

    Parameters
    ----------
    pretty : bool
        Indent the JSON.
    max_records : int | None
        Cap on records printed per batch; the rest are only counted.
    """

    def __init__(self, pretty: bool = True, max_records: int | None = None) -> None:
        self.pretty = pretty
        self.max_records = max_records
        self.counts: Counter[str] = Counter()

    def send(self, topic: str, record: Any) -> None:
        print(f"[{topic}] {self._render(record)}")
        self.counts[topic] += 1

    def write_batch(self, entity_type: str, records: list[Any]) -> None:
        print(f"\n{RULE}\nEntity: {entity_type} ({len(records)} records)\n{RULE}")
        shown = records if self.max_records is None else records[: self.max_records]
        for record in shown:
            print(self._render(record))
        hidden = len(records) - len(shown)
        if hidden > 0:
            print(f"... and {hidden} more records")
        self.counts[entity_type] += len(records)

    def close(self) -> None:
        print(f"\n{RULE}\nSummary:")
        for entity_type, count in self.counts.items():
            print(f"  {entity_type}: {count} records")

    def _render(self, record: Any) -> str:
        return json.dumps(
            to_dict(record), indent=2 if self.pretty else None, ensure_ascii=False, default=str
        )
