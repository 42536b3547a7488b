"""JSON file sink for exporting customers and ledger entries."""

import json
from collections import Counter
from pathlib import Path
from typing import Any

from mill_credit.exceptions import SinkError
from mill_credit.sinks.serialization import to_dict


class JsonFileSink:
    """Write records under ``output_dir``.

    ``write_batch`` replaces ``<entity>.json`` with a JSON array.
    ``send`` appends one line to a JSON Lines file named after the topic,
    so ``mill.credit-ledger`` lands in ``mill_credit_ledger.jsonl``.

    Parameters
    ----------
    output_dir : str | Path
        Created if missing.
    pretty : bool
        Indent batch files. JSON Lines output is never indented.
    """

    def __init__(self, output_dir: str | Path, pretty: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.pretty = pretty
        self.counts: Counter[str] = Counter()

    def write_batch(self, entity_type: str, records: list[Any]) -> None:
        path = self.output_dir / f"{entity_type}.json"
        payload = json.dumps(
            [to_dict(record) for record in records],
            indent=2 if self.pretty else None,
            ensure_ascii=False,
            default=str,
        )
        self._write(path, "w", payload)
        self.counts[entity_type] = len(records)

    def send(self, topic: str, record: Any) -> None:
        path = self.output_dir / f"{topic.replace('.', '_').replace('-', '_')}.jsonl"
        self._write(path, "a", json.dumps(to_dict(record), ensure_ascii=False, default=str) + "\n")
        self.counts[topic] += 1

    def close(self) -> None:
        print(f"JSON files written to: {self.output_dir}")
        for entity_type, count in self.counts.items():
            print(f"  {entity_type}: {count} records")

    def _write(self, path: Path, mode: str, text: str) -> None:
        try:
            with open(path, mode, encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise SinkError(f"Cannot write {path}: {e}") from e
