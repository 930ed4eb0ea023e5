from __future__ import annotations
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List


class AuditSink:
    """Append-only JSONL mirror of committed lifecycle events, one file per UTC day."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def _ensure_dir(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def write_event(self, event: Dict[str, Any]) -> Path:
        """
        Append a single audit event to a day-partitioned .jsonl file.
        Each line is a JSON object.
        """
        self._ensure_dir()
        day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        fp = self.directory / f"{day}.jsonl"
        with fp.open("a", encoding="utf-8") as fh:
            json.dump(event, fh, ensure_ascii=False, default=str)
            fh.write("\n")
        return fp

    def read_day(self, day: str) -> List[Dict[str, Any]]:
        fp = self.directory / f"{day}.jsonl"
        if not fp.exists():
            return []
        with fp.open("r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]
