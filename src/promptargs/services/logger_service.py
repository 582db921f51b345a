from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from promptargs.storage import MessagePackStore


class LoggerService:
    def __init__(self, store: MessagePackStore, limit: int = 2000, echo: bool = True) -> None:
        self.store = store
        self.limit = max(1, int(limit))
        self.echo = echo
        self._listeners: list[Callable[[dict[str, object]], None]] = []

    def subscribe(self, listener: Callable[[dict[str, object]], None]) -> None:
        self._listeners.append(listener)

    def log(self, event: str, **data: object) -> dict[str, object]:
        row = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "event": event,
            "data": data,
        }
        logs = self.store.data["logs"]
        logs.append(row)
        if len(logs) > self.limit:
            del logs[: len(logs) - self.limit]
        self.store.touch()
        if self.echo:
            print(f"[{row['ts']}] {event} {data}")
        for listener in self._listeners:
            try:
                listener(row)
            except Exception:  # noqa: BLE001
                continue
        return row

    def recent(self, prefix: str = "", limit: int = 20) -> list[dict[str, object]]:
        rows = [row for row in self.store.data["logs"] if str(row.get("event", "")).startswith(prefix)]
        return rows[-limit:]
