"""Append-only record of state-changing Wi-Fi operations."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Iterable


@dataclass(slots=True)
class EventLogEntry:
    """One operation captured for troubleshooting."""

    timestamp: float
    operation: str
    subject: str | None
    outcome: str
    message: str = ""
    metadata: dict[str, object | None] | None = None

    def to_dict(self) -> dict[str, object | None]:
        payload: dict[str, object | None] = {
            "timestamp": self.timestamp,
            "operation": self.operation,
            "subject": self.subject,
            "outcome": self.outcome,
        }
        if self.message:
            payload["message"] = self.message
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


class EventLog:
    """Persistent event log; write failures never reach the caller.

    Entries go to ``path`` when it is writable, otherwise to
    ``fallback_path``, otherwise only to the in-memory ring.
    """

    def __init__(
        self,
        path: Path | str | None = Path("/var/log/wifi_config.log"),
        *,
        fallback_path: Path | str | None = Path("wifi_config.log"),
        max_entries: int = 500,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._paths: list[Path] = [
            Path(candidate) for candidate in (path, fallback_path) if candidate is not None
        ]
        self._entries: Deque[EventLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._load_entries()

    # ------------------------------ properties -----------------------------
    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    # ------------------------------ operations -----------------------------
    def record(
        self,
        operation: str,
        subject: str | None,
        outcome: str,
        message: str = "",
        *,
        metadata: dict[str, object | None] | None = None,
    ) -> EventLogEntry:
        """Append a new event and return the stored entry."""

        entry = EventLogEntry(
            timestamp=time.time(),
            operation=operation.strip() or "general",
            subject=subject,
            outcome=outcome,
            message=message,
            metadata=self._clean_metadata(metadata),
        )
        with self._lock:
            self._entries.append(entry)
            self._append_persistent(entry)
        return entry

    def tail(
        self,
        limit: int | None = None,
        *,
        operation: str | None = None,
    ) -> list[EventLogEntry]:
        """Return the most recent entries, optionally filtered by operation."""

        with self._lock:
            entries: Iterable[EventLogEntry] = list(self._entries)
        if operation:
            entries = [entry for entry in entries if entry.operation == operation]
        entries = list(entries)
        if limit is not None:
            try:
                limit_value = max(1, int(limit))
            except (TypeError, ValueError):
                limit_value = 1
            if len(entries) > limit_value:
                entries = entries[-limit_value:]
        return entries

    # ----------------------------- implementation --------------------------
    def _load_entries(self) -> None:
        for path in self._paths:
            if not path.exists():
                continue
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError) as exc:
                logging.getLogger(__name__).warning("Unable to load event log %s: %s", path, exc)
                continue
            for raw_line in lines:
                line = raw_line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except ValueError:
                    continue
                entry = self._deserialize(payload)
                if entry is not None:
                    self._entries.append(entry)
            return

    @staticmethod
    def _deserialize(payload: object) -> EventLogEntry | None:
        if not isinstance(payload, dict):
            return None
        operation = payload.get("operation")
        outcome = payload.get("outcome")
        if not isinstance(operation, str) or not isinstance(outcome, str):
            return None
        subject = payload.get("subject")
        message = payload.get("message")
        metadata = payload.get("metadata")
        try:
            timestamp = float(payload.get("timestamp", 0.0))
        except (TypeError, ValueError):
            timestamp = 0.0
        return EventLogEntry(
            timestamp=timestamp,
            operation=operation,
            subject=subject if isinstance(subject, str) else None,
            outcome=outcome,
            message=message if isinstance(message, str) else "",
            metadata=metadata if isinstance(metadata, dict) else None,
        )

    def _append_persistent(self, entry: EventLogEntry) -> None:
        line = json.dumps(entry.to_dict(), separators=(",", ":")) + "\n"
        while self._paths:
            path = self._paths[0]
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
                return
            except OSError as exc:
                logging.getLogger(__name__).warning(
                    "Unable to append to event log %s: %s", path, exc
                )
                self._paths.pop(0)

    @staticmethod
    def _clean_metadata(
        metadata: dict[str, object | None] | None,
    ) -> dict[str, object | None] | None:
        if not metadata:
            return None
        cleaned = {key: value for key, value in metadata.items() if value is not None}
        return cleaned or None


__all__ = ["EventLog", "EventLogEntry"]
