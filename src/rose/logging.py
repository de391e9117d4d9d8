"""JSONL event logging for observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    session_id: str | None = None
    identity_key: str | None = None
    role: str | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured chat events in JSONL format.

    Message bodies are not written, only their length.
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".rose" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        session_id: str | None = None,
        identity_key: str | None = None,
        role: str | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            session_id=session_id,
            identity_key=identity_key,
            role=role,
            duration_ms=duration_ms,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_message(
        self,
        identity_key: str,
        session_id: str,
        role: str,
        route: str,
        message_length: int,
        duration_ms: float | None = None,
    ) -> None:
        """Log a handled chat message and which path answered it."""
        self.log(
            "chat_message",
            session_id=session_id,
            identity_key=identity_key,
            role=role,
            duration_ms=duration_ms,
            route=route,
            message_length=message_length,
        )

    def log_generation(
        self,
        *,
        session_id: str | None,
        model: str,
        turns: int,
        transcript_mode: bool,
    ) -> None:
        """Log a successful text-generation call."""
        self.log(
            "generation",
            session_id=session_id,
            model=model,
            turns=turns,
            transcript_mode=transcript_mode,
        )

    def log_fallback(
        self,
        reason: str,
        *,
        session_id: str | None = None,
        role: str | None = None,
    ) -> None:
        """Log when a canned fallback replaced a generated reply."""
        self.log("generation_fallback", session_id=session_id, role=role, error=reason)

    def log_menu(
        self,
        session_id: str,
        result: str,
        category: str | None = None,
        item: str | None = None,
    ) -> None:
        """Log a definitive menu navigation step."""
        extra: dict[str, Any] = {"result": result}
        if category:
            extra["category"] = category
        if item:
            extra["item"] = item
        self.log("menu_navigation", session_id=session_id, **extra)
