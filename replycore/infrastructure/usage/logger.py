"""Append-only usage logging for provider attempts."""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from replycore.core.interfaces import IUsageSink
from replycore.core.models import UsageLogEntry
from replycore.utils.logger import get_logger

logger = get_logger(__name__)


class MemoryUsageSink:
    """Keeps entries in a list; the default sink and the one tests inspect."""

    def __init__(self):
        self.entries: List[UsageLogEntry] = []

    async def append(self, entry: UsageLogEntry) -> None:
        self.entries.append(entry)


class JsonlUsageSink:
    """Appends one JSON object per line to a file."""

    def __init__(self, path: str):
        self.path = Path(path)

    async def append(self, entry: UsageLogEntry) -> None:
        line = json.dumps(entry.to_dict())
        await asyncio.get_running_loop().run_in_executor(None, self._write_line, line)

    def _write_line(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")


class UsageLogger:
    """Writes usage entries to a sink without ever failing the caller."""

    def __init__(self, sink: Optional[IUsageSink] = None):
        self.sink = sink or MemoryUsageSink()

    async def log(self, entry: UsageLogEntry) -> None:
        try:
            await self.sink.append(entry)
        except Exception as e:
            logger.warning(
                f"Failed to log usage entry: {e}",
                extra={"provider": entry.provider, "success": entry.success},
            )


def create_usage_logger(config: Optional[Dict[str, Any]] = None) -> UsageLogger:
    """
    Create a usage logger from the ``usage`` config section.

    Args:
        config: ``{"sink": "memory" | "jsonl", "path": ...}``

    Returns:
        UsageLogger instance
    """
    config = config or {}
    sink_type = config.get("sink", "memory")

    if sink_type == "jsonl":
        return UsageLogger(JsonlUsageSink(config.get("path", "logs/usage.jsonl")))
    if sink_type != "memory":
        logger.warning(f"Unknown usage sink '{sink_type}', using memory")
    return UsageLogger(MemoryUsageSink())
