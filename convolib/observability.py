"""
ConvoFlow Observability Utilities

Keeps the most recent log records in memory so the UI log viewer can show
what the orchestrator decided without shell access to the server.

Records are captured from the standard ``logging`` tree; nothing here
replaces the normal handlers configured by the gateway.
"""
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class MemoryLogHandler(logging.Handler):
    """
    Ring-buffer log handler.

    Args:
        max_entries: Number of records kept; older ones are dropped.
        level: Minimum level captured.
    """

    def __init__(self, max_entries: int = 1000, level: int = logging.DEBUG):
        super().__init__(level=level)
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=max_entries)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "component": record.name,
                "function": record.funcName,
                "message": record.getMessage(),
            }
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)

    def get_logs(self, level: Optional[str] = None, component: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Return captured records, oldest first.

        Args:
            level: Only records at or above this level name.
            component: Only records whose logger name starts with this prefix.
        """
        with self._entries_lock:
            entries = list(self._entries)
        if level:
            threshold = logging.getLevelName(level.upper())
            if isinstance(threshold, int):
                entries = [e for e in entries if logging.getLevelName(e["level"]) >= threshold]
        if component:
            entries = [e for e in entries if e["component"].startswith(component)]
        return entries

    def get_logs_as_string(self) -> str:
        return "\n".join(
            f"[{e['timestamp']}] {e['level']} [{e['component']}.{e['function']}] {e['message']}"
            for e in self.get_logs()
        )

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()


_memory_handler: Optional[MemoryLogHandler] = None


def install_memory_handler(max_entries: int = 1000, logger_name: str = "") -> MemoryLogHandler:
    """Attach a single shared ``MemoryLogHandler`` to ``logger_name`` (root by default)."""
    global _memory_handler
    if _memory_handler is None:
        _memory_handler = MemoryLogHandler(max_entries=max_entries)
        logging.getLogger(logger_name).addHandler(_memory_handler)
    return _memory_handler


def get_memory_handler() -> Optional[MemoryLogHandler]:
    return _memory_handler
