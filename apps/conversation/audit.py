"""
Audit trail for committed conversation steps.

Only finalized history entries reach a sink, in commit order. Drafts and
working entries are never written.
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .state import HistoryEntry

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def record(self, session_id: str, entry: HistoryEntry) -> None:
        ...


class InMemoryAuditSink:
    """Keeps committed entries per session. Used when no audit dir is configured."""

    def __init__(self):
        self._entries: Dict[str, List[HistoryEntry]] = {}

    def record(self, session_id: str, entry: HistoryEntry) -> None:
        self._entries.setdefault(session_id, []).append(entry.model_copy())

    def get_entries(self, session_id: str) -> List[HistoryEntry]:
        return list(self._entries.get(session_id, []))

    def sessions(self) -> List[str]:
        return list(self._entries.keys())


class JsonlAuditSink:
    """
    Appends one JSON line per committed entry to ``<storage_dir>/<session_id>.jsonl``.

    Args:
        storage_dir: Directory for the trail files; created if missing.
    """

    def __init__(self, storage_dir: str):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.storage_dir / f"{session_id}.jsonl"

    def record(self, session_id: str, entry: HistoryEntry) -> None:
        with open(self._path(session_id), 'a') as f:
            f.write(json.dumps(entry.model_dump(mode="json")) + '\n')

    def get_entries(self, session_id: str) -> List[HistoryEntry]:
        file_path = self._path(session_id)
        if not file_path.exists():
            return []
        entries = []
        with open(file_path) as f:
            for line in f:
                if line.strip():
                    entries.append(HistoryEntry.model_validate(json.loads(line)))
        return entries


def build_audit_sink(audit_dir: Optional[str]) -> AuditSink:
    if audit_dir:
        logger.info(f"Writing conversation audit trail to {audit_dir}")
        return JsonlAuditSink(audit_dir)
    return InMemoryAuditSink()
