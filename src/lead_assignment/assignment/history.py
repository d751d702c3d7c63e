"""Append-only assignment audit trail."""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .models import AssignmentHistoryEntry, AssignmentType

logger = logging.getLogger(__name__)


class AssignmentHistoryLog:
    """Records every successful assignment in insertion order."""

    def __init__(self, data_path: Optional[Path] = None):
        self.data_path = data_path
        self._lock = threading.Lock()
        self._entries: List[AssignmentHistoryEntry] = []
        self._load_data()

    def _load_data(self):
        if not self.data_path or not self.data_path.exists():
            return
        try:
            with open(self.data_path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading assignment history: {e}")
            return

        for record in data.get("entries", []):
            try:
                self._entries.append(AssignmentHistoryEntry.from_dict(record))
            except (TypeError, ValueError, KeyError) as e:
                logger.error(f"Skipping unreadable history entry {record!r}: {e}")

    def _save_data(self):
        if not self.data_path:
            return
        self.data_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.data_path, 'w') as f:
            json.dump({"entries": [e.to_dict() for e in self._entries]}, f, indent=2)

    def record(self, entry: AssignmentHistoryEntry) -> AssignmentHistoryEntry:
        with self._lock:
            self._entries.append(entry)
            self._save_data()
        return entry

    def query(self, lead_id: Optional[str] = None) -> List[AssignmentHistoryEntry]:
        """All entries, or only those for one lead, oldest first."""
        entries = list(self._entries)
        if lead_id:
            return [e for e in entries if e.lead_id == lead_id]
        return entries

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict:
        """Summary statistics for the assignment dashboard."""
        entries = list(self._entries)
        total = len(entries)
        successful = len([e for e in entries if e.assigned_to])

        by_type = {}
        for assignment_type in AssignmentType:
            type_count = len([e for e in entries if e.assignment_type == assignment_type])
            if type_count:
                by_type[assignment_type.value] = type_count

        by_user = {}
        for entry in entries:
            by_user[entry.assigned_to] = by_user.get(entry.assigned_to, 0) + 1

        return {
            "total_assignments": total,
            "success_rate": round(successful / total * 100, 1) if total else 0,
            "by_type": by_type,
            "type_distribution": {
                t: round(c / total * 100, 1) for t, c in by_type.items()
            },
            "by_user": by_user,
        }
