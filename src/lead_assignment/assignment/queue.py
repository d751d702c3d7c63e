"""In-memory priority queue used by priority-based assignment."""

import logging
import threading
from typing import List

from .models import AssignmentQueueItem

logger = logging.getLogger(__name__)

MAX_QUEUE_SIZE = 1000


class AssignmentQueue:
    """Leads waiting for a priority assignment, highest priority first.

    The priority strategy pushes a lead and consumes it as soon as a member
    is picked, so what stays behind are the leads nobody could take. A lead
    pushed again replaces its earlier item and keeps its attempt count.
    When the queue is full the lowest-priority item is dropped. Contents do
    not survive a restart.
    """

    def __init__(self, max_size: int = MAX_QUEUE_SIZE):
        self.max_size = max_size
        self._lock = threading.Lock()
        self._items: List[AssignmentQueueItem] = []

    def push(self, item: AssignmentQueueItem) -> AssignmentQueueItem:
        with self._lock:
            previous = next((i for i in self._items if i.lead.id == item.lead.id), None)
            if previous is not None:
                self._items.remove(previous)
                item.attempts = max(item.attempts, previous.attempts)

            # Insert after every item with priority >= this one
            index = len(self._items)
            for i, existing in enumerate(self._items):
                if existing.priority < item.priority:
                    index = i
                    break
            self._items.insert(index, item)

            if len(self._items) > self.max_size:
                dropped = self._items.pop()
                logger.warning(f"Assignment queue full, dropped lead {dropped.lead.id}")
        return item

    def consume(self, item: AssignmentQueueItem):
        """Remove an item once its lead has an owner."""
        with self._lock:
            self._items = [i for i in self._items if i is not item]

    def items(self) -> List[AssignmentQueueItem]:
        with self._lock:
            return list(self._items)

    def clear(self):
        with self._lock:
            self._items = []

    def __len__(self) -> int:
        return len(self._items)
