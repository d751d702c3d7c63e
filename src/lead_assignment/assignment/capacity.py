"""Team member capacity and availability tracking."""

import json
import logging
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .models import TeamMemberCapacity

logger = logging.getLogger(__name__)


def _validate_count(value, name: str):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative")


class CapacityTracker:
    """Per-user lead counts and availability.

    This is the only component that changes lead counters. Every mutation
    happens under one lock, and :meth:`reserve` performs the capacity check
    and the increment together so concurrent assignments cannot overfill a
    member. Members are kept in registration order.
    """

    def __init__(self, data_path: Optional[Path] = None):
        self.data_path = data_path
        self._lock = threading.RLock()
        self._members: Dict[str, TeamMemberCapacity] = {}
        self._load_data()

    def _load_data(self):
        if not self.data_path or not self.data_path.exists():
            return
        try:
            with open(self.data_path, 'r') as f:
                data = json.load(f)
            for m in data.get("members", []):
                member = TeamMemberCapacity.from_dict(m)
                self._members[member.user_id] = member
        except (OSError, ValueError) as e:
            logger.error(f"Error loading team capacity: {e}")

    def _save_data(self):
        if not self.data_path:
            return
        self.data_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.data_path, 'w') as f:
            json.dump({
                "members": [m.to_dict() for m in self._members.values()],
                "updated_at": datetime.now().isoformat(),
            }, f, indent=2)

    def set_capacity(
        self,
        user_id: str,
        max_leads: int,
        specialties: Optional[List[str]] = None,
        availability: bool = True,
        territory: Optional[str] = None
    ) -> TeamMemberCapacity:
        """Register a member or replace their limits, keeping the current count."""
        if not user_id:
            raise ValidationError("Team member must have a user id")
        _validate_count(max_leads, "max_leads")

        with self._lock:
            existing = self._members.get(user_id)
            member = TeamMemberCapacity(
                user_id=user_id,
                max_leads=max_leads,
                current_leads=existing.current_leads if existing else 0,
                specialties=list(specialties or []),
                availability=bool(availability),
                territory=territory,
            )
            self._members[user_id] = member
            self._save_data()
        return member

    def _require(self, user_id: str) -> TeamMemberCapacity:
        member = self._members.get(user_id)
        if member is None:
            raise NotFoundError(f"Team member {user_id} not found")
        return member

    def update_current_leads(self, user_id: str, current_leads: int) -> TeamMemberCapacity:
        _validate_count(current_leads, "current_leads")
        with self._lock:
            member = replace(self._require(user_id), current_leads=current_leads)
            self._members[user_id] = member
            self._save_data()
        return member

    def set_availability(self, user_id: str, available: bool) -> TeamMemberCapacity:
        with self._lock:
            member = replace(self._require(user_id), availability=bool(available))
            self._members[user_id] = member
            self._save_data()
        logger.info(f"Team member {user_id} is now {'available' if available else 'unavailable'}")
        return member

    def remove(self, user_id: str):
        with self._lock:
            self._require(user_id)
            del self._members[user_id]
            self._save_data()

    def reset_current_leads(self):
        """Zero every member's lead count."""
        with self._lock:
            for user_id, member in self._members.items():
                self._members[user_id] = replace(member, current_leads=0)
            self._save_data()

    def get(self, user_id: str) -> Optional[TeamMemberCapacity]:
        return self._members.get(user_id)

    def list_all(self) -> List[TeamMemberCapacity]:
        with self._lock:
            return list(self._members.values())

    def list_available(self) -> List[TeamMemberCapacity]:
        """Members flagged available, regardless of load."""
        return [m for m in self.list_all() if m.availability]

    def list_with_spare_capacity(self) -> List[TeamMemberCapacity]:
        """Members that are available and below their lead limit."""
        return [m for m in self.list_all() if m.can_receive_leads]

    def validate(self, user_id: str) -> bool:
        """True if the member exists, is available and is under capacity."""
        member = self._members.get(user_id)
        return member is not None and member.can_receive_leads

    def reserve(self, user_id: str) -> bool:
        """Atomically check capacity and take one lead slot."""
        with self._lock:
            member = self._members.get(user_id)
            if member is None or not member.can_receive_leads:
                return False
            self._members[user_id] = replace(member, current_leads=member.current_leads + 1)
            self._save_data()
            return True
