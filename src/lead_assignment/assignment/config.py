"""Process-wide assignment configuration."""

import json
import logging
import threading
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ValidationError
from .models import AssignmentStrategy

logger = logging.getLogger(__name__)

_CAMEL_KEYS = {
    "defaultStrategy": "default_strategy",
    "maxAttempts": "max_attempts",
    "retryDelayMinutes": "retry_delay_minutes",
    "workHoursOnly": "work_hours_only",
    "allowReassignment": "allow_reassignment",
    "notifyOnAssignment": "notify_on_assignment",
    "strictCapacity": "strict_capacity",
}


@dataclass
class AssignmentConfig:
    """Assignment settings shared by every engine call."""

    # Strategy tried after rule and territory matching; unknown values
    # fall back to round robin at dispatch time
    default_strategy: str = AssignmentStrategy.ROUND_ROBIN.value
    max_attempts: int = 3
    retry_delay_minutes: int = 5
    work_hours_only: bool = True
    allow_reassignment: bool = True
    notify_on_assignment: bool = True

    # Require spare capacity for round robin and priority picks too
    strict_capacity: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _check_type(name: str, value: Any, expected: type):
    if expected is int and isinstance(value, bool):
        raise ValidationError(f"{name} must be of type int")
    if not isinstance(value, expected):
        raise ValidationError(f"{name} must be of type {expected.__name__}")


class AssignmentConfigManager:
    """Get and merge-update the assignment config, persisting it when a path is given."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self._lock = threading.Lock()
        self._types = {f.name: type(f.default) for f in fields(AssignmentConfig)}
        self.config = self._load_config()

    def _load_config(self) -> AssignmentConfig:
        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                return replace(AssignmentConfig(), **self._normalize(data))
            except (OSError, ValueError, ValidationError) as e:
                logger.error(f"Error loading assignment config: {e}")
        return AssignmentConfig()

    def save_config(self):
        if not self.config_path:
            return
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.config.to_dict(), f, indent=2)

    def _normalize(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        normalized = {}
        for key, value in updates.items():
            if isinstance(value, AssignmentStrategy):
                value = value.value
            name = _CAMEL_KEYS.get(key, key)
            if name not in self._types:
                raise ValidationError(f"Unknown config option: {key}")
            _check_type(name, value, self._types[name])
            normalized[name] = value
        return normalized

    def get_config(self) -> AssignmentConfig:
        """A copy of the current config."""
        return replace(self.config)

    def update_config(self, updates: Dict[str, Any]) -> AssignmentConfig:
        """Merge the given options into the config."""
        normalized = self._normalize(updates)
        with self._lock:
            self.config = replace(self.config, **normalized)
            self.save_config()
        logger.info(f"Assignment config updated: {', '.join(sorted(normalized))}")
        return self.get_config()
