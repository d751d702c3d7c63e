"""Storage and validation of assignment rules and territories."""

import json
import logging
import shutil
import threading
from datetime import datetime
from itertools import count
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .models import (
    AssignmentAction,
    AssignmentRule,
    ConditionOperator,
    RuleCondition,
    Territory,
)

logger = logging.getLogger(__name__)


def validate_condition(condition: RuleCondition):
    """Raise ValidationError if a condition is malformed."""
    if not condition.field or not isinstance(condition.field, str):
        raise ValidationError("Condition must have a valid field")
    if not isinstance(condition.operator, ConditionOperator):
        valid = ", ".join(op.value for op in ConditionOperator)
        raise ValidationError(f"Invalid operator. Must be one of: {valid}")
    if condition.value is None:
        raise ValidationError("Condition must have a value")


def _validate_priority(priority, kind: str):
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError(f"{kind} priority must be an integer")
    if priority < 0:
        raise ValidationError(f"{kind} priority must be non-negative")


def validate_rule(rule: AssignmentRule):
    """Raise ValidationError if a rule is malformed."""
    if not rule.id:
        raise ValidationError("Rule must have an id")
    if not isinstance(rule.name, str) or not rule.name.strip():
        raise ValidationError("Rule must have a name")
    if not isinstance(rule.conditions, list) or not rule.conditions:
        raise ValidationError("Rule must have at least one condition")
    for condition in rule.conditions:
        validate_condition(condition)
    if not isinstance(rule.action, AssignmentAction) or not rule.action.type or not rule.action.target:
        raise ValidationError("Rule must have a valid action")
    _validate_priority(rule.priority, "Rule")


def validate_territory(territory: Territory):
    """Raise ValidationError if a territory is malformed."""
    if not territory.id:
        raise ValidationError("Territory must have an id")
    if not isinstance(territory.name, str) or not territory.name.strip():
        raise ValidationError("Territory must have a name")
    if not isinstance(territory.regions, list) or not territory.regions:
        raise ValidationError("Territory must have at least one region")
    if not all(isinstance(r, str) and r for r in territory.regions):
        raise ValidationError("Territory regions must be non-empty strings")
    if not isinstance(territory.assigned_users, list) or not territory.assigned_users:
        raise ValidationError("Territory must have at least one assigned user")
    if not all(isinstance(u, str) and u for u in territory.assigned_users):
        raise ValidationError("Territory assigned users must be non-empty strings")
    _validate_priority(territory.priority, "Territory")


_UPDATE_ALIASES = {"isActive": "is_active", "assignedUsers": "assigned_users"}


def _merge(current, updates: Dict[str, Any], factory):
    """Apply a partial update to a rule or territory dataclass."""
    data = current.to_dict()
    updates = {_UPDATE_ALIASES.get(k, k): v for k, v in updates.items()}
    unknown = set(updates) - set(data)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    if "id" in updates and str(updates["id"]) != current.id:
        raise ValidationError("Id cannot be changed")
    data.update(updates)
    return factory(data)


class RuleStore:
    """Owns assignment rules and territories.

    Both collections are kept sorted by descending priority, with ties
    broken by insertion order. Mutations build a new list and swap it in,
    so readers always see a complete snapshot.
    """

    def __init__(self, data_path: Optional[Path] = None):
        self.data_path = data_path
        self._lock = threading.RLock()
        self._sequence = count()
        self._inserted: Dict[str, int] = {}
        self._rules: List[AssignmentRule] = []
        self._territories: List[Territory] = []
        self._load_data()

    def _load_data(self):
        if not self.data_path or not self.data_path.exists():
            return
        try:
            with open(self.data_path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading assignment rules: {e}")
            self._backup_data()
            return

        skipped = 0
        sections = [
            ("rule", data.get("rules", []), AssignmentRule.from_dict, self.add_rule),
            ("territory", data.get("territories", []), Territory.from_dict, self.add_territory),
        ]
        for kind, records, factory, add in sections:
            for record in records:
                if not isinstance(record, dict):
                    skipped += 1
                    logger.error(f"Skipping malformed {kind} record: {record!r}")
                    continue
                try:
                    item = add(factory(record), persist=False)
                except ValidationError as e:
                    skipped += 1
                    logger.error(f"Skipping invalid {kind} {record.get('id')}: {e}")
                    continue
                if isinstance(record.get("seq"), int):
                    self._inserted[f"{kind}:{item.id}"] = record["seq"]

        # Stored sequence numbers keep tie order stable across restarts
        self._rules = self._sorted(self._rules, "rule")
        self._territories = self._sorted(self._territories, "territory")
        self._sequence = count(max(self._inserted.values(), default=-1) + 1)

        if skipped:
            self._backup_data()
        logger.info(f"Loaded {len(self._rules)} rules and {len(self._territories)} territories")

    def _backup_data(self):
        """Copy the rules file aside before skipped records are overwritten."""
        backup = self.data_path.with_name(f"{self.data_path.name}.{datetime.now():%Y%m%d%H%M%S%f}.bak")
        try:
            shutil.copy2(self.data_path, backup)
            logger.warning(f"Original rules file preserved as {backup}")
        except OSError as e:
            logger.error(f"Could not back up rules file: {e}")

    def _save_data(self):
        if not self.data_path:
            return
        self.data_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "rules": [dict(r.to_dict(), seq=self._inserted[f"rule:{r.id}"]) for r in self._rules],
            "territories": [
                dict(t.to_dict(), seq=self._inserted[f"territory:{t.id}"]) for t in self._territories
            ],
            "updated_at": datetime.now().isoformat(),
        }
        with open(self.data_path, 'w') as f:
            json.dump(data, f, indent=2)

    def _sorted(self, items: list, prefix: str) -> list:
        return sorted(items, key=lambda i: (-i.priority, self._inserted[f"{prefix}:{i.id}"]))

    # Rules

    def add_rule(self, rule: AssignmentRule, persist: bool = True) -> AssignmentRule:
        """Validate and add a rule."""
        validate_rule(rule)
        with self._lock:
            if any(r.id == rule.id for r in self._rules):
                raise ValidationError(f"Rule {rule.id} already exists")
            self._inserted[f"rule:{rule.id}"] = next(self._sequence)
            self._rules = self._sorted(self._rules + [rule], "rule")
            if persist:
                self._save_data()
        logger.info(f"Added assignment rule {rule.name!r} (priority {rule.priority})")
        return rule

    def update_rule(self, rule_id: str, updates: Dict[str, Any]) -> AssignmentRule:
        """Apply a partial update to a rule."""
        with self._lock:
            current = self.get_rule(rule_id)
            if current is None:
                raise NotFoundError(f"Rule {rule_id} not found")
            updated = _merge(current, updates, AssignmentRule.from_dict)
            validate_rule(updated)
            rules = [updated if r.id == rule_id else r for r in self._rules]
            self._rules = self._sorted(rules, "rule")
            self._save_data()
        return updated

    def set_rule_active(self, rule_id: str, is_active: bool) -> AssignmentRule:
        """Enable or disable a rule."""
        return self.update_rule(rule_id, {"is_active": bool(is_active)})

    def delete_rule(self, rule_id: str):
        with self._lock:
            if self.get_rule(rule_id) is None:
                raise NotFoundError(f"Rule {rule_id} not found")
            self._rules = [r for r in self._rules if r.id != rule_id]
            self._inserted.pop(f"rule:{rule_id}", None)
            self._save_data()
        logger.info(f"Deleted assignment rule {rule_id}")

    def get_rule(self, rule_id: str) -> Optional[AssignmentRule]:
        return next((r for r in self._rules if r.id == rule_id), None)

    def list_all_rules(self) -> List[AssignmentRule]:
        return list(self._rules)

    def list_active_rules(self) -> List[AssignmentRule]:
        return [r for r in self._rules if r.is_active]

    # Territories

    def add_territory(self, territory: Territory, persist: bool = True) -> Territory:
        """Validate and add a territory."""
        validate_territory(territory)
        with self._lock:
            if any(t.id == territory.id for t in self._territories):
                raise ValidationError(f"Territory {territory.id} already exists")
            self._inserted[f"territory:{territory.id}"] = next(self._sequence)
            self._territories = self._sorted(self._territories + [territory], "territory")
            if persist:
                self._save_data()
        logger.info(f"Added territory {territory.name!r} covering {len(territory.regions)} regions")
        return territory

    def update_territory(self, territory_id: str, updates: Dict[str, Any]) -> Territory:
        with self._lock:
            current = self.get_territory(territory_id)
            if current is None:
                raise NotFoundError(f"Territory {territory_id} not found")
            updated = _merge(current, updates, Territory.from_dict)
            validate_territory(updated)
            territories = [updated if t.id == territory_id else t for t in self._territories]
            self._territories = self._sorted(territories, "territory")
            self._save_data()
        return updated

    def delete_territory(self, territory_id: str):
        with self._lock:
            if self.get_territory(territory_id) is None:
                raise NotFoundError(f"Territory {territory_id} not found")
            self._territories = [t for t in self._territories if t.id != territory_id]
            self._inserted.pop(f"territory:{territory_id}", None)
            self._save_data()
        logger.info(f"Deleted territory {territory_id}")

    def get_territory(self, territory_id: str) -> Optional[Territory]:
        return next((t for t in self._territories if t.id == territory_id), None)

    def list_territories(self) -> List[Territory]:
        return list(self._territories)

    def find_matching_territory(self, region: Optional[str]) -> Optional[Territory]:
        """Highest-priority territory covering the region, if any."""
        if not region:
            return None
        for territory in self._territories:
            if territory.covers(region):
                return territory
        return None
