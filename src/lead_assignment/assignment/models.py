"""Data models for lead assignment."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import NoAssigneeFound, ValidationError


class ConditionOperator(Enum):
    """Comparison operators available to rule conditions."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


class ActionType(Enum):
    """What a matched rule does with its target."""
    ASSIGN_TO_USER = "assign_to_user"
    ASSIGN_TO_TEAM = "assign_to_team"
    ROUND_ROBIN = "round_robin"
    LOAD_BALANCE = "load_balance"


class AssignmentStrategy(Enum):
    """Strategies selectable as the configured default."""
    RULE_BASED = "rule_based"
    ROUND_ROBIN = "round_robin"
    LOAD_BALANCE = "load_balance"
    TERRITORY = "territory"
    PRIORITY = "priority"


class AssignmentType(Enum):
    """How an assignment in the history was made."""
    RULE = "rule"
    ROUND_ROBIN = "round_robin"
    LOAD_BALANCE = "load_balance"
    TERRITORY = "territory"
    PRIORITY = "priority"
    MANUAL = "manual"


def _pick(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Read a key that may arrive in snake_case or camelCase."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _list_field(data: Dict[str, Any], snake: str, camel: str, label: str) -> List[Any]:
    """A list-valued key; a bare string or other scalar is rejected, not split."""
    value = _pick(data, snake, camel)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{label} must be a list")
    return list(value)


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class Lead:
    """An inbound lead, plus the routing attributes added by enrichment."""

    id: str
    company: str = ""
    email: str = ""
    phone: str = ""
    score: float = 0
    status: str = ""
    source: str = ""
    region: Optional[str] = None
    assigned_to: Optional[str] = None
    custom_fields: Dict[str, Any] = field(default_factory=dict)

    # Filled in by LeadEnricher
    priority: Optional[float] = None
    industry: Optional[str] = None
    deal_size: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Lead":
        if not data.get("id"):
            raise ValidationError("Lead must have an id")
        return cls(
            id=str(data["id"]),
            company=data.get("company") or "",
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            score=data.get("score") or 0,
            status=data.get("status") or "",
            source=data.get("source") or "",
            region=data.get("region"),
            assigned_to=_pick(data, "assigned_to", "assignedTo"),
            custom_fields=dict(_pick(data, "custom_fields", "customFields") or {}),
            priority=data.get("priority"),
            industry=data.get("industry"),
            deal_size=_pick(data, "deal_size", "dealSize"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RuleCondition:
    """A single predicate over a lead field."""

    field: str
    operator: ConditionOperator
    value: Any

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleCondition":
        if not isinstance(data, dict):
            raise ValidationError("Condition must be an object with field, operator and value")
        operator = data.get("operator")
        if not isinstance(operator, ConditionOperator):
            try:
                operator = ConditionOperator(operator)
            except ValueError:
                valid = ", ".join(op.value for op in ConditionOperator)
                raise ValidationError(f"Invalid operator. Must be one of: {valid}")
        return cls(field=data.get("field"), operator=operator, value=data.get("value"))

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "operator": self.operator.value, "value": self.value}


@dataclass
class AssignmentAction:
    """Where a matched rule sends the lead."""

    type: ActionType
    target: str
    fallback: Optional[str] = None  # informational only

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssignmentAction":
        if not isinstance(data, dict):
            raise ValidationError("Rule action must be an object with type and target")
        action_type = data.get("type")
        if action_type and not isinstance(action_type, ActionType):
            try:
                action_type = ActionType(action_type)
            except ValueError:
                valid = ", ".join(t.value for t in ActionType)
                raise ValidationError(f"Invalid action type. Must be one of: {valid}")
        return cls(type=action_type, target=data.get("target"), fallback=data.get("fallback"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value if self.type else None,
            "target": self.target,
            "fallback": self.fallback,
        }


@dataclass
class AssignmentRule:
    """A prioritized rule mapping matching leads to a target assignee."""

    id: str
    name: str
    priority: int
    conditions: List[RuleCondition]
    action: AssignmentAction
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssignmentRule":
        action = data.get("action")
        if action is not None and not isinstance(action, AssignmentAction):
            action = AssignmentAction.from_dict(action)
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            priority=data.get("priority", 0),
            conditions=[
                c if isinstance(c, RuleCondition) else RuleCondition.from_dict(c)
                for c in _list_field(data, "conditions", "conditions", "Rule conditions")
            ],
            action=action,
            is_active=_pick(data, "is_active", "isActive", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "conditions": [c.to_dict() for c in self.conditions],
            "action": self.action.to_dict() if self.action else None,
            "is_active": self.is_active,
        }


@dataclass
class Territory:
    """A set of regions served by an ordered pool of users."""

    id: str
    name: str
    regions: List[str]
    assigned_users: List[str]
    priority: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Territory":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            regions=_list_field(data, "regions", "regions", "Territory regions"),
            assigned_users=_list_field(data, "assigned_users", "assignedUsers", "Territory assigned users"),
            priority=data.get("priority", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def covers(self, region: str) -> bool:
        """Case-insensitive region membership."""
        region = region.lower()
        return any(r.lower() == region for r in self.regions)


@dataclass
class TeamMemberCapacity:
    """Lead capacity and availability for one team member."""

    user_id: str
    max_leads: int
    current_leads: int = 0
    specialties: List[str] = field(default_factory=list)
    availability: bool = True
    territory: Optional[str] = None

    @property
    def has_spare_capacity(self) -> bool:
        return self.current_leads < self.max_leads

    @property
    def can_receive_leads(self) -> bool:
        return self.availability and self.has_spare_capacity

    @property
    def load_ratio(self) -> float:
        if self.max_leads <= 0:
            return float("inf")
        return self.current_leads / self.max_leads

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamMemberCapacity":
        return cls(
            user_id=_pick(data, "user_id", "userId"),
            max_leads=_pick(data, "max_leads", "maxLeads", 0),
            current_leads=_pick(data, "current_leads", "currentLeads", 0),
            specialties=list(data.get("specialties") or []),
            availability=data.get("availability", True),
            territory=data.get("territory"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AssignmentHistoryEntry:
    """Audit record of one assignment decision."""

    lead_id: str
    assigned_to: str
    assignment_type: AssignmentType
    assigned_by: str = "system"
    assignment_date: datetime = field(default_factory=datetime.now)
    rule_name: Optional[str] = None
    territory_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssignmentHistoryEntry":
        return cls(
            lead_id=data["lead_id"],
            assigned_to=data["assigned_to"],
            assignment_type=AssignmentType(data["assignment_type"]),
            assigned_by=data.get("assigned_by", "system"),
            assignment_date=_parse_datetime(data.get("assignment_date")) or datetime.now(),
            rule_name=data.get("rule_name"),
            territory_id=data.get("territory_id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lead_id": self.lead_id,
            "assigned_to": self.assigned_to,
            "assigned_by": self.assigned_by,
            "assignment_date": self.assignment_date.isoformat(),
            "assignment_type": self.assignment_type.value,
            "rule_name": self.rule_name,
            "territory_id": self.territory_id,
        }


@dataclass
class AssignmentQueueItem:
    """A lead waiting in the priority queue."""

    lead: Lead
    priority: float
    attempts: int = 0
    last_attempt: Optional[datetime] = None
    preferred_assignee: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lead_id": self.lead.id,
            "priority": self.priority,
            "attempts": self.attempts,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else None,
            "preferred_assignee": self.preferred_assignee,
        }


@dataclass
class AssignmentResult:
    """Outcome of one strategy or of the whole fallback chain."""

    success: bool
    assigned_to: Optional[str] = None
    rule: Optional[AssignmentRule] = None
    territory: Optional[Territory] = None
    reason: Optional[str] = None
    assignment_type: Optional[AssignmentType] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def failure(cls, reason: str) -> "AssignmentResult":
        return cls(success=False, reason=reason)

    def unwrap(self) -> str:
        """Return the assignee, raising NoAssigneeFound on a failed result."""
        if not self.success or not self.assigned_to:
            raise NoAssigneeFound(self.reason or "No assignee found")
        return self.assigned_to

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "assigned_to": self.assigned_to,
            "assignment_type": self.assignment_type.value if self.assignment_type else None,
            "rule": self.rule.to_dict() if self.rule else None,
            "territory": self.territory.to_dict() if self.territory else None,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }
