"""Evaluation of rule conditions against leads.

Conditions address lead data with dotted paths such as ``source``,
``score`` or ``customFields.industry``. Paths are resolved through
:data:`LEAD_FIELDS`, which maps both the camelCase names used by the CRM
front end and the snake_case attribute names onto :class:`Lead` attributes.
A path that cannot be resolved makes the condition fail for every
operator.
"""

import logging
from typing import Any, Optional

from .models import AssignmentRule, ConditionOperator, Lead, RuleCondition

logger = logging.getLogger(__name__)

_MISSING = object()

CUSTOM_FIELDS_SEGMENT = "customFields"

LEAD_FIELDS = {
    "id": "id",
    "company": "company",
    "email": "email",
    "phone": "phone",
    "score": "score",
    "status": "status",
    "source": "source",
    "region": "region",
    "assignedTo": "assigned_to",
    "assigned_to": "assigned_to",
    "customFields": "custom_fields",
    "custom_fields": "custom_fields",
    "priority": "priority",
    "industry": "industry",
    "dealSize": "deal_size",
    "deal_size": "deal_size",
}


def _resolve_segment(current: Any, segment: str) -> Any:
    if isinstance(current, Lead):
        attr = LEAD_FIELDS.get(segment)
        if attr is None:
            return _MISSING
        return getattr(current, attr)
    if isinstance(current, dict):
        return current.get(segment, _MISSING)
    if isinstance(current, (list, tuple)) and segment.isdigit():
        index = int(segment)
        return current[index] if index < len(current) else _MISSING
    return _MISSING


def get_field_value(lead: Lead, path: str) -> Any:
    """Resolve a dotted path on a lead. Returns None when any segment is absent."""
    current: Any = lead
    for segment in path.split("."):
        if segment == CUSTOM_FIELDS_SEGMENT and isinstance(current, Lead):
            current = current.custom_fields
            continue
        current = _resolve_segment(current, segment)
        if current is _MISSING or current is None:
            return None
    return current


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equals(left: Any, right: Any) -> bool:
    """Equality without cross-type coercion (``True`` never equals ``1``)."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def evaluate_condition(condition: RuleCondition, lead: Lead) -> bool:
    """Evaluate one condition. Never raises for missing fields."""
    value = get_field_value(lead, condition.field)
    if value is None:
        return False

    operator = condition.operator
    if operator == ConditionOperator.EQUALS:
        return strict_equals(value, condition.value)
    if operator == ConditionOperator.NOT_EQUALS:
        return not strict_equals(value, condition.value)
    if operator == ConditionOperator.CONTAINS:
        return str(condition.value).lower() in str(value).lower()
    if operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        left, right = _as_number(value), _as_number(condition.value)
        if left is None or right is None:
            return False
        if operator == ConditionOperator.GREATER_THAN:
            return left > right
        return left < right

    logger.warning(f"Unsupported condition operator: {operator}")
    return False


def evaluate_rule(rule: AssignmentRule, lead: Lead) -> bool:
    """True when every condition of the rule matches (AND)."""
    return all(evaluate_condition(condition, lead) for condition in rule.conditions)
