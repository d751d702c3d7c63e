"""Lead assignment: rules, territories, capacity and routing strategies."""

from .models import (
    Lead,
    RuleCondition,
    ConditionOperator,
    AssignmentAction,
    ActionType,
    AssignmentRule,
    Territory,
    TeamMemberCapacity,
    AssignmentHistoryEntry,
    AssignmentQueueItem,
    AssignmentResult,
    AssignmentStrategy,
    AssignmentType,
)
from .errors import AssignmentError, ValidationError, NotFoundError, NoAssigneeFound
from .conditions import evaluate_condition, evaluate_rule
from .rules import RuleStore
from .capacity import CapacityTracker
from .history import AssignmentHistoryLog
from .queue import AssignmentQueue
from .enrichment import LeadEnricher, calculate_priority_score
from .config import AssignmentConfig, AssignmentConfigManager
from .engine import AssignmentEngine, create_engine

__all__ = [
    'Lead',
    'RuleCondition',
    'ConditionOperator',
    'AssignmentAction',
    'ActionType',
    'AssignmentRule',
    'Territory',
    'TeamMemberCapacity',
    'AssignmentHistoryEntry',
    'AssignmentQueueItem',
    'AssignmentResult',
    'AssignmentStrategy',
    'AssignmentType',
    'AssignmentError',
    'ValidationError',
    'NotFoundError',
    'NoAssigneeFound',
    'evaluate_condition',
    'evaluate_rule',
    'RuleStore',
    'CapacityTracker',
    'AssignmentHistoryLog',
    'AssignmentQueue',
    'LeadEnricher',
    'calculate_priority_score',
    'AssignmentConfig',
    'AssignmentConfigManager',
    'AssignmentEngine',
    'create_engine',
]
