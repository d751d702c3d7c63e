"""Shared fixtures for assignment tests."""

import tempfile
from pathlib import Path

import pytest

from lead_assignment.assignment import (
    AssignmentAction,
    ActionType,
    AssignmentRule,
    RuleCondition,
    Territory,
    create_engine,
)


def make_rule(rule_id, target="user-1", priority=0, conditions=None, name=None, is_active=True):
    """Build a rule from (field, operator, value) tuples."""
    conditions = conditions or [("source", "equals", "Referral")]
    return AssignmentRule(
        id=rule_id,
        name=name or f"Rule {rule_id}",
        priority=priority,
        conditions=[
            RuleCondition.from_dict({"field": f, "operator": op, "value": v})
            for f, op, v in conditions
        ],
        action=AssignmentAction(type=ActionType.ASSIGN_TO_USER, target=target),
        is_active=is_active,
    )


def make_territory(territory_id, regions, users, priority=0):
    return Territory(
        id=territory_id,
        name=f"Territory {territory_id}",
        regions=list(regions),
        assigned_users=list(users),
        priority=priority,
    )


@pytest.fixture
def temp_data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def engine():
    """In-memory engine with no rules, territories or team members."""
    return create_engine()
