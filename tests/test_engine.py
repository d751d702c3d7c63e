"""Tests for the assignment engine and its strategies."""

import math
import threading

import pytest

from lead_assignment.assignment import (
    AssignmentType,
    Lead,
    NoAssigneeFound,
    NotFoundError,
    ValidationError,
    calculate_priority_score,
    create_engine,
)
from lead_assignment.assignment.engine import DEADLINE_EXCEEDED, rank_by_load

from conftest import make_rule, make_territory


def lead(lead_id="lead-1", **kwargs):
    return Lead(id=lead_id, **kwargs)


def run_threads(worker, count):
    threads = [threading.Thread(target=worker, args=(n,)) for n in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


class TestRuleBasedAssignment:
    """Tests for rule matching through the engine."""

    def test_matching_rule_assigns_target(self, engine):
        engine.rule_store.add_rule(make_rule("r1", target="user-1", priority=10))
        engine.capacity.set_capacity("user-1", 10)

        result = engine.assign(lead(source="Referral"))

        assert result.success is True
        assert result.assigned_to == "user-1"
        assert result.assignment_type == AssignmentType.RULE
        assert result.rule.id == "r1"

        history = engine.get_assignment_history("lead-1")
        assert len(history) == 1
        assert history[0].rule_name == "Rule r1"
        assert history[0].assigned_by == "system"

    def test_unavailable_target_falls_through(self, engine):
        """An invalid rule target never produces a successful rule assignment."""
        engine.rule_store.add_rule(make_rule("r1", target="user-1"))
        engine.capacity.set_capacity("user-1", 10, availability=False)
        engine.capacity.set_capacity("user-2", 10)

        result = engine.assign(lead(source="Referral"))

        assert result.success
        assert result.assigned_to == "user-2"
        assert result.assignment_type == AssignmentType.ROUND_ROBIN

    def test_unavailable_target_falls_to_territory(self, engine):
        engine.rule_store.add_rule(make_rule("r1", target="user-1"))
        engine.rule_store.add_territory(make_territory("west", ["california"], ["user-3"]))
        engine.capacity.set_capacity("user-1", 10, availability=False)
        engine.capacity.set_capacity("user-3", 10)

        result = engine.assign(lead(source="Referral", region="California"))

        assert result.assignment_type == AssignmentType.TERRITORY
        assert result.assigned_to == "user-3"
        assert result.territory.id == "west"

    def test_next_matching_rule_used_when_first_target_full(self, engine):
        engine.rule_store.add_rule(make_rule("first", target="user-1", priority=10))
        engine.rule_store.add_rule(make_rule("second", target="user-2", priority=5))
        engine.capacity.set_capacity("user-1", 1)
        engine.capacity.update_current_leads("user-1", 1)
        engine.capacity.set_capacity("user-2", 10)

        result = engine.assign(lead(source="Referral"))

        assert result.assigned_to == "user-2"
        assert result.rule.id == "second"

    def test_inactive_rules_ignored(self, engine):
        engine.rule_store.add_rule(make_rule("r1", target="user-1", is_active=False))
        engine.capacity.set_capacity("user-1", 10)
        engine.capacity.set_capacity("user-2", 10)

        result = engine.assign_by_rules(lead(source="Referral"))

        assert not result.success
        assert result.reason == "No matching rules found"

    def test_matched_rule_always_satisfies_conditions(self, engine):
        engine.rule_store.add_rule(make_rule("score", target="user-1", priority=5,
                                             conditions=[("score", "greaterThan", 80)]))
        engine.rule_store.add_rule(make_rule("web", target="user-2", priority=1,
                                             conditions=[("source", "equals", "Web")]))
        engine.capacity.set_capacity("user-1", 10)
        engine.capacity.set_capacity("user-2", 10)

        result = engine.assign(lead(score=40, source="Web"))

        assert result.rule.id == "web"


class TestTerritoryAssignment:
    """Tests for territory-based assignment."""

    def test_first_valid_user_in_list_order(self, engine):
        engine.rule_store.add_territory(make_territory("west", ["california"], ["u1", "u2", "u3"]))
        engine.capacity.set_capacity("u1", 10, availability=False)
        engine.capacity.set_capacity("u2", 1)
        engine.capacity.update_current_leads("u2", 1)
        engine.capacity.set_capacity("u3", 10)

        result = engine.assign_by_territory(lead(region="CALIFORNIA"))

        assert result.assigned_to == "u3"
        assert engine.get_assignment_history()[0].territory_id == "west"

    def test_no_region(self, engine):
        result = engine.assign_by_territory(lead())
        assert result.reason == "No matching territory found"

    def test_nobody_available(self, engine):
        engine.rule_store.add_territory(make_territory("west", ["california"], ["u1"]))
        result = engine.assign_by_territory(lead(region="california"))
        assert result.reason == "No available users in territory"
        assert engine.get_assignment_history() == []


class TestRoundRobin:
    """Tests for round-robin rotation."""

    def test_alternates_between_members(self, engine):
        engine.capacity.set_capacity("u1", 10)
        engine.capacity.set_capacity("u2", 10)

        assignees = [engine.assign(lead(f"lead-{i}")).assigned_to for i in range(3)]

        assert assignees == ["u1", "u2", "u1"]

    def test_each_member_once_before_repeat(self, engine):
        for user in ["a", "b", "c", "d"]:
            engine.capacity.set_capacity(user, 10)

        picks = [engine.assign(lead(f"lead-{i}")).assigned_to for i in range(5)]

        assert sorted(picks[:4]) == ["a", "b", "c", "d"]
        assert picks[4] == picks[0]

    def test_ignores_capacity_but_not_availability(self, engine):
        engine.capacity.set_capacity("full", 1)
        engine.capacity.update_current_leads("full", 1)
        engine.capacity.set_capacity("away", 10, availability=False)

        result = engine.assign_round_robin(lead())

        assert result.assigned_to == "full"

    def test_strict_capacity_skips_full_members(self, engine):
        engine.capacity.set_capacity("full", 1)
        engine.capacity.update_current_leads("full", 1)
        engine.update_config({"strict_capacity": True})

        result = engine.assign_round_robin(lead())

        assert not result.success

    def test_no_members(self, engine):
        result = engine.assign(lead())
        assert not result.success
        assert result.reason == "No available team members"
        assert engine.get_assignment_history() == []

    def test_concurrent_callers_share_one_rotation(self, engine):
        """Each call advances the index exactly once, even across threads."""
        members = ["a", "b", "c", "d"]
        for user in members:
            engine.capacity.set_capacity(user, 1000)
        threads_count, calls_per_thread = 8, 30

        def worker(n):
            for i in range(calls_per_thread):
                engine.assign_round_robin(lead(f"lead-{n}-{i}"))

        run_threads(worker, threads_count)

        counts = engine.get_assignment_stats()["by_user"]
        expected = threads_count * calls_per_thread // len(members)
        assert counts == {user: expected for user in members}

    def test_rotation_index_persists(self, temp_data_dir):
        first = create_engine(temp_data_dir)
        first.capacity.set_capacity("u1", 10)
        first.capacity.set_capacity("u2", 10)
        assert first.assign(lead("a")).assigned_to == "u1"

        second = create_engine(temp_data_dir)
        assert second.assign(lead("b")).assigned_to == "u2"


class TestLoadBalanced:
    """Tests for load-balanced assignment."""

    def setup_members(self, engine):
        for user, current in [("u1", 2), ("u2", 5), ("u3", 1)]:
            engine.capacity.set_capacity(user, 10)
            engine.capacity.update_current_leads(user, current)
        engine.update_config({"default_strategy": "load_balance"})

    def test_least_loaded_first_and_incremented(self, engine):
        self.setup_members(engine)

        result = engine.assign(lead())

        assert result.assigned_to == "u3"
        assert result.assignment_type == AssignmentType.LOAD_BALANCE
        assert engine.capacity.get("u3").current_leads == 2

        # u1 and u3 now tie at 0.2; the earlier registration wins
        assert engine.assign(lead("lead-2")).assigned_to == "u1"

    def test_ranking_is_idempotent(self, engine):
        self.setup_members(engine)
        members = engine.capacity.list_with_spare_capacity()
        assert rank_by_load(members) == rank_by_load(rank_by_load(members))

    def test_concurrent_callers_never_overfill(self, engine):
        limits = {"u1": 5, "u2": 7, "u3": 3}
        for user, max_leads in limits.items():
            engine.capacity.set_capacity(user, max_leads)
        results = []

        def worker(n):
            for i in range(5):
                results.append(engine.assign_load_balanced(lead(f"lead-{n}-{i}")))

        run_threads(worker, 8)

        assert len([r for r in results if r.success]) == sum(limits.values())
        for user, max_leads in limits.items():
            assert engine.capacity.get(user).current_leads == max_leads
        assert len(engine.get_assignment_history()) == sum(limits.values())

    def test_skips_full_and_unavailable(self, engine):
        engine.capacity.set_capacity("full", 3)
        engine.capacity.update_current_leads("full", 3)
        engine.capacity.set_capacity("away", 10, availability=False)

        result = engine.assign_load_balanced(lead())

        assert not result.success
        assert result.reason == "No available team members with capacity"


class TestPriorityAssignment:
    """Tests for priority-based assignment."""

    def test_score_formula(self):
        assert calculate_priority_score(Lead(id="a", score=50, status="Hot")) == 80
        assert calculate_priority_score(Lead(id="b", score=10, status="Warm")) == 25
        assert calculate_priority_score(Lead(id="c", status="Cold")) == 0
        assert calculate_priority_score(Lead(id="d", score=5, deal_size=1000)) == pytest.approx(8)
        assert calculate_priority_score(Lead(id="e", deal_size=50000)) == pytest.approx(math.log10(50000))

    def test_most_specialties_wins(self, engine):
        engine.capacity.set_capacity("generalist", 10, ["smb"])
        engine.capacity.set_capacity("specialist", 10, ["smb", "enterprise", "saas"])
        engine.capacity.set_capacity("away", 10, ["a", "b", "c", "d"], availability=False)
        engine.update_config({"default_strategy": "priority"})

        result = engine.assign(lead(score=50, status="Hot"))

        assert result.assigned_to == "specialist"
        assert result.assignment_type == AssignmentType.PRIORITY

    def test_unassigned_leads_stay_queued_by_priority(self, engine):
        engine.update_config({"default_strategy": "priority"})

        engine.assign(lead("cold", score=10))
        engine.assign(lead("hot", score=10, status="Hot"))
        engine.assign(lead("warm", score=10, status="Warm"))

        queue = engine.get_queue()
        assert [item.lead.id for item in queue] == ["hot", "warm", "cold"]
        assert [item.priority for item in queue] == [40, 25, 10]
        assert all(item.attempts == 1 for item in queue)

    def test_assigned_leads_leave_the_queue(self, engine):
        engine.capacity.set_capacity("u1", 10)
        engine.update_config({"default_strategy": "priority"})

        for i in range(50):
            assert engine.assign(lead(f"lead-{i}", score=i)).success

        assert engine.get_queue() == []
        assert engine.get_assignment_stats()["queued_leads"] == 0

    def test_retry_replaces_queued_item(self, engine):
        engine.apply_strategy("priority", lead("a", score=5))
        engine.apply_strategy("priority", lead("a", score=5))

        queue = engine.get_queue()
        assert len(queue) == 1
        assert queue[0].attempts == 2

        engine.capacity.set_capacity("u1", 10)
        assert engine.apply_strategy("priority", lead("a", score=5)).success
        assert engine.get_queue() == []

    def test_no_available_members(self, engine):
        result = engine.apply_strategy("priority", lead())
        assert not result.success
        assert result.reason == "No available team members for high-priority lead"
        assert len(engine.get_queue()) == 1


class TestFallbackChain:
    """Tests for the engine orchestration."""

    def test_unknown_default_strategy_uses_round_robin(self, engine):
        engine.capacity.set_capacity("u1", 10)
        engine.update_config({"default_strategy": "coin_flip"})

        result = engine.assign(lead())

        assert result.assignment_type == AssignmentType.ROUND_ROBIN

    def test_territory_default_strategy(self, engine):
        engine.rule_store.add_territory(make_territory("west", ["california"], ["u1"]))
        engine.update_config({"default_strategy": "territory"})

        result = engine.assign(lead(region="california"))

        assert not result.success
        assert result.reason == "No available users in territory"

    def test_history_recorded_once_per_success(self, engine):
        engine.rule_store.add_rule(make_rule("r1", target="u1"))
        engine.capacity.set_capacity("u1", 10)
        engine.capacity.set_capacity("u2", 10)

        engine.assign(lead("a", source="Referral"))
        engine.assign(lead("b", source="Web"))

        history = engine.get_assignment_history()
        assert [(h.lead_id, h.assignment_type) for h in history] == [
            ("a", AssignmentType.RULE),
            ("b", AssignmentType.ROUND_ROBIN),
        ]

    def test_expired_deadline_reports_unassigned(self, engine):
        engine.capacity.set_capacity("u1", 10)

        result = engine.assign(lead(), timeout=0)

        assert not result.success
        assert result.reason == DEADLINE_EXCEEDED
        assert engine.get_assignment_history() == []

    def test_accepts_plain_dict(self, engine):
        engine.rule_store.add_rule(make_rule("r1", target="u1",
                                             conditions=[("customFields.industry", "equals", "SaaS")]))
        engine.capacity.set_capacity("u1", 10)

        result = engine.assign({"id": "lead-7", "customFields": {"industry": "SaaS"}})

        assert result.assigned_to == "u1"

    def test_unwrap(self, engine):
        result = engine.assign(lead())
        with pytest.raises(NoAssigneeFound):
            result.unwrap()

        engine.capacity.set_capacity("u1", 10)
        assert engine.assign(lead("lead-2")).unwrap() == "u1"

    def test_enrichment_does_not_mutate_input(self, engine):
        engine.capacity.set_capacity("u1", 10)
        original = lead(score=20, status="Hot")

        engine.assign(original)

        assert original.priority is None


class TestManualAssignment:
    """Tests for manual reassignment."""

    def test_reassign_records_manual_entry(self, engine):
        engine.capacity.set_capacity("u1", 10)
        engine.capacity.set_capacity("u2", 10)
        engine.assign(lead())

        result = engine.reassign("lead-1", "u2", assigned_by="manager")

        assert result.assigned_to == "u2"
        history = engine.get_assignment_history("lead-1")
        assert history[-1].assignment_type == AssignmentType.MANUAL
        assert history[-1].assigned_by == "manager"

    def test_reassignment_disabled(self, engine):
        engine.capacity.set_capacity("u1", 10)
        engine.assign(lead())
        engine.update_config({"allowReassignment": False})

        with pytest.raises(ValidationError):
            engine.reassign("lead-1", "u1")

    def test_unknown_user(self, engine):
        with pytest.raises(NotFoundError):
            engine.reassign("lead-1", "ghost")

    def test_stats(self, engine):
        engine.capacity.set_capacity("u1", 10)
        engine.assign(lead("a"))
        engine.assign(lead("b"))
        engine.reassign("b", "u1")

        stats = engine.get_assignment_stats()

        assert stats["total_assignments"] == 3
        assert stats["by_type"] == {"round_robin": 2, "manual": 1}
        assert stats["by_user"] == {"u1": 3}
        assert stats["success_rate"] == 100.0
        assert stats["team_workload"][0]["user_id"] == "u1"
