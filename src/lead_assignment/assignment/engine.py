"""Lead assignment engine: strategy resolvers and the fallback chain."""

import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .capacity import CapacityTracker
from .conditions import evaluate_rule
from .config import AssignmentConfig, AssignmentConfigManager
from .enrichment import LeadEnricher
from .errors import NotFoundError, ValidationError
from .history import AssignmentHistoryLog
from .models import (
    AssignmentHistoryEntry,
    AssignmentQueueItem,
    AssignmentResult,
    AssignmentStrategy,
    AssignmentType,
    Lead,
    TeamMemberCapacity,
)
from .queue import AssignmentQueue
from .rules import RuleStore

logger = logging.getLogger(__name__)

DEADLINE_EXCEEDED = "Assignment deadline exceeded"


class AssignmentEngine:
    """Pick exactly one owner for each incoming lead.

    Strategies are tried in a fixed order: rule-based, territory-based,
    then the configured default strategy. The first successful result is
    returned and recorded in the history log. A failed chain is returned
    as an ordinary result with ``success=False``.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        capacity: CapacityTracker,
        history: AssignmentHistoryLog,
        config_manager: AssignmentConfigManager,
        enricher: Optional[LeadEnricher] = None,
        queue: Optional[AssignmentQueue] = None,
        state_path: Optional[Path] = None
    ):
        self.rule_store = rule_store
        self.capacity = capacity
        self.history = history
        self.config_manager = config_manager
        self.enricher = enricher or LeadEnricher()
        self.queue = queue or AssignmentQueue()
        self.state_path = state_path

        self._rotation_lock = threading.Lock()
        # Advanced before each pick, so the first pick lands on slot 0
        self._round_robin_index = -1
        self._load_state()

        self._resolvers = {
            AssignmentStrategy.RULE_BASED: self.assign_by_rules,
            AssignmentStrategy.ROUND_ROBIN: self.assign_round_robin,
            AssignmentStrategy.LOAD_BALANCE: self.assign_load_balanced,
            AssignmentStrategy.TERRITORY: self.assign_by_territory,
            AssignmentStrategy.PRIORITY: self.assign_by_priority,
        }

    def _load_state(self):
        if not self.state_path or not self.state_path.exists():
            return
        try:
            with open(self.state_path, 'r') as f:
                data = json.load(f)
            self._round_robin_index = int(data.get("round_robin_index", -1))
        except (OSError, ValueError) as e:
            logger.error(f"Error loading engine state: {e}")

    def _save_state(self):
        if not self.state_path:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_path, 'w') as f:
            json.dump({
                "round_robin_index": self._round_robin_index,
                "updated_at": datetime.now().isoformat(),
            }, f, indent=2)

    # Entry point

    def assign(self, lead: Union[Lead, Dict], timeout: Optional[float] = None) -> AssignmentResult:
        """Run the fallback chain for a lead.

        ``timeout`` is a budget in seconds; once it is spent no further
        strategy is started and a failed result is returned.
        """
        if isinstance(lead, dict):
            lead = Lead.from_dict(lead)
        deadline = time.monotonic() + timeout if timeout is not None else None
        enriched = self.enricher.enrich(lead)
        config = self.get_config()

        chain = [self.assign_by_rules, self.assign_by_territory]
        chain.append(self._resolve_default(config.default_strategy))

        result = AssignmentResult.failure("No assignee found")
        for resolver in chain:
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"Deadline exceeded while assigning lead {lead.id}")
                return AssignmentResult.failure(DEADLINE_EXCEEDED)
            result = resolver(enriched)
            if result.success:
                return result
            logger.debug(f"Lead {lead.id}: {resolver.__name__} failed: {result.reason}")

        logger.info(f"Lead {lead.id} left unassigned: {result.reason}")
        return result

    def _resolve_default(self, strategy: str):
        try:
            return self._resolvers[AssignmentStrategy(strategy)]
        except ValueError:
            logger.warning(f"Unknown default strategy {strategy!r}, using round robin")
            return self.assign_round_robin

    def apply_strategy(self, strategy: Union[AssignmentStrategy, str], lead: Lead) -> AssignmentResult:
        """Run a single strategy, without the fallback chain."""
        if isinstance(strategy, AssignmentStrategy):
            strategy = strategy.value
        return self._resolve_default(strategy)(self.enricher.enrich(lead))

    # Strategy resolvers

    def assign_by_rules(self, lead: Lead) -> AssignmentResult:
        """First active rule, by priority, that matches and has a valid target."""
        for rule in self.rule_store.list_active_rules():
            if not evaluate_rule(rule, lead):
                continue
            target = rule.action.target
            if self.capacity.validate(target):
                self._record(lead, target, AssignmentType.RULE, rule_name=rule.name)
                return AssignmentResult(
                    success=True,
                    assigned_to=target,
                    rule=rule,
                    assignment_type=AssignmentType.RULE,
                )
            logger.debug(f"Rule {rule.name!r} matched but {target} cannot take leads")

        return AssignmentResult.failure("No matching rules found")

    def assign_by_territory(self, lead: Lead) -> AssignmentResult:
        territory = self.rule_store.find_matching_territory(lead.region)
        if territory is None:
            return AssignmentResult.failure("No matching territory found")

        user_id = next((u for u in territory.assigned_users if self.capacity.validate(u)), None)
        if user_id is None:
            return AssignmentResult.failure("No available users in territory")

        self._record(lead, user_id, AssignmentType.TERRITORY, territory_id=territory.id)
        return AssignmentResult(
            success=True,
            assigned_to=user_id,
            territory=territory,
            assignment_type=AssignmentType.TERRITORY,
        )

    def assign_round_robin(self, lead: Lead) -> AssignmentResult:
        """Rotate through available members with one shared index."""
        with self._rotation_lock:
            candidates = self._candidates(self.get_config())
            if not candidates:
                return AssignmentResult.failure("No available team members")

            self._round_robin_index = (self._round_robin_index + 1) % len(candidates)
            assignee = candidates[self._round_robin_index]
            self._save_state()

        self._record(lead, assignee.user_id, AssignmentType.ROUND_ROBIN)
        return AssignmentResult(
            success=True,
            assigned_to=assignee.user_id,
            assignment_type=AssignmentType.ROUND_ROBIN,
        )

    def assign_load_balanced(self, lead: Lead) -> AssignmentResult:
        """Least-loaded member with spare capacity; takes one of their slots."""
        candidates = rank_by_load(self.capacity.list_with_spare_capacity())
        for member in candidates:
            # Another caller may have filled the slot since the listing
            if self.capacity.reserve(member.user_id):
                self._record(lead, member.user_id, AssignmentType.LOAD_BALANCE)
                return AssignmentResult(
                    success=True,
                    assigned_to=member.user_id,
                    assignment_type=AssignmentType.LOAD_BALANCE,
                )

        return AssignmentResult.failure("No available team members with capacity")

    def assign_by_priority(self, lead: Lead) -> AssignmentResult:
        """Queue the lead by priority score and give it the broadest specialist.

        The queue item is consumed on success; leads nobody could take stay
        queued for inspection.
        """
        priority = lead.priority
        if priority is None:
            priority = self.enricher.enrich(lead).priority
        item = self.queue.push(AssignmentQueueItem(lead=lead, priority=priority))

        item.attempts += 1
        item.last_attempt = datetime.now()

        candidates = sorted(
            self._candidates(self.get_config()),
            key=lambda m: len(m.specialties),
            reverse=True,
        )
        if not candidates:
            return AssignmentResult.failure("No available team members for high-priority lead")

        assignee = candidates[0]
        self.queue.consume(item)
        self._record(lead, assignee.user_id, AssignmentType.PRIORITY)
        return AssignmentResult(
            success=True,
            assigned_to=assignee.user_id,
            assignment_type=AssignmentType.PRIORITY,
        )

    def _candidates(self, config: AssignmentConfig) -> List[TeamMemberCapacity]:
        if config.strict_capacity:
            return self.capacity.list_with_spare_capacity()
        return self.capacity.list_available()

    def _record(
        self,
        lead: Lead,
        user_id: str,
        assignment_type: AssignmentType,
        rule_name: Optional[str] = None,
        territory_id: Optional[str] = None,
        assigned_by: str = "system"
    ):
        self.history.record(AssignmentHistoryEntry(
            lead_id=lead.id,
            assigned_to=user_id,
            assignment_type=assignment_type,
            assigned_by=assigned_by,
            rule_name=rule_name,
            territory_id=territory_id,
        ))
        logger.info(f"Assigned lead {lead.id} to {user_id} via {assignment_type.value}")

    # Manual assignment

    def reassign(self, lead_id: str, user_id: str, assigned_by: str = "admin") -> AssignmentResult:
        """Manually assign a lead, recorded as a ``manual`` history entry."""
        if self.capacity.get(user_id) is None:
            raise NotFoundError(f"Team member {user_id} not found")
        if not self.get_config().allow_reassignment and self.history.query(lead_id):
            raise ValidationError(f"Lead {lead_id} is already assigned and reassignment is disabled")

        self._record(Lead(id=lead_id), user_id, AssignmentType.MANUAL, assigned_by=assigned_by)
        return AssignmentResult(
            success=True,
            assigned_to=user_id,
            assignment_type=AssignmentType.MANUAL,
        )

    # Queries

    def get_assignment_history(self, lead_id: Optional[str] = None) -> List[AssignmentHistoryEntry]:
        return self.history.query(lead_id)

    def get_assignment_stats(self) -> Dict:
        stats = self.history.stats()
        stats["team_workload"] = [m.to_dict() for m in self.capacity.list_all()]
        stats["queued_leads"] = len(self.queue)
        return stats

    def get_queue(self) -> List[AssignmentQueueItem]:
        return self.queue.items()

    def get_config(self) -> AssignmentConfig:
        return self.config_manager.get_config()

    def update_config(self, updates: Dict) -> AssignmentConfig:
        return self.config_manager.update_config(updates)


def rank_by_load(members: List[TeamMemberCapacity]) -> List[TeamMemberCapacity]:
    """Least loaded first by current/max ratio; stable on ties."""
    return sorted(members, key=lambda m: m.load_ratio)


def create_engine(data_dir: Optional[Path] = None, enricher: Optional[LeadEnricher] = None) -> AssignmentEngine:
    """Build an engine and its stores. Without a data dir everything stays in memory."""
    if data_dir is not None:
        data_dir = Path(data_dir).expanduser()
        logger.info(f"Using assignment data directory {data_dir}")

    def path(name: str) -> Optional[Path]:
        return data_dir / name if data_dir is not None else None

    return AssignmentEngine(
        rule_store=RuleStore(path("rules.json")),
        capacity=CapacityTracker(path("capacity.json")),
        history=AssignmentHistoryLog(path("history.json")),
        config_manager=AssignmentConfigManager(path("config.json")),
        enricher=enricher,
        state_path=path("engine_state.json"),
    )
