"""Assignment rule and territory administration routes."""

import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...assignment import AssignmentEngine, AssignmentRule, NotFoundError, Territory
from ..dependencies import get_engine
from ..schemas.assignment import RuleCreateRequest, TerritoryCreateRequest

router = APIRouter(prefix="/v1", tags=["rules"])


@router.get("/rules")
def list_rules(active_only: bool = False, engine: AssignmentEngine = Depends(get_engine)):
    """Rules in evaluation order."""
    store = engine.rule_store
    rules = store.list_active_rules() if active_only else store.list_all_rules()
    return [rule.to_dict() for rule in rules]


@router.post("/rules", status_code=201)
def create_rule(payload: RuleCreateRequest, engine: AssignmentEngine = Depends(get_engine)):
    data = payload.model_dump()
    data["id"] = data["id"] or str(uuid.uuid4())[:12]
    rule = engine.rule_store.add_rule(AssignmentRule.from_dict(data))
    return rule.to_dict()


@router.get("/rules/{rule_id}")
def get_rule(rule_id: str, engine: AssignmentEngine = Depends(get_engine)):
    rule = engine.rule_store.get_rule(rule_id)
    if rule is None:
        raise NotFoundError(f"Rule {rule_id} not found")
    return rule.to_dict()


@router.patch("/rules/{rule_id}")
def update_rule(rule_id: str, payload: Dict[str, Any], engine: AssignmentEngine = Depends(get_engine)):
    """Partial update; send only the fields to change."""
    return engine.rule_store.update_rule(rule_id, payload).to_dict()


@router.delete("/rules/{rule_id}")
def delete_rule(rule_id: str, engine: AssignmentEngine = Depends(get_engine)):
    engine.rule_store.delete_rule(rule_id)
    return {"success": True, "deleted": rule_id}


@router.get("/territories")
def list_territories(engine: AssignmentEngine = Depends(get_engine)):
    return [territory.to_dict() for territory in engine.rule_store.list_territories()]


@router.post("/territories", status_code=201)
def create_territory(payload: TerritoryCreateRequest, engine: AssignmentEngine = Depends(get_engine)):
    data = payload.model_dump()
    data["id"] = data["id"] or str(uuid.uuid4())[:12]
    territory = engine.rule_store.add_territory(Territory.from_dict(data))
    return territory.to_dict()


@router.get("/territories/{territory_id}")
def get_territory(territory_id: str, engine: AssignmentEngine = Depends(get_engine)):
    territory = engine.rule_store.get_territory(territory_id)
    if territory is None:
        raise NotFoundError(f"Territory {territory_id} not found")
    return territory.to_dict()


@router.patch("/territories/{territory_id}")
def update_territory(
    territory_id: str,
    payload: Dict[str, Any],
    engine: AssignmentEngine = Depends(get_engine),
):
    return engine.rule_store.update_territory(territory_id, payload).to_dict()


@router.delete("/territories/{territory_id}")
def delete_territory(territory_id: str, engine: AssignmentEngine = Depends(get_engine)):
    engine.rule_store.delete_territory(territory_id)
    return {"success": True, "deleted": territory_id}
