"""Team capacity and assignment config routes."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...assignment import AssignmentEngine
from ..dependencies import get_engine
from ..schemas.assignment import AvailabilityRequest, CapacityRequest, LeadCountRequest

router = APIRouter(prefix="/v1", tags=["team"])


@router.get("/capacity")
def list_capacity(available_only: bool = False, engine: AssignmentEngine = Depends(get_engine)):
    tracker = engine.capacity
    members = tracker.list_available() if available_only else tracker.list_all()
    return [member.to_dict() for member in members]


@router.put("/capacity/{user_id}")
def set_capacity(user_id: str, payload: CapacityRequest, engine: AssignmentEngine = Depends(get_engine)):
    """Register a team member or replace their limits."""
    member = engine.capacity.set_capacity(
        user_id,
        max_leads=payload.max_leads,
        specialties=payload.specialties,
        availability=payload.availability,
        territory=payload.territory,
    )
    return member.to_dict()


@router.patch("/capacity/{user_id}/availability")
def set_availability(user_id: str, payload: AvailabilityRequest, engine: AssignmentEngine = Depends(get_engine)):
    return engine.capacity.set_availability(user_id, payload.availability).to_dict()


@router.patch("/capacity/{user_id}/leads")
def update_lead_count(user_id: str, payload: LeadCountRequest, engine: AssignmentEngine = Depends(get_engine)):
    return engine.capacity.update_current_leads(user_id, payload.current_leads).to_dict()


@router.get("/config")
def get_config(engine: AssignmentEngine = Depends(get_engine)):
    return engine.get_config().to_dict()


@router.patch("/config")
def update_config(payload: Dict[str, Any], engine: AssignmentEngine = Depends(get_engine)):
    """Merge the given options into the assignment config."""
    return engine.update_config(payload).to_dict()
