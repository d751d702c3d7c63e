"""Lead assignment routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...assignment import AssignmentEngine, Lead
from ..config import settings
from ..dependencies import get_engine
from ..schemas.assignment import (
    AssignmentResponse,
    ErrorResponse,
    LeadPayload,
    ManualAssignRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/assignments", tags=["assignments"])


@router.post(
    "",
    response_model=AssignmentResponse,
    responses={400: {"model": ErrorResponse}},
)
def assign_lead(
    payload: LeadPayload,
    timeout: Optional[float] = Query(default=None, gt=0),
    engine: AssignmentEngine = Depends(get_engine),
):
    """Pick an owner for a lead.

    A lead nobody can take is not an error: the response has
    ``success: false`` and a ``reason`` so the caller can leave the lead
    unassigned for manual triage.
    """
    lead = Lead.from_dict(payload.model_dump())
    result = engine.assign(lead, timeout=timeout if timeout is not None else settings.assign_timeout)
    if not result.success:
        logger.info(f"Lead {lead.id} unassigned: {result.reason}")
    return result.to_dict()


@router.post(
    "/manual",
    response_model=AssignmentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def manual_assign(payload: ManualAssignRequest, engine: AssignmentEngine = Depends(get_engine)):
    """Assign or reassign a lead by hand."""
    result = engine.reassign(payload.lead_id, payload.user_id, assigned_by=payload.assigned_by)
    return result.to_dict()


@router.get("/history")
def get_history(lead_id: Optional[str] = None, engine: AssignmentEngine = Depends(get_engine)):
    """Assignment history, optionally for a single lead."""
    return [entry.to_dict() for entry in engine.get_assignment_history(lead_id)]


@router.get("/stats")
def get_stats(engine: AssignmentEngine = Depends(get_engine)):
    return engine.get_assignment_stats()


@router.get("/queue")
def get_queue(engine: AssignmentEngine = Depends(get_engine)):
    """Leads that went through priority assignment, highest priority first."""
    return [item.to_dict() for item in engine.get_queue()]
