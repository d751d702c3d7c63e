"""Health check routes."""

from fastapi import APIRouter, Depends

from ...assignment import AssignmentEngine
from ..dependencies import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {"status": "healthy", "service": "lead-assignment-api", "version": "1.0.0"}


@router.get("/ready")
def ready(engine: AssignmentEngine = Depends(get_engine)):
    """Readiness check - reports how much routing data is loaded."""
    return {
        "status": "ready",
        "rules": len(engine.rule_store.list_all_rules()),
        "territories": len(engine.rule_store.list_territories()),
        "team_members": len(engine.capacity.list_all()),
    }
