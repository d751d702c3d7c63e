"""Request dependencies shared by the API routes."""

from fastapi import Request

from ..assignment import AssignmentEngine


def get_engine(request: Request) -> AssignmentEngine:
    """The engine created for this app at startup."""
    return request.app.state.engine
