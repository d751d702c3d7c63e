"""HTTP API for the lead assignment engine."""

from .main import create_app

__all__ = ["create_app"]
