"""API endpoints."""

from decision.api.routes import router

__all__ = ["router"]
