"""Version 1 API endpoints."""

from .endpoints import interactions_router

__all__ = ["interactions_router"]
