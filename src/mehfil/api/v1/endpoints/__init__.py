"""API endpoint modules for version 1."""

from .interactions import router as interactions_router

__all__ = ["interactions_router"]
