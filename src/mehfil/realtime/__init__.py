"""Realtime Socket.IO gateway."""

from .gateway import MehfilNamespace

__all__ = ["MehfilNamespace"]
