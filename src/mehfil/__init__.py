"""Mehfil: realtime moderated discussion feed."""

__version__ = "0.1.0"
