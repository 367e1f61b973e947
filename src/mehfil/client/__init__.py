"""Python client for the Mehfil realtime feed."""

from .connection import MehfilClient
from .feed import FeedState

__all__ = ["FeedState", "MehfilClient"]
