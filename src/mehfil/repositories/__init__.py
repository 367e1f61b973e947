"""Repositories wrapping async SQLAlchemy access to Mehfil tables."""
