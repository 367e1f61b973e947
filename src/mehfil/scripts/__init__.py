"""Maintenance scripts for the Mehfil database."""
