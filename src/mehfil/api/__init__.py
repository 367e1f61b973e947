"""HTTP API for Mehfil."""
