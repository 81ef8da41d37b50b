"""Core configuration, database sessions and password/JWT helpers."""
