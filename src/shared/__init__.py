"""Shared infrastructure helpers (logging, database connections)."""
