"""Contact graph services."""
