"""HTTP routes for the Identity Service."""
