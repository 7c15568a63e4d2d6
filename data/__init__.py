"""Maintenance commands run outside the web process."""
