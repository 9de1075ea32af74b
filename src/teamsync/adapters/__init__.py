"""Adapters for external platforms and the team definitions."""
