"""Operational monitoring hooks."""
