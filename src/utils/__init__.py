"""Utility helpers shared across the scheduling services."""
