"""Utility helpers for input validation."""
