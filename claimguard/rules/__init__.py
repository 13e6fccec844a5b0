"""Deterministic business routing rules."""
