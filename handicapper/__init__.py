"""Deterministic race scoring and value-analysis engine."""
