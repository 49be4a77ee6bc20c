"""Ports consumed and exposed by the orchestration core."""
