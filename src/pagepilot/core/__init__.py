"""Core domain: orchestration logic independent of infrastructure."""
