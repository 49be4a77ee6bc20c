"""Domain models, events and orchestration services."""
