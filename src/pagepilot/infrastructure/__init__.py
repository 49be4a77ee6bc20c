"""Infrastructure adapters implementing the core ports."""
