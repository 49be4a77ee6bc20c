"""Application layer: profile loading and dependency wiring."""
