"""PagePilot - agentic tool-use engine for page-level browser automation."""

__version__ = "0.1.0"
