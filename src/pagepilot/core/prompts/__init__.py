"""Prompt templates and tool declarations."""
