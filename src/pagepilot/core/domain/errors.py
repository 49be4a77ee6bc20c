"""
Domain exceptions.

Tool failures, approval denials and resource limits are reported as result
values, never raised. These exceptions cover the few conditions that are
signalled across a boundary instead.
"""


class PagePilotError(Exception):
    """Base class for all PagePilot errors."""


class SubagentCancelledError(PagePilotError):
    """Raised inside the subagent race when the cancellation signal wins."""

    def __init__(self, message: str = "Subagent cancelled"):
        super().__init__(message)


class ProfileError(PagePilotError):
    """A configuration profile exists but cannot be used."""
