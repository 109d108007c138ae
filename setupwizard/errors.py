"""
Wizard Errors

Exception taxonomy shared by the navigation controller, the gates and the
recovery managers. Gate and authority failures are caught at the controller
or manager boundary and turned into outcome objects; they are never raised
past it.
"""

from typing import List, Optional


class WizardError(Exception):
    """Base class for all wizard engine errors."""

    def __init__(self, message: str = "", details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class GateRejection(WizardError):
    """The current step's gate refused the transition; user must change input."""

    def __init__(
        self,
        message: str = "",
        details: Optional[List[str]] = None,
        overridable: bool = False,
    ):
        super().__init__(message, details)
        self.overridable = overridable


class InconsistentState(WizardError):
    """Structural self-check of the session failed before field validation."""


class AuthorityUnavailable(WizardError):
    """A remote authority call failed or returned an unusable response."""


class AuthorityBusy(WizardError):
    """Another call for the same authority resource is still in flight."""


class BoundsViolation(WizardError):
    """A step index outside 1..N was requested."""


class TransitionPending(WizardError):
    """A navigation request arrived while another transition was pending."""


class OwnershipError(WizardError):
    """A session field was written by a component that does not own it."""


class ConfigError(WizardError):
    """Settings loading or validation error."""
